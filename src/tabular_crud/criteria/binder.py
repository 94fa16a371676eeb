"""Positional parameter bookkeeping shared by the compiler and the assembler."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

# DBAPI paramstyles (PEP 249) that can be rendered positionally.
_SUPPORTED_PARAMSTYLES = frozenset(
    {"numeric_dollar", "numeric", "qmark", "format", "pyformat"}
)


class ParameterBinder:
    """
    Running placeholder counter.

    Every call to :meth:`bind` appends the value to :attr:`args` *and* renders
    the placeholder from the same counter, so the n-th placeholder in the
    statement always refers to ``args[n - 1]``.

    Usage::

        binder = ParameterBinder("numeric_dollar")
        binder.bind("a")          # "$1"
        binder.bind_all([1, 2])   # ["$2", "$3"]
        binder.args               # ["a", 1, 2]
    """

    def __init__(self, paramstyle: str = "numeric_dollar") -> None:
        if paramstyle not in _SUPPORTED_PARAMSTYLES:
            raise ValueError(
                f"Unsupported paramstyle '{paramstyle}'. "
                f"Supported: {', '.join(sorted(_SUPPORTED_PARAMSTYLES))}"
            )
        self.paramstyle = paramstyle
        self._args: list[Any] = []
        self._position = 0

    @property
    def position(self) -> int:
        """Index of the last placeholder handed out (0 before any bind)."""
        return self._position

    @property
    def args(self) -> list[Any]:
        return list(self._args)

    def bind(self, value: Any) -> str:
        self._position += 1
        self._args.append(value)
        return self.placeholder(self._position)

    def bind_all(self, values: Iterable[Any]) -> list[str]:
        return [self.bind(value) for value in values]

    def placeholder(self, position: int) -> str:
        if self.paramstyle == "numeric_dollar":
            return f"${position}"
        if self.paramstyle == "numeric":
            return f":{position}"
        if self.paramstyle == "qmark":
            return "?"
        return "%s"

    def __len__(self) -> int:
        return self._position
