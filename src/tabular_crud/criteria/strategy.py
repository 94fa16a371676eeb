"""
Clause rendering for operator objects.

Each :class:`SqlOperator` turns one criteria operator into one clause,
given a column that is already quoted and a value that is already bound.
``$ne`` never reaches a strategy: the compiler recurses with the polarity
flipped instead.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from .operators import CriteriaOperator

#: Operators the compiler hands to a registry.
RENDERED_OPERATORS: frozenset[CriteriaOperator] = frozenset(
    op for op in CriteriaOperator if op is not CriteriaOperator.NE
)


class SqlOperator(ABC):
    """Renders a single criteria operator."""

    @property
    @abstractmethod
    def name(self) -> CriteriaOperator: ...

    @abstractmethod
    def render(self, column: str, placeholder: str) -> str:
        """Return a clause such as ``"created" > $3``."""
        ...


class SqlOperatorRegistry:
    """Operator strategies keyed by :class:`CriteriaOperator`.

    Registering a second strategy for the same operator replaces the first,
    which is how callers swap in dialect-specific rendering (``ILIKE``).
    """

    def __init__(self, *operators: SqlOperator) -> None:
        self._operators: dict[CriteriaOperator, SqlOperator] = {}
        for operator in operators:
            self.register(operator)

    def register(self, operator: SqlOperator) -> None:
        self._operators[operator.name] = operator

    def missing(self) -> frozenset[CriteriaOperator]:
        """Rendered operators this registry has no strategy for."""
        return RENDERED_OPERATORS - self._operators.keys()

    def render(self, name: CriteriaOperator, column: str, placeholder: str) -> str:
        try:
            operator = self._operators[name]
        except KeyError:
            raise ValueError(
                f"Unsupported operator for SQL compilation: {name.value}"
            ) from None
        return operator.render(column, placeholder)
