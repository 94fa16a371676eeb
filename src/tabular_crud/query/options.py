"""
Per-call query options: projection, ordering, pagination, concealment,
count mode and session participation.

``QueryOptions`` is parsed once at the public entry point and passed down
unchanged; layers derive copies (``for_count()``, ``with_pagination()``)
instead of stripping keys off a shared object.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from ..exceptions import UsageError


class QueryMode(str, Enum):
    """What a SELECT returns."""

    DEFAULT = "default"
    COUNT = "count"


Projection = tuple[tuple[str, Any], ...]
Ordering = tuple[tuple[str, int], ...]


def _normalise_fields(fields: Any) -> Projection | None:
    if fields is None:
        return None
    if isinstance(fields, Mapping):
        return tuple((str(k), v) for k, v in fields.items())
    if isinstance(fields, str):
        return ((fields, 1),)
    if isinstance(fields, Sequence):
        return tuple(
            (str(item[0]), item[1]) if isinstance(item, tuple) else (str(item), 1)
            for item in fields
        )
    raise UsageError(f"Unsupported projection: {fields!r}")


def _normalise_sort(sort: Any) -> Ordering | None:
    """
    Accept ``{"created": -1, "name": 1}`` or ``["-created", "name"]``.
    """
    if sort is None:
        return None
    if isinstance(sort, Mapping):
        return tuple((str(k), int(v)) for k, v in sort.items())
    if isinstance(sort, str):
        sort = [sort]
    if isinstance(sort, Sequence):
        result: list[tuple[str, int]] = []
        for item in sort:
            if isinstance(item, tuple):
                result.append((str(item[0]), int(item[1])))
            elif str(item).startswith("-"):
                result.append((str(item)[1:], -1))
            else:
                result.append((str(item), 1))
        return tuple(result)
    raise UsageError(f"Unsupported sort: {sort!r}")


def _check_count(name: str, value: int | None) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise UsageError(f"`{name}` must be a non-negative integer, got {value!r}")


def _parse_mode(mode: Any) -> QueryMode:
    if isinstance(mode, QueryMode):
        return mode
    try:
        return QueryMode(str(mode).lower())
    except ValueError:
        valid = ", ".join(m.value for m in QueryMode)
        raise UsageError(f"`mode` must be one of {valid}, got {mode!r}") from None


@dataclass(frozen=True)
class QueryOptions:
    """
    Immutable container for result-shaping parameters.

    Attributes:
        skip: Number of rows to skip (OFFSET).
        take: Maximum number of rows (LIMIT).
        fields: Projection as ``(column, include)`` pairs, ``None`` = all
            columns.  Accepts a mapping (``{"username": 1}``) or a list of
            column names on construction.
        sort: Ordering as ``(column, direction)`` pairs.  Positive direction
            is ascending.  Accepts a mapping or ``["-created", "name"]``.
        conceal: Hide tombstoned rows (only when the service has
            concealment enabled).
        mode: ``QueryMode.COUNT`` turns a SELECT into a count aggregate.
        session: Caller-owned session the statement participates in.
        suppress: Regex (or pattern string) matched against driver error
            text; matching failures are not reported.
    """

    skip: int | None = None
    take: int | None = None
    fields: Projection | None = None
    sort: Ordering | None = None
    conceal: bool = True
    mode: QueryMode = QueryMode.DEFAULT
    session: Any = field(default=None, compare=False)
    suppress: re.Pattern[str] | str | None = None

    def __post_init__(self) -> None:
        _check_count("skip", self.skip)
        _check_count("take", self.take)
        object.__setattr__(self, "fields", _normalise_fields(self.fields))
        object.__setattr__(self, "sort", _normalise_sort(self.sort))
        object.__setattr__(self, "mode", _parse_mode(self.mode))

    # ------------------------------------------------------------------ #
    # Construction                                                        #
    # ------------------------------------------------------------------ #

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> QueryOptions:
        """Parse request-shaped options (``{"skip": 0, "take": 10, ...}``).

        ``client`` is accepted as an alias of ``session``.
        """
        if not data:
            return cls()
        known = {
            "skip", "take", "fields", "sort", "conceal", "mode", "session", "suppress"
        }
        values = dict(data)
        if "client" in values:
            values["session"] = values.pop("client")
        unknown = sorted(set(values) - known)
        if unknown:
            raise UsageError(f"Unknown query options: {', '.join(unknown)}")
        return cls(**values)

    @classmethod
    def coerce(cls, options: QueryOptions | Mapping[str, Any] | None) -> QueryOptions:
        if isinstance(options, QueryOptions):
            return options
        return cls.from_mapping(options)

    # ------------------------------------------------------------------ #
    # Derivation                                                          #
    # ------------------------------------------------------------------ #

    def for_count(self) -> QueryOptions:
        """Count-mode copy: projection, ordering and pagination dropped."""
        return replace(
            self,
            mode=QueryMode.COUNT,
            skip=None,
            take=None,
            fields=None,
            sort=None,
        )

    def for_single_row(self) -> QueryOptions:
        """Row-mode copy reading at most the first matching row."""
        return replace(self, mode=QueryMode.DEFAULT, skip=None, take=1)

    def with_pagination(
        self,
        skip: int | None = None,
        take: int | None = None,
    ) -> QueryOptions:
        """Return a copy with updated pagination parameters."""
        return replace(
            self,
            skip=skip if skip is not None else self.skip,
            take=take if take is not None else self.take,
        )

    def with_session(self, session: Any) -> QueryOptions:
        return replace(self, session=session)

    @property
    def is_count(self) -> bool:
        return self.mode is QueryMode.COUNT

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-compatible dictionary (session excluded)."""
        result: dict[str, Any] = {"conceal": self.conceal, "mode": self.mode.value}
        if self.skip is not None:
            result["skip"] = self.skip
        if self.take is not None:
            result["take"] = self.take
        if self.fields is not None:
            result["fields"] = dict(self.fields)
        if self.sort is not None:
            result["sort"] = dict(self.sort)
        return result
