"""
Typed criteria model.

Callers send Mongo-style mappings such as::

    {"status": "active", "id": ["a", "b"], "created": {"$gte": some_date}}

``Criteria.parse`` turns them into an ordered tuple of :class:`Condition`
objects whose constraint is exactly one of :class:`Scalar`,
:class:`Membership` or :class:`OperatorSet`.  The compiler pattern-matches on
those variants instead of probing dictionaries for known keys.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..exceptions import CriteriaValidationError, OperatorNotFoundError
from .operators import CriteriaOperator

logger = logging.getLogger("tabular_crud.criteria")

# Pre-compute valid operator values for validation
_VALID_OPERATORS: list[str] = [m.value for m in CriteriaOperator]

_SEQUENCE_TYPES = (list, tuple, set, frozenset)


@dataclass(frozen=True)
class Scalar:
    """Plain value compared with ``=`` / ``!=``.

    Dates, timestamps and binary payloads are scalars too.
    """

    value: Any


@dataclass(frozen=True)
class Membership:
    """Sequence of values compared with ``IN`` / ``NOT IN``."""

    values: tuple[Any, ...]


@dataclass(frozen=True)
class OperatorSet:
    """
    Operator object such as ``{"$gt": 1, "$lt": 10}``.

    Entries keep declaration order and combine conjunctively.  ``unrecognized``
    holds keys that were dropped while parsing in lenient mode.
    """

    entries: tuple[tuple[CriteriaOperator, Any], ...] = ()
    unrecognized: tuple[str, ...] = ()

    @classmethod
    def of(cls, **operators: Any) -> OperatorSet:
        """Build from keyword arguments: ``OperatorSet.of(gte=1, lt=5)``."""
        return cls.from_mapping(operators)

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        *,
        field: str | None = None,
        strict: bool = True,
    ) -> OperatorSet:
        entries: list[tuple[CriteriaOperator, Any]] = []
        unrecognized: list[str] = []
        for key, value in data.items():
            op = CriteriaOperator.lookup(str(key))
            if op is not None:
                entries.append((op, value))
                continue
            if strict:
                raise OperatorNotFoundError(str(key), _VALID_OPERATORS, field=field)
            unrecognized.append(str(key))
        return cls(entries=tuple(entries), unrecognized=tuple(unrecognized))

    def get(self, op: CriteriaOperator) -> Any | None:
        for entry_op, value in self.entries:
            if entry_op is op:
                return value
        return None

    def to_dict(self) -> dict[str, Any]:
        return {op.value: value for op, value in self.entries}


Constraint = Scalar | Membership | OperatorSet


def constraint_for(
    value: Any,
    *,
    field: str | None = None,
    strict: bool = True,
) -> Constraint:
    """Classify a raw criteria value into its tagged variant."""
    if isinstance(value, (Scalar, Membership, OperatorSet)):
        return value
    if isinstance(value, _SEQUENCE_TYPES):
        return Membership(tuple(value))
    if isinstance(value, Mapping):
        return OperatorSet.from_mapping(value, field=field, strict=strict)
    # str, numbers, bool, None, date/datetime, bytes, Decimal, UUID, ...
    return Scalar(value)


@dataclass(frozen=True)
class Condition:
    """A single ``field -> constraint`` pair."""

    field: str
    constraint: Constraint


@dataclass(frozen=True)
class Criteria:
    """
    Ordered, immutable filter made of :class:`Condition` objects.

    Several conditions may target the same field; they are AND-ed together.
    """

    conditions: tuple[Condition, ...] = field(default_factory=tuple)

    # ------------------------------------------------------------------ #
    # Construction                                                        #
    # ------------------------------------------------------------------ #

    @classmethod
    def parse(
        cls,
        data: Criteria | Mapping[str, Any] | None,
        *,
        strict: bool = True,
    ) -> Criteria:
        """
        Parse a Mongo-style mapping.

        Parameters
        ----------
        data:
            The criteria mapping, an existing :class:`Criteria` (returned
            unchanged) or ``None`` (empty criteria).
        strict:
            Raise :class:`OperatorNotFoundError` on unknown operator keys.
            When ``False`` the keys are dropped and recorded on the
            :class:`OperatorSet` so the compiler can report them.
        """
        if data is None:
            return cls()
        if isinstance(data, Criteria):
            return data
        if not isinstance(data, Mapping):
            raise CriteriaValidationError(
                f"Expected a mapping, got {type(data).__name__}",
                path="<root>",
            )

        conditions: list[Condition] = []
        for key, value in data.items():
            if not isinstance(key, str) or not key:
                raise CriteriaValidationError(
                    f"Field names must be non-empty strings, got {key!r}",
                    path="<root>",
                )
            constraint = constraint_for(value, field=key, strict=strict)
            if isinstance(constraint, OperatorSet) and constraint.unrecognized:
                logger.debug(
                    "Dropped unrecognized operators %s on field %s",
                    constraint.unrecognized,
                    key,
                )
            conditions.append(Condition(key, constraint))
        return cls(tuple(conditions))

    @classmethod
    def of(cls, *conditions: Condition) -> Criteria:
        return cls(tuple(conditions))

    # ------------------------------------------------------------------ #
    # Queries                                                             #
    # ------------------------------------------------------------------ #

    def __iter__(self) -> Iterator[Condition]:
        return iter(self.conditions)

    def __len__(self) -> int:
        return len(self.conditions)

    def __bool__(self) -> bool:
        return bool(self.conditions)

    def index_of(self, field_name: str) -> int | None:
        """Position of the first condition on *field_name*, ``None`` if absent."""
        for idx, condition in enumerate(self.conditions):
            if condition.field == field_name:
                return idx
        return None

    # ------------------------------------------------------------------ #
    # Derivation                                                          #
    # ------------------------------------------------------------------ #

    def inserted(self, index: int, condition: Condition) -> Criteria:
        """Return a copy with *condition* inserted at *index*."""
        items = list(self.conditions)
        items.insert(index, condition)
        return Criteria(tuple(items))

    def appended(self, condition: Condition) -> Criteria:
        return Criteria((*self.conditions, condition))

    def to_dict(self) -> dict[str, Any]:
        """Best-effort Mongo-style rendering, used for diagnostics."""
        result: dict[str, Any] = {}
        for condition in self.conditions:
            constraint = condition.constraint
            if isinstance(constraint, Scalar):
                rendered: Any = constraint.value
            elif isinstance(constraint, Membership):
                rendered = list(constraint.values)
            else:
                rendered = constraint.to_dict()
            if condition.field in result:
                result.setdefault("$and", []).append({condition.field: rendered})
            else:
                result[condition.field] = rendered
        return result
