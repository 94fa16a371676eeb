"""Operator keys recognised inside criteria operator objects."""

from __future__ import annotations

from enum import Enum


class CriteriaOperator(str, Enum):
    """Operators accepted inside an operator object, e.g. ``{"$gt": 5}``."""

    NE = "$ne"
    GT = "$gt"
    GTE = "$gte"
    LT = "$lt"
    LTE = "$lte"

    # Case-insensitive comparison
    EQI = "$eqi"
    NEI = "$nei"

    @classmethod
    def lookup(cls, key: str) -> CriteriaOperator | None:
        """Resolve ``"$gt"`` or ``"gt"`` to an operator, ``None`` if unknown."""
        normalized = key if key.startswith("$") else f"${key}"
        try:
            return cls(normalized.lower())
        except ValueError:
            return None


class Polarity(str, Enum):
    """Clause polarity used while compiling equality and membership tests."""

    EQUAL = "equal"
    NOT_EQUAL = "not_equal"

    def flipped(self) -> Polarity:
        return Polarity.NOT_EQUAL if self is Polarity.EQUAL else Polarity.EQUAL
