"""Range and case-insensitive comparison operators: >, >=, <, <=, eqi, nei."""

from __future__ import annotations

from .operators import CriteriaOperator
from .strategy import SqlOperator, SqlOperatorRegistry


class GreaterThanOperator(SqlOperator):
    @property
    def name(self) -> CriteriaOperator:
        return CriteriaOperator.GT

    def render(self, column: str, placeholder: str) -> str:
        return f"{column} > {placeholder}"


class GreaterEqualOperator(SqlOperator):
    @property
    def name(self) -> CriteriaOperator:
        return CriteriaOperator.GTE

    def render(self, column: str, placeholder: str) -> str:
        return f"{column} >= {placeholder}"


class LessThanOperator(SqlOperator):
    @property
    def name(self) -> CriteriaOperator:
        return CriteriaOperator.LT

    def render(self, column: str, placeholder: str) -> str:
        return f"{column} < {placeholder}"


class LessEqualOperator(SqlOperator):
    @property
    def name(self) -> CriteriaOperator:
        return CriteriaOperator.LTE

    def render(self, column: str, placeholder: str) -> str:
        return f"{column} <= {placeholder}"


class CaseInsensitiveEqualOperator(SqlOperator):
    @property
    def name(self) -> CriteriaOperator:
        return CriteriaOperator.EQI

    def render(self, column: str, placeholder: str) -> str:
        return f"LOWER({column}) = LOWER({placeholder})"


class CaseInsensitiveNotEqualOperator(SqlOperator):
    @property
    def name(self) -> CriteriaOperator:
        return CriteriaOperator.NEI

    def render(self, column: str, placeholder: str) -> str:
        return f"LOWER({column}) != LOWER({placeholder})"


def build_default_sql_registry() -> SqlOperatorRegistry:
    """Create a registry with all built-in SQL operators.

    ``$ne`` is not registered: the compiler handles it by recursing with
    the clause polarity flipped.
    """
    return SqlOperatorRegistry(
        GreaterThanOperator(),
        GreaterEqualOperator(),
        LessThanOperator(),
        LessEqualOperator(),
        CaseInsensitiveEqualOperator(),
        CaseInsensitiveNotEqualOperator(),
    )


DEFAULT_SQL_REGISTRY: SqlOperatorRegistry = build_default_sql_registry()
