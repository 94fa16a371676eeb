"""
Exception hierarchy for tabular-crud.

All library errors inherit from ``CrudError``.  Driver errors raised by
SQLAlchemy (``sqlalchemy.exc.DBAPIError`` and friends) are *not* wrapped:
they propagate unchanged after being reported.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any


class CrudError(Exception):
    """Root exception for the entire tabular-crud package."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": str(self),
        }


class ConfigurationError(CrudError):
    """Raised when construction options or schema hooks are misconfigured."""


class UsageError(CrudError):
    """Raised when a caller violates an operation contract."""


class MissingIdentifierError(UsageError):
    """Raised when a row-targeted operation receives a row without its id."""

    def __init__(self, operation: str, id_field: str) -> None:
        self.operation = operation
        self.id_field = id_field
        super().__init__(
            f"Cannot {operation} row if id field not provided "
            f"(expected '{id_field}')"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "MISSING_IDENTIFIER",
            "operation": self.operation,
            "id_field": self.id_field,
        }


# ── Criteria ─────────────────────────────────────────────────────────


class CriteriaError(CrudError):
    """Base exception for all filter criteria errors."""


class CriteriaValidationError(CriteriaError):
    """Criteria structure validation failed."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.message = message
        self.path = path
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "VALIDATION_ERROR",
            "message": self.message,
            "path": self.path,
        }


class OperatorNotFoundError(CriteriaError):
    """
    Unknown operator specified.

    Provides fuzzy-matched suggestions for likely intended operators.
    """

    def __init__(
        self,
        operator: str,
        valid_operators: list[str],
        field: str | None = None,
    ) -> None:
        self.operator = operator
        self.field = field
        self.valid_operators = valid_operators
        self.suggestions = get_close_matches(operator, valid_operators, n=3, cutoff=0.6)

        message = f"Unknown operator: '{operator}'"
        if field is not None:
            message += f" on field '{field}'"
        message += "."
        if self.suggestions:
            message += f" Did you mean: {', '.join(self.suggestions)}?"
        message += f" Valid operators: {', '.join(sorted(valid_operators))}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "OPERATOR_NOT_FOUND",
            "operator": self.operator,
            "field": self.field,
            "suggestions": self.suggestions,
            "valid_operators": sorted(self.valid_operators),
        }


# ── Persistence ──────────────────────────────────────────────────────


class PersistenceError(CrudError):
    """Base class for all persistence-related errors."""


class SessionManagementError(PersistenceError):
    """Raised when session acquisition or release fails."""


__all__: list[str] = [
    "ConfigurationError",
    "CriteriaError",
    "CriteriaValidationError",
    "CrudError",
    "MissingIdentifierError",
    "OperatorNotFoundError",
    "PersistenceError",
    "SessionManagementError",
    "UsageError",
]
