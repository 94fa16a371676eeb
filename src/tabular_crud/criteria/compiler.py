"""
Compile typed :class:`Criteria` into positionally-parameterized WHERE fragments.

Uses the strategy pattern: range and case-insensitive operators are isolated
classes in ``sql_operators``, registered in a ``SqlOperatorRegistry``.
``compile_criteria`` walks the conditions in order and appends one or more
clause fragments to ``where`` while binding every value through a shared
:class:`ParameterBinder`.

Equality and membership
-----------------------
The ``polarity`` flag selects the equals family (``=`` / ``IN``) or the
not-equals family (``!=`` / ``NOT IN``).  ``$ne`` is compiled by recursing
into the same routine with the polarity flipped, so ``{"$ne": [..]}`` becomes
``NOT IN`` and ``{"$ne": x}`` becomes ``!=``.

Operator objects without any recognized operator produce no clause and a
:class:`CompilationDiagnostic` (only reachable when criteria were parsed
with ``strict=False``).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..exceptions import CriteriaValidationError
from .ast import Condition, Membership, OperatorSet, Scalar, constraint_for
from .operators import CriteriaOperator, Polarity
from .sql_operators import DEFAULT_SQL_REGISTRY

if TYPE_CHECKING:
    from .ast import Criteria
    from .binder import ParameterBinder
    from .strategy import SqlOperatorRegistry

logger = logging.getLogger("tabular_crud.criteria")

Quoter = Callable[[str], str]


def quote_identifier(name: str) -> str:
    """ANSI double-quote an identifier, escaping embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


@dataclass(frozen=True)
class CompilationDiagnostic:
    """Non-fatal finding reported while compiling criteria."""

    field: str
    message: str
    unrecognized: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def compile_criteria(
    criteria: Criteria,
    where: list[str],
    binder: ParameterBinder,
    polarity: Polarity = Polarity.EQUAL,
    *,
    quote: Quoter | None = None,
    registry: SqlOperatorRegistry | None = None,
    diagnostics: list[CompilationDiagnostic] | None = None,
) -> None:
    """
    Append WHERE fragments for *criteria* to *where*.

    Args:
        criteria: Parsed criteria.
        where: Output list of clause fragments (joined with ``AND`` later).
        binder: Running placeholder counter that owns the argument vector.
        polarity: Equals family or not-equals family.
        quote: Identifier quoting function. Defaults to ANSI double quotes.
        registry: Optional custom operator registry.  Falls back to
            ``DEFAULT_SQL_REGISTRY``.
        diagnostics: Optional output list for non-fatal findings.
    """
    compiler = _Compiler(
        where=where,
        binder=binder,
        quote=quote or quote_identifier,
        registry=registry or DEFAULT_SQL_REGISTRY,
        diagnostics=diagnostics,
    )
    for condition in criteria:
        compiler.condition(condition, polarity)


# ---------------------------------------------------------------------------
# Internal compilation
# ---------------------------------------------------------------------------


class _Compiler:
    def __init__(
        self,
        *,
        where: list[str],
        binder: ParameterBinder,
        quote: Quoter,
        registry: SqlOperatorRegistry,
        diagnostics: list[CompilationDiagnostic] | None,
    ) -> None:
        self.where = where
        self.binder = binder
        self.quote = quote
        self.registry = registry
        self.diagnostics = diagnostics

    def condition(self, condition: Condition, polarity: Polarity) -> None:
        column = self.quote(condition.field)
        constraint = condition.constraint

        if isinstance(constraint, Membership):
            self._membership(column, constraint, polarity)
        elif isinstance(constraint, OperatorSet):
            self._operator_set(condition.field, column, constraint)
        elif isinstance(constraint, Scalar):
            comparator = "=" if polarity is Polarity.EQUAL else "!="
            placeholder = self.binder.bind(constraint.value)
            self.where.append(f"{column} {comparator} {placeholder}")
        else:  # pragma: no cover - Criteria.parse never produces this
            raise CriteriaValidationError(
                f"Unsupported constraint {constraint!r}", path=condition.field
            )

    def _membership(
        self, column: str, constraint: Membership, polarity: Polarity
    ) -> None:
        if not constraint.values:
            # IN () is not valid SQL; an empty set matches nothing, and
            # excluding an empty set excludes nothing.
            if polarity is Polarity.EQUAL:
                self.where.append("1 = 0")
            return
        keyword = "IN" if polarity is Polarity.EQUAL else "NOT IN"
        placeholders = ", ".join(self.binder.bind_all(constraint.values))
        self.where.append(f"{column} {keyword} ({placeholders})")

    def _operator_set(self, field: str, column: str, constraint: OperatorSet) -> None:
        if not constraint.entries:
            self._report_no_operator(field, constraint)
            return

        for op, value in constraint.entries:
            if op is CriteriaOperator.NE:
                self._not_equal(field, value)
            else:
                placeholder = self.binder.bind(value)
                self.where.append(self.registry.render(op, column, placeholder))

    def _not_equal(self, field: str, value: Any) -> None:
        if isinstance(value, (Mapping, OperatorSet)):
            raise CriteriaValidationError(
                "'$ne' expects a scalar or a sequence of scalars",
                path=field,
            )
        self.condition(
            Condition(field, constraint_for(value, field=field)),
            Polarity.NOT_EQUAL,
        )

    def _report_no_operator(self, field: str, constraint: OperatorSet) -> None:
        message = "No object modifier set on object query criteria"
        logger.warning(
            "%s: field=%s unrecognized=%s", message, field, constraint.unrecognized
        )
        if self.diagnostics is not None:
            self.diagnostics.append(
                CompilationDiagnostic(
                    field=field,
                    message=message,
                    unrecognized=constraint.unrecognized,
                )
            )
