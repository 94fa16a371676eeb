"""
Statement assembly for a single table.

Each ``build_*`` method returns a :class:`Statement`: SQL text, the matching
positional argument vector and any non-fatal compilation diagnostics.  A
single :class:`ParameterBinder` is threaded through every fragment of one
statement (SET list, WHERE clauses, pagination), so placeholder numbering
always follows argument order.

Concealment is not applied here; callers pass criteria that were already
merged with :func:`conceal_tombstones` where the operation requires it.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..criteria.compiler import CompilationDiagnostic, compile_criteria
from ..exceptions import UsageError
from .dialect import POSTGRES_DIALECT, SqlDialect

if TYPE_CHECKING:
    from ..criteria.ast import Criteria
    from ..criteria.binder import ParameterBinder
    from ..criteria.strategy import SqlOperatorRegistry
    from .options import QueryOptions

logger = logging.getLogger("tabular_crud.query")


@dataclass(frozen=True)
class Statement:
    """Assembled SQL text plus its positional arguments."""

    sql: str
    args: tuple[Any, ...] = ()
    diagnostics: tuple[CompilationDiagnostic, ...] = field(default=(), compare=False)


class QueryAssembler:
    """
    Builds INSERT/SELECT/UPDATE/DELETE statements against one table.

    Args:
        table: Table name.
        schema: Schema name, ``None`` for an unqualified table.
        id_field: Primary identifier column.
        dialect: Quoting, paramstyle and pagination rules.
        registry: Optional operator registry forwarded to the compiler.
    """

    def __init__(
        self,
        table: str,
        *,
        schema: str | None = None,
        id_field: str = "id",
        dialect: SqlDialect = POSTGRES_DIALECT,
        registry: SqlOperatorRegistry | None = None,
    ) -> None:
        self.table = table
        self.schema = schema
        self.id_field = id_field
        self.dialect = dialect
        self.registry = registry

    @property
    def target(self) -> str:
        return self.dialect.qualified(self.schema, self.table)

    # ------------------------------------------------------------------ #
    # INSERT                                                              #
    # ------------------------------------------------------------------ #

    def build_insert(self, row: Mapping[str, Any]) -> Statement:
        binder = self.dialect.binder()
        if not row:
            sql = f"INSERT INTO {self.target} DEFAULT VALUES RETURNING *"
            return self._finish(sql, binder)

        columns = ", ".join(self.dialect.quote(name) for name in row)
        placeholders = ", ".join(binder.bind_all(row.values()))
        sql = (
            f"INSERT INTO {self.target} ({columns}) "
            f"VALUES ({placeholders}) RETURNING *"
        )
        return self._finish(sql, binder)

    # ------------------------------------------------------------------ #
    # SELECT                                                              #
    # ------------------------------------------------------------------ #

    def build_select(self, criteria: Criteria, options: QueryOptions) -> Statement:
        """
        SELECT with projection, WHERE, ORDER BY and pagination.

        In count mode the projection becomes ``COUNT(*) AS count`` and
        projection, ordering and pagination options are ignored.
        """
        binder = self.dialect.binder()
        diagnostics: list[CompilationDiagnostic] = []

        if options.is_count:
            projection = "COUNT(*) AS count"
        else:
            projection = self._projection(options)
        parts = [f"SELECT {projection} FROM {self.target}"]
        parts.extend(self._where(criteria, binder, diagnostics))

        if not options.is_count:
            if options.sort:
                parts.append("ORDER BY " + self._ordering(options))
            parts.extend(self.dialect.pagination(binder, options.skip, options.take))

        return self._finish(" ".join(parts), binder, diagnostics)

    def _projection(self, options: QueryOptions) -> str:
        if options.fields is None:
            return "*"
        projection = dict(options.fields)
        # The identifier is returned unless explicitly excluded.
        if self.id_field not in projection:
            projection[self.id_field] = 1
        included = [name for name, flag in projection.items() if flag]
        if not included:
            raise UsageError("Projection excludes every column")
        return ", ".join(self.dialect.quote(name) for name in included)

    def _ordering(self, options: QueryOptions) -> str:
        assert options.sort is not None
        return ", ".join(
            f"{self.dialect.quote(name)} {'ASC' if direction > 0 else 'DESC'}"
            for name, direction in options.sort
        )

    # ------------------------------------------------------------------ #
    # UPDATE                                                              #
    # ------------------------------------------------------------------ #

    def build_update_by_id(self, row: Mapping[str, Any]) -> Statement:
        """``UPDATE .. SET <every non-id column> WHERE id = p RETURNING *``."""
        binder = self.dialect.binder()
        assignments = self._assignments(row, binder)
        id_placeholder = binder.bind(row[self.id_field])
        sql = (
            f"UPDATE {self.target} SET {assignments} "
            f"WHERE {self.dialect.quote(self.id_field)} = {id_placeholder} RETURNING *"
        )
        return self._finish(sql, binder)

    def build_bulk_update(
        self, criteria: Criteria, patch: Mapping[str, Any]
    ) -> Statement:
        binder = self.dialect.binder()
        diagnostics: list[CompilationDiagnostic] = []
        parts = [f"UPDATE {self.target} SET {self._assignments(patch, binder)}"]
        parts.extend(self._where(criteria, binder, diagnostics))
        return self._finish(" ".join(parts), binder, diagnostics)

    def _assignments(self, values: Mapping[str, Any], binder: ParameterBinder) -> str:
        pairs = [
            f"{self.dialect.quote(name)} = {binder.bind(value)}"
            for name, value in values.items()
            if name != self.id_field
        ]
        if not pairs:
            raise UsageError(
                f"Nothing to update on {self.table}: "
                f"no columns besides '{self.id_field}'"
            )
        return ", ".join(pairs)

    # ------------------------------------------------------------------ #
    # DELETE                                                              #
    # ------------------------------------------------------------------ #

    def build_delete_by_id(self, id_value: Any) -> Statement:
        binder = self.dialect.binder()
        placeholder = binder.bind(id_value)
        sql = (
            f"DELETE FROM {self.target} "
            f"WHERE {self.dialect.quote(self.id_field)} = {placeholder} RETURNING *"
        )
        return self._finish(sql, binder)

    def build_bulk_delete(self, criteria: Criteria) -> Statement:
        binder = self.dialect.binder()
        diagnostics: list[CompilationDiagnostic] = []
        parts = [f"DELETE FROM {self.target}"]
        parts.extend(self._where(criteria, binder, diagnostics))
        return self._finish(" ".join(parts), binder, diagnostics)

    # ------------------------------------------------------------------ #
    # Helpers                                                             #
    # ------------------------------------------------------------------ #

    def _where(
        self,
        criteria: Criteria,
        binder: ParameterBinder,
        diagnostics: list[CompilationDiagnostic],
    ) -> list[str]:
        clauses: list[str] = []
        compile_criteria(
            criteria,
            clauses,
            binder,
            quote=self.dialect.quote,
            registry=self.registry,
            diagnostics=diagnostics,
        )
        if not clauses:
            return []
        return ["WHERE " + " AND ".join(clauses)]

    @staticmethod
    def _finish(
        sql: str,
        binder: ParameterBinder,
        diagnostics: list[CompilationDiagnostic] | None = None,
    ) -> Statement:
        args = tuple(binder.args)
        logger.debug("Assembled statement: %s args=%r", sql, args)
        return Statement(sql=sql, args=args, diagnostics=tuple(diagnostics or ()))
