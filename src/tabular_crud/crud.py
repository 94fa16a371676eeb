"""
CrudService: Mongo-style CRUD over a single table with soft-delete concealment.

Read and bulk-mutation paths (``retrieve``, ``find``, ``count``,
``bulk_update``, ``bulk_delete``, ``bulk_delete_permanently``) merge the
tombstone exclusion into their criteria unless ``conceal=False`` is passed.
Identified-row mutations (``create``, ``update``, ``delete``,
``delete_permanently``) never conceal: the caller already holds the row.

Usage::

    service = SqlService(ServiceSettings(url="postgresql+asyncpg://..."))
    await service.connect()
    users = CrudService(
        service=service,
        schema="app",
        table="users",
        modifiable_keys=["username", "email"],
    )
    await users.init()
    active = await users.find({"status": "active"}, {"sort": {"created": -1}})
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .config import CrudConfig
from .criteria.ast import Criteria
from .exceptions import MissingIdentifierError
from .query.assembler import QueryAssembler
from .query.concealment import conceal_tombstones
from .query.options import QueryOptions
from .reporting import safe_report
from .schema import SchemaInitializer

if TYPE_CHECKING:
    from .query.assembler import Statement
    from .reporting import Reporter
    from .schema import SchemaHooks
    from .service import QueryResult, Row, SqlService

logger = logging.getLogger("tabular_crud.crud")

CriteriaLike = Criteria | Mapping[str, Any] | None
OptionsLike = QueryOptions | Mapping[str, Any] | None


class CrudService:
    """
    Generic CRUD operations for one table.

    Accepts a ready :class:`CrudConfig` or the raw options it validates
    (``service``, ``schema``, ``table``, ``id_field``, ``status_field``,
    ``updated_field``, ``modifiable_keys``, ``deleted_status``,
    ``conceal_dead_resources``, ``strict_operators``, ``clock``,
    ``reporter``, ``operator_registry``).

    Schema and table bootstrap is delegated to ``hooks`` (see
    :class:`~tabular_crud.schema.DefaultSchemaHooks`).
    """

    def __init__(
        self,
        config: CrudConfig | None = None,
        *,
        hooks: SchemaHooks | None = None,
        **options: Any,
    ) -> None:
        self.config = config if config is not None else CrudConfig.load(options)
        self.hooks = hooks
        self._assembler: QueryAssembler | None = None
        self._initializer: SchemaInitializer | None = None

    # ------------------------------------------------------------------ #
    # Configuration accessors                                             #
    # ------------------------------------------------------------------ #

    @property
    def service(self) -> SqlService:
        service: SqlService = self.config.service
        return service

    @property
    def schema(self) -> str:
        assert self.config.schema_name is not None
        return self.config.schema_name

    @property
    def table(self) -> str:
        return self.config.table

    @property
    def id_field(self) -> str:
        return self.config.id_field

    @property
    def reporter(self) -> Reporter:
        reporter: Reporter = self.config.reporter or self.service.reporter
        return reporter

    @property
    def assembler(self) -> QueryAssembler:
        # Built lazily: the dialect is only known once the engine exists.
        if self._assembler is None:
            self._assembler = QueryAssembler(
                self.table,
                schema=self.schema,
                id_field=self.id_field,
                dialect=self.service.dialect,
                registry=self.config.operator_registry,
            )
        return self._assembler

    # ------------------------------------------------------------------ #
    # Lifecycle                                                           #
    # ------------------------------------------------------------------ #

    async def init(self) -> None:
        """Ensure schema and table exist, firing the configured hooks."""
        if self._initializer is None:
            self._initializer = SchemaInitializer(
                self.service,
                self.schema,
                self.table,
                self.hooks,
                reporter=self.config.reporter,
            )
        logger.debug("Initializing %s.%s", self.schema, self.table)
        await self._initializer.run()

    @property
    def initializer(self) -> SchemaInitializer | None:
        return self._initializer

    # ------------------------------------------------------------------ #
    # Create / read                                                       #
    # ------------------------------------------------------------------ #

    async def create(self, row: Mapping[str, Any], options: OptionsLike = None) -> Row:
        """Insert *row* and return the stored row."""
        opts = QueryOptions.coerce(options)
        result = await self._execute(self.assembler.build_insert(row), opts)
        inserted = result.first()
        assert inserted is not None
        return inserted

    async def retrieve(self, id_value: Any, options: OptionsLike = None) -> Row | None:
        """Fetch one row by id; ``None`` when absent or concealed.

        No statement is issued when *id_value* is ``None``.  Pagination and
        count mode in *options* are ignored; projection, concealment and
        session still apply.
        """
        if id_value is None:
            return None
        opts = QueryOptions.coerce(options).for_single_row()
        rows = await self.find({self.id_field: id_value}, opts)
        return rows[0] if rows else None

    async def find(
        self, criteria: CriteriaLike = None, options: OptionsLike = None
    ) -> list[Row]:
        opts = QueryOptions.coerce(options)
        merged = self._read_criteria(criteria, opts)
        statement = self.assembler.build_select(merged, opts)
        result = await self._execute(statement, opts)
        return result.rows

    async def count(
        self, criteria: CriteriaLike = None, options: OptionsLike = None
    ) -> int:
        """Number of matching rows; projection, sort and pagination are ignored."""
        opts = QueryOptions.coerce(options).for_count()
        merged = self._read_criteria(criteria, opts)
        statement = self.assembler.build_select(merged, opts)
        result = await self._execute(statement, opts)
        row = result.first()
        if not row:
            return 0
        return int(row.get("count") or 0)

    # ------------------------------------------------------------------ #
    # Update                                                              #
    # ------------------------------------------------------------------ #

    async def update(
        self,
        row: Mapping[str, Any],
        patch: Mapping[str, Any] | None = None,
        options: OptionsLike = None,
    ) -> Row | None:
        """
        Save *row* by id, after copying allow-listed *patch* keys onto it.

        Every non-id column of the row is written; ``updated_field`` is
        stamped with the configured clock.  Returns the stored row, or
        ``None`` when no row has that id.
        """
        opts = QueryOptions.coerce(options)
        await self._require_id(row, "update", patch=patch)

        target = dict(row)
        self.apply_patch(target, patch)
        if self.config.updated_field:
            target[self.config.updated_field] = self.config.clock()

        result = await self._execute(self.assembler.build_update_by_id(target), opts)
        return result.first()

    async def bulk_update(
        self,
        criteria: CriteriaLike,
        patch: Mapping[str, Any],
        options: OptionsLike = None,
    ) -> int:
        """Set *patch* columns on every matching row; returns the row count."""
        opts = QueryOptions.coerce(options)
        values = dict(patch)
        if self.config.updated_field:
            values[self.config.updated_field] = self.config.clock()
        statement = self.assembler.build_bulk_update(
            self._read_criteria(criteria, opts), values
        )
        result = await self._execute(statement, opts)
        return result.row_count

    def apply_patch(
        self, target: dict[str, Any], patch: Mapping[str, Any] | None
    ) -> dict[str, Any]:
        """Copy modifiable keys present in *patch* onto *target*."""
        if not patch:
            return target
        for key in self.config.modifiable_keys:
            if key in patch:
                target[key] = patch[key]
        return target

    # ------------------------------------------------------------------ #
    # Delete                                                              #
    # ------------------------------------------------------------------ #

    async def delete(
        self, row: Mapping[str, Any], options: OptionsLike = None
    ) -> Row | None:
        """Soft delete: set the status to the tombstone value and save."""
        await self._require_id(row, "delete")
        tombstoned = {**row, self.config.status_field: self.config.deleted_status}
        return await self.update(tombstoned, None, options)

    async def bulk_delete(
        self, criteria: CriteriaLike = None, options: OptionsLike = None
    ) -> int:
        return await self.bulk_update(
            criteria,
            {self.config.status_field: self.config.deleted_status},
            options,
        )

    async def delete_permanently(
        self, row: Mapping[str, Any], options: OptionsLike = None
    ) -> Row | None:
        """Hard delete by id; returns the removed row or ``None``."""
        opts = QueryOptions.coerce(options)
        await self._require_id(row, "delete")
        statement = self.assembler.build_delete_by_id(row[self.id_field])
        result = await self._execute(statement, opts)
        return result.first()

    async def bulk_delete_permanently(
        self, criteria: CriteriaLike = None, options: OptionsLike = None
    ) -> int:
        opts = QueryOptions.coerce(options)
        merged = self._read_criteria(criteria, opts)
        statement = self.assembler.build_bulk_delete(merged)
        result = await self._execute(statement, opts)
        return result.row_count

    # ------------------------------------------------------------------ #
    # Internals                                                           #
    # ------------------------------------------------------------------ #

    def _read_criteria(self, criteria: CriteriaLike, options: QueryOptions) -> Criteria:
        parsed = Criteria.parse(criteria, strict=self.config.strict_operators)
        if not (self.config.conceal_dead_resources and options.conceal):
            return parsed
        return conceal_tombstones(
            parsed,
            status_field=self.config.status_field,
            deleted_status=self.config.deleted_status,
        )

    async def _require_id(
        self, row: Mapping[str, Any], operation: str, **context: Any
    ) -> None:
        if row.get(self.id_field) is not None:
            return
        error = MissingIdentifierError(operation, self.id_field)
        await safe_report(
            self.reporter,
            str(error),
            error,
            row=dict(row),
            id_field=self.id_field,
            **context,
        )
        raise error

    async def _execute(
        self, statement: Statement, options: QueryOptions
    ) -> QueryResult:
        for diagnostic in statement.diagnostics:
            await safe_report(
                self.reporter,
                diagnostic.message,
                field=diagnostic.field,
                unrecognized=list(diagnostic.unrecognized),
                table=self.table,
            )
        return await self.service.execute(
            statement.sql,
            statement.args,
            session=options.session,
            suppress=options.suppress,
        )
