"""
Schema lifecycle initializer.

``SchemaInitializer.run()`` checks out a dedicated session, opens a
transaction and walks::

    NOT_CHECKED -> SCHEMA_CHECKED -> TABLE_CHECKED -> COMMITTED
                                                   \\-> ROLLED_BACK

Exactly one of ``create_schema`` / ``update_schema`` fires, then exactly one
of ``create_table`` / ``update_table``.  Existence is checked through the
SQLAlchemy inspector on the same connection, so hooks see their own DDL.
Any failure is reported, rolled back and re-raised; the session is released
on every path.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sqlalchemy import inspect

from .exceptions import ConfigurationError
from .reporting import safe_report

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncTransaction

    from .query.dialect import SqlDialect
    from .reporting import Reporter
    from .service import QueryResult, SqlService

logger = logging.getLogger("tabular_crud.schema")


class InitState(str, Enum):
    NOT_CHECKED = "not_checked"
    SCHEMA_CHECKED = "schema_checked"
    TABLE_CHECKED = "table_checked"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class SchemaContext:
    """What a schema hook gets: the open transactional session and names."""

    service: SqlService
    session: AsyncConnection
    schema: str
    table: str

    @property
    def dialect(self) -> SqlDialect:
        return self.service.dialect

    @property
    def quoted_schema(self) -> str:
        return self.dialect.quote(self.schema)

    @property
    def quoted_table(self) -> str:
        return self.dialect.quote(self.table)

    @property
    def qualified_table(self) -> str:
        return self.dialect.qualified(self.schema, self.table)

    async def execute(self, sql: str, *args: Any) -> QueryResult:
        """Run *sql* inside the initializer's transaction."""
        return await self.service.execute(sql, args, session=self.session)


@runtime_checkable
class SchemaHooks(Protocol):
    """Callbacks fired by :class:`SchemaInitializer`."""

    async def create_schema(self, context: SchemaContext) -> None: ...

    async def update_schema(self, context: SchemaContext) -> None: ...

    async def create_table(self, context: SchemaContext) -> None: ...

    async def update_table(self, context: SchemaContext) -> None: ...


Hook = Callable[[SchemaContext], Awaitable[None]]


class DefaultSchemaHooks:
    """
    Hook set assembled from optional callables.

    Defaults:

    * ``create_schema``: ``CREATE SCHEMA "<schema>"``;
    * ``update_schema`` / ``update_table``: nothing;
    * ``create_table``: reports and raises :class:`ConfigurationError`, since
      only the application knows the table layout.
    """

    def __init__(
        self,
        *,
        create_schema: Hook | None = None,
        update_schema: Hook | None = None,
        create_table: Hook | None = None,
        update_table: Hook | None = None,
        reporter: Reporter | None = None,
    ) -> None:
        self._create_schema = create_schema
        self._update_schema = update_schema
        self._create_table = create_table
        self._update_table = update_table
        self.reporter = reporter

    async def create_schema(self, context: SchemaContext) -> None:
        if self._create_schema is not None:
            await self._create_schema(context)
            return
        logger.debug("Creating schema %s", context.schema)
        await context.execute(f"CREATE SCHEMA {context.quoted_schema}")

    async def update_schema(self, context: SchemaContext) -> None:
        if self._update_schema is not None:
            await self._update_schema(context)

    async def create_table(self, context: SchemaContext) -> None:
        if self._create_table is not None:
            await self._create_table(context)
            return
        error = ConfigurationError(
            "A create_table hook must be provided to create table "
            f"{context.schema}.{context.table}"
        )
        await safe_report(
            self.reporter or context.service.reporter,
            str(error),
            error,
            schema=context.schema,
            table=context.table,
        )
        raise error

    async def update_table(self, context: SchemaContext) -> None:
        if self._update_table is not None:
            await self._update_table(context)


class SchemaInitializer:
    """Transactional existence checks plus hook dispatch for one table."""

    def __init__(
        self,
        service: SqlService,
        schema: str,
        table: str,
        hooks: SchemaHooks | None = None,
        *,
        reporter: Reporter | None = None,
    ) -> None:
        self.service = service
        self.schema = schema
        self.table = table
        self.hooks: SchemaHooks = hooks or DefaultSchemaHooks(reporter=reporter)
        self.reporter = reporter
        self.state = InitState.NOT_CHECKED

    async def run(self) -> None:
        """Check schema then table, firing one hook for each. Idempotent."""
        self.state = InitState.NOT_CHECKED
        session = await self.service.acquire_session()
        transaction: AsyncTransaction | None = None
        try:
            transaction = await session.begin()
            context = SchemaContext(self.service, session, self.schema, self.table)
            await self._check_schema(context)
            self.state = InitState.SCHEMA_CHECKED
            await self._check_table(context)
            self.state = InitState.TABLE_CHECKED
            await transaction.commit()
            self.state = InitState.COMMITTED
            logger.debug("Initialized %s.%s", self.schema, self.table)
        except Exception as exc:
            await safe_report(
                self.reporter or self.service.reporter,
                "Failed to initialize",
                exc,
                schema=self.schema,
                table=self.table,
            )
            if transaction is not None:
                with contextlib.suppress(Exception):
                    await transaction.rollback()
            self.state = InitState.ROLLED_BACK
            raise
        finally:
            await self.service.release_session(session)

    async def _check_schema(self, context: SchemaContext) -> None:
        if await self.schema_exists(context.session):
            logger.debug("Schema %s exists, calling update_schema hook", self.schema)
            await self.hooks.update_schema(context)
        else:
            logger.debug("Schema %s missing, calling create_schema hook", self.schema)
            await self.hooks.create_schema(context)

    async def _check_table(self, context: SchemaContext) -> None:
        if await self.table_exists(context.session):
            logger.debug("Table %s exists, calling update_table hook", self.table)
            await self.hooks.update_table(context)
        else:
            logger.debug("Table %s missing, calling create_table hook", self.table)
            await self.hooks.create_table(context)

    async def schema_exists(self, session: AsyncConnection) -> bool:
        schema = self.schema
        return bool(
            await session.run_sync(lambda conn: inspect(conn).has_schema(schema))
        )

    async def table_exists(self, session: AsyncConnection) -> bool:
        schema, table = self.schema, self.table
        return bool(
            await session.run_sync(
                lambda conn: inspect(conn).has_table(table, schema=schema)
            )
        )
