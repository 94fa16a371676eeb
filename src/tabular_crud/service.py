"""SqlService: SQLAlchemy async engine lifecycle, sessions and raw execution."""

from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import create_async_engine

from .config import ServiceSettings
from .exceptions import ConfigurationError, PersistenceError, SessionManagementError
from .query.dialect import SqlDialect
from .reporting import LoggingReporter, safe_report

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

    from .reporting import Reporter

logger = logging.getLogger("tabular_crud.service")

Row = dict[str, Any]


@dataclass(frozen=True)
class QueryResult:
    """Rows returned by a statement and the number of rows it touched."""

    rows: list[Row] = field(default_factory=list)
    row_count: int = 0

    def first(self) -> Row | None:
        return self.rows[0] if self.rows else None


def is_suppressed(error: BaseException, suppress: re.Pattern[str] | str | None) -> bool:
    """True when *suppress* matches the error text."""
    if suppress is None:
        return False
    pattern = re.compile(suppress) if isinstance(suppress, str) else suppress
    return pattern.search(str(error)) is not None


class SqlService:
    """
    Pool collaborator wrapping a SQLAlchemy :class:`AsyncEngine`.

    Either pass ``settings`` (the engine is created on :meth:`connect` and
    disposed on :meth:`close`) or an existing ``engine`` owned by the caller.

    Statements are executed as driver SQL (``exec_driver_sql``) with
    positional arguments, in the paramstyle reported by :attr:`dialect`.
    """

    def __init__(
        self,
        settings: ServiceSettings | None = None,
        *,
        engine: AsyncEngine | None = None,
        reporter: Reporter | None = None,
    ) -> None:
        if settings is None and engine is None:
            raise ConfigurationError(
                "SqlService requires either 'settings' or an existing 'engine'"
            )
        if settings is None:
            assert engine is not None
            settings = ServiceSettings(
                url=engine.url.render_as_string(hide_password=False)
            )
        self.settings = settings
        self.reporter: Reporter = reporter or LoggingReporter()
        self._engine: AsyncEngine | None = engine
        self._owns_engine = engine is None
        self._dialect: SqlDialect | None = None

    # ------------------------------------------------------------------ #
    # Lifecycle                                                           #
    # ------------------------------------------------------------------ #

    async def connect(self) -> AsyncEngine:
        """Create and cache the engine. Idempotent."""
        if self._engine is not None:
            return self._engine
        try:
            self._engine = create_async_engine(
                self.settings.url, **self.settings.engine_kwargs()
            )
        except Exception as e:  # noqa: BLE001
            raise PersistenceError(f"Failed to create engine: {e}") from e
        logger.debug("Engine created for dialect %s", self._engine.dialect.name)
        return self._engine

    @property
    def engine(self) -> AsyncEngine:
        """Return the engine; raises if not connected."""
        if self._engine is None:
            raise PersistenceError("Not connected; call connect() first")
        return self._engine

    @property
    def dialect(self) -> SqlDialect:
        if self._dialect is None:
            self._dialect = SqlDialect.from_sqlalchemy(self.engine.dialect)
        return self._dialect

    async def close(self) -> None:
        """Dispose the engine if this service created it."""
        if self._engine is not None and self._owns_engine:
            await self._engine.dispose()
            self._engine = None
            self._dialect = None

    async def health_check(self) -> bool:
        """Run ``SELECT 1``; return True if the database is reachable."""
        if self._engine is None:
            return False
        try:
            async with self._engine.connect() as conn:
                await conn.exec_driver_sql("SELECT 1")
            return True
        except Exception:  # noqa: BLE001
            return False

    # ------------------------------------------------------------------ #
    # Sessions                                                            #
    # ------------------------------------------------------------------ #

    async def acquire_session(self) -> AsyncConnection:
        """Check a connection out of the pool; pair with :meth:`release_session`."""
        try:
            return await self.engine.connect()
        except PersistenceError:
            raise
        except Exception as e:  # noqa: BLE001
            raise SessionManagementError(f"Failed to acquire session: {e}") from e

    async def release_session(self, session: AsyncConnection) -> None:
        """Return *session* to the pool, rolling back anything uncommitted."""
        try:
            await session.close()
        except Exception as e:  # noqa: BLE001
            raise SessionManagementError(f"Failed to release session: {e}") from e

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncConnection]:
        """Scoped session: released on every exit path."""
        conn = await self.acquire_session()
        try:
            yield conn
        finally:
            await self.release_session(conn)

    # ------------------------------------------------------------------ #
    # Execution                                                           #
    # ------------------------------------------------------------------ #

    async def execute(
        self,
        sql: str,
        args: Sequence[Any] = (),
        *,
        session: AsyncConnection | None = None,
        suppress: re.Pattern[str] | str | None = None,
    ) -> QueryResult:
        """
        Execute *sql* with positional *args*.

        Without *session* a pooled connection is checked out, the statement
        runs in its own transaction (committed on success) and the
        connection is released.  A caller-supplied session is used as is:
        it is never committed, rolled back or released here.

        Failures are reported unless *suppress* matches the error text, and
        always re-raised unchanged.
        """
        params = tuple(args)
        logger.debug("Executing %s args=%r", sql, params)
        try:
            if session is not None:
                return await self._run(session, sql, params)
            async with self.engine.connect() as conn:
                result = await self._run(conn, sql, params)
                await conn.commit()
                return result
        except Exception as exc:
            if not is_suppressed(exc, suppress):
                await safe_report(
                    self.reporter,
                    "Error executing query",
                    exc,
                    sql=sql,
                    args=params,
                )
            raise

    @staticmethod
    async def _run(
        conn: AsyncConnection, sql: str, params: tuple[Any, ...]
    ) -> QueryResult:
        cursor = await conn.exec_driver_sql(sql, params or None)
        if cursor.returns_rows:
            rows = [dict(mapping) for mapping in cursor.mappings().all()]
            return QueryResult(rows=rows, row_count=len(rows))
        return QueryResult(rows=[], row_count=max(cursor.rowcount, 0))
