"""
SQL dialect facts needed to render statement text by hand.

Everything is read off the SQLAlchemy dialect of the engine that will run the
statement, so compiled placeholders always match what the DBAPI driver
expects (``$n`` for asyncpg, ``?`` for aiosqlite, ``%s`` for psycopg/aiomysql).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..criteria.binder import ParameterBinder
from ..criteria.compiler import quote_identifier

if TYPE_CHECKING:
    from sqlalchemy.engine import Dialect

# Dialects that refuse OFFSET without LIMIT, with their "unbounded" LIMIT value.
_NO_LIMIT_VALUES: dict[str, int] = {
    "sqlite": -1,
    "mysql": 18446744073709551615,
    "mariadb": 18446744073709551615,
}


@dataclass(frozen=True)
class SqlDialect:
    """
    Quoting, paramstyle and pagination rules of one database backend.

    The default instance is PostgreSQL-shaped: ANSI quoting, ``$n``
    placeholders, ``OFFSET p LIMIT p``.
    """

    name: str = "postgresql"
    paramstyle: str = "numeric_dollar"
    quote: Callable[[str], str] = field(default=quote_identifier, compare=False)
    supports_bare_offset: bool = True
    no_limit_value: int | None = None

    @classmethod
    def from_sqlalchemy(cls, dialect: Dialect) -> SqlDialect:
        name = dialect.name
        no_limit = _NO_LIMIT_VALUES.get(name)
        return cls(
            name=name,
            paramstyle=dialect.paramstyle,
            quote=dialect.identifier_preparer.quote_identifier,
            supports_bare_offset=no_limit is None,
            no_limit_value=no_limit,
        )

    def binder(self) -> ParameterBinder:
        """Fresh placeholder counter in this dialect's paramstyle."""
        return ParameterBinder(self.paramstyle)

    def qualified(self, schema: str | None, table: str) -> str:
        """``"schema"."table"``, or just ``"table"`` without a schema."""
        if not schema:
            return self.quote(table)
        return f"{self.quote(schema)}.{self.quote(table)}"

    def pagination(
        self,
        binder: ParameterBinder,
        skip: int | None,
        take: int | None,
    ) -> list[str]:
        """
        Render OFFSET/LIMIT fragments, binding their values after every
        argument already held by *binder*.
        """
        if skip is None and take is None:
            return []

        if self.supports_bare_offset:
            parts: list[str] = []
            if skip is not None:
                parts.append(f"OFFSET {binder.bind(skip)}")
            if take is not None:
                parts.append(f"LIMIT {binder.bind(take)}")
            return parts

        limit = take if take is not None else self.no_limit_value
        parts = [f"LIMIT {binder.bind(limit)}"]
        if skip is not None:
            parts.append(f"OFFSET {binder.bind(skip)}")
        return parts


POSTGRES_DIALECT = SqlDialect()
