"""
Shared fixtures: a file-backed SQLite database (aiosqlite) with a ``users``
table in the ``main`` schema, seeded with three live rows and one tombstone.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from tabular_crud import CrudService, DefaultSchemaHooks, SchemaContext, SqlService

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

USERS_DDL = """
CREATE TABLE {table} (
    id TEXT PRIMARY KEY,
    username TEXT NOT NULL UNIQUE,
    email TEXT,
    first_name TEXT,
    last_name TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    created TEXT,
    updated TEXT
)
"""

SEED_USERS: list[dict[str, Any]] = [
    {
        "id": "a",
        "username": "alice",
        "email": "alice@example.com",
        "first_name": "Alice",
        "last_name": "Anders",
        "status": "active",
        "created": "2024-01-01T00:00:01",
    },
    {
        "id": "b",
        "username": "bob",
        "email": "bob@example.com",
        "first_name": "Bob",
        "last_name": "Brown",
        "status": "active",
        "created": "2024-01-01T00:00:02",
    },
    {
        "id": "c",
        "username": "carol",
        "email": "carol@example.com",
        "first_name": "Carol",
        "last_name": "Brown",
        "status": "pending",
        "created": "2024-01-01T00:00:03",
    },
    {
        "id": "d",
        "username": "dave",
        "email": "dave@example.com",
        "first_name": "Dave",
        "last_name": "Dunn",
        "status": "dead",
        "created": "2024-01-01T00:00:04",
    },
]


async def create_users_table(context: SchemaContext) -> None:
    await context.execute(USERS_DDL.format(table=context.qualified_table))


@pytest.fixture()
def reporter() -> AsyncMock:
    return AsyncMock()


@pytest.fixture()
async def service(
    tmp_path: Path, reporter: AsyncMock
) -> AsyncGenerator[SqlService, None]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'crud.db'}")
    svc = SqlService(engine=engine, reporter=reporter)
    yield svc
    await engine.dispose()


@pytest.fixture()
def hooks() -> DefaultSchemaHooks:
    return DefaultSchemaHooks(create_table=create_users_table)


@pytest.fixture()
async def crud(service: SqlService, hooks: DefaultSchemaHooks) -> CrudService:
    users = CrudService(
        service=service,
        schema="main",
        table="users",
        modifiable_keys=["username", "first_name", "last_name"],
        hooks=hooks,
    )
    await users.init()
    return users


@pytest.fixture()
async def seeded(crud: CrudService) -> CrudService:
    for row in SEED_USERS:
        await crud.create(row)
    return crud


@pytest.fixture()
def seed_rows() -> list[dict[str, Any]]:
    return [dict(row) for row in SEED_USERS]
