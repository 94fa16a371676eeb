"""
Integration tests for CrudService against SQLite (aiosqlite).

Covers:
- create / retrieve round trip
- find with equality, membership, operators, projection, sort, pagination
- concealment of tombstoned rows on every read and bulk path
- update with allow-listed patches and the updated stamp
- soft and permanent deletes, single and bulk
- caller-supplied sessions (transactions owned by the caller)
- error reporting and suppression
"""

from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from tabular_crud import (
    CrudService,
    MissingIdentifierError,
    OperatorNotFoundError,
    QueryOptions,
)


def _ids(rows) -> list[str]:
    return [row["id"] for row in rows]


# ---------------------------------------------------------------------------
# Create / retrieve
# ---------------------------------------------------------------------------


@pytest.mark.asyncio()
async def test_create_then_retrieve_round_trip(crud: CrudService):
    doc = {
        "id": "z",
        "username": "zed",
        "email": "zed@example.com",
        "first_name": "Zed",
        "last_name": "Zulu",
        "status": "active",
        "created": "2024-02-02T00:00:00",
    }
    created = await crud.create(doc)
    fetched = await crud.retrieve("z")

    assert fetched is not None
    for key, value in doc.items():
        assert created[key] == value
        assert fetched[key] == value


@pytest.mark.asyncio()
async def test_create_duplicate_propagates_driver_error(seeded: CrudService, reporter):
    with pytest.raises(IntegrityError):
        await seeded.create({"id": "a", "username": "again"})
    reporter.assert_awaited()
    assert reporter.await_args.args[0] == "Error executing query"


@pytest.mark.asyncio()
async def test_retrieve_none_issues_no_query(crud: CrudService, monkeypatch):
    calls = []

    async def _execute(*args, **kwargs):
        calls.append(args)

    monkeypatch.setattr(crud.service, "execute", _execute)
    assert await crud.retrieve(None) is None
    assert calls == []


@pytest.mark.asyncio()
async def test_retrieve_missing_row(seeded: CrudService):
    assert await seeded.retrieve("nope") is None


@pytest.mark.asyncio()
async def test_retrieve_conceals_tombstones(seeded: CrudService):
    assert await seeded.retrieve("d") is None
    row = await seeded.retrieve("d", {"conceal": False})
    assert row is not None
    assert row["status"] == "dead"


@pytest.mark.asyncio()
async def test_retrieve_ignores_caller_pagination(seeded: CrudService):
    row = await seeded.retrieve("a", {"skip": 1, "take": 5})
    assert row is not None
    assert row["id"] == "a"


@pytest.mark.asyncio()
async def test_retrieve_returns_row_even_in_count_mode(seeded: CrudService):
    row = await seeded.retrieve("a", {"mode": "count"})
    assert row is not None
    assert row["id"] == "a"
    assert "count" not in row


@pytest.mark.asyncio()
async def test_retrieve_honours_projection(seeded: CrudService):
    row = await seeded.retrieve("a", {"fields": {"username": 1}})
    assert row == {"username": "alice", "id": "a"}


# ---------------------------------------------------------------------------
# Find
# ---------------------------------------------------------------------------


@pytest.mark.asyncio()
async def test_find_scalar_equalities_are_conjunctive(seeded: CrudService):
    rows = await seeded.find({"last_name": "Brown", "first_name": "Carol"})
    assert _ids(rows) == ["c"]


@pytest.mark.asyncio()
async def test_find_membership_equals_union_of_retrieves(seeded: CrudService):
    rows = await seeded.find({"id": ["a", "b"]}, {"sort": {"id": 1}})
    a = await seeded.retrieve("a")
    b = await seeded.retrieve("b")
    assert rows == [a, b]


@pytest.mark.asyncio()
async def test_find_ne_sequence_is_complement_within_concealed_set(
    seeded: CrudService,
):
    rows = await seeded.find({"id": {"$ne": ["a", "b"]}})
    assert _ids(rows) == ["c"]


@pytest.mark.asyncio()
async def test_find_conceals_by_default(seeded: CrudService):
    alive = await seeded.find({})
    everything = await seeded.find({}, {"conceal": False})
    assert len(alive) == 3
    assert len(everything) == 4
    assert "d" not in _ids(alive)


@pytest.mark.asyncio()
async def test_find_status_tombstone_stays_hidden_when_concealed(seeded: CrudService):
    assert await seeded.find({"status": "dead"}) == []
    assert _ids(await seeded.find({"status": "dead"}, {"conceal": False})) == ["d"]


@pytest.mark.asyncio()
async def test_find_status_membership_still_concealed(seeded: CrudService):
    rows = await seeded.find({"status": ["pending", "dead"]})
    assert _ids(rows) == ["c"]


@pytest.mark.asyncio()
async def test_find_range_operators(seeded: CrudService):
    rows = await seeded.find(
        {"created": {"$gt": "2024-01-01T00:00:01", "$lte": "2024-01-01T00:00:03"}},
        {"sort": {"created": 1}},
    )
    assert _ids(rows) == ["b", "c"]


@pytest.mark.asyncio()
async def test_find_case_insensitive(seeded: CrudService):
    rows = await seeded.find({"username": {"$eqi": "ALICE"}})
    assert _ids(rows) == ["a"]

    rows = await seeded.find({"username": {"$nei": "ALICE"}}, {"sort": {"id": 1}})
    assert _ids(rows) == ["b", "c"]


@pytest.mark.asyncio()
async def test_find_projection(seeded: CrudService):
    rows = await seeded.find({}, {"fields": {"username": 1}, "sort": {"id": 1}})
    assert rows[0] == {"username": "alice", "id": "a"}

    rows = await seeded.find(
        {}, {"fields": {"id": 0, "username": 1}, "sort": {"id": 1}}
    )
    assert rows[0] == {"username": "alice"}


@pytest.mark.asyncio()
async def test_find_sort_multiple_fields(seeded: CrudService):
    rows = await seeded.find({}, {"sort": {"last_name": -1, "first_name": 1}})
    assert _ids(rows) == ["b", "c", "a"]


@pytest.mark.asyncio()
async def test_find_pagination_with_explicit_sort(seeded: CrudService):
    rows = await seeded.find({}, {"skip": 1, "take": 1, "sort": {"id": 1}})
    assert _ids(rows) == ["b"]

    rows = await seeded.find({}, {"skip": 1, "sort": {"id": 1}})
    assert _ids(rows) == ["b", "c"]

    rows = await seeded.find({}, {"take": 2, "sort": {"id": -1}})
    assert _ids(rows) == ["c", "b"]


@pytest.mark.asyncio()
async def test_find_accepts_query_options_instance(seeded: CrudService):
    opts = QueryOptions(sort=["-id"], take=1)
    assert _ids(await seeded.find(None, opts)) == ["c"]


@pytest.mark.asyncio()
async def test_find_does_not_mutate_caller_arguments(seeded: CrudService):
    criteria = {"status": "active"}
    options = {"sort": {"id": 1}, "take": 5}
    await seeded.find(criteria, options)
    assert criteria == {"status": "active"}
    assert options == {"sort": {"id": 1}, "take": 5}


@pytest.mark.asyncio()
async def test_find_unknown_operator_raises_in_strict_mode(seeded: CrudService):
    with pytest.raises(OperatorNotFoundError):
        await seeded.find({"username": {"$like": "a%"}})


@pytest.mark.asyncio()
async def test_find_unknown_operator_reported_in_lenient_mode(
    service, hooks, reporter, seed_rows
):
    lenient = CrudService(
        service=service,
        schema="main",
        table="users",
        strict_operators=False,
        hooks=hooks,
    )
    await lenient.init()
    for row in seed_rows:
        await lenient.create(row)
    reporter.reset_mock()

    rows = await lenient.find({"username": {"$like": "a%"}})

    assert len(rows) == 3
    reporter.assert_awaited_once()
    assert reporter.await_args.args[0] == (
        "No object modifier set on object query criteria"
    )
    assert reporter.await_args.kwargs["field"] == "username"


# ---------------------------------------------------------------------------
# Count
# ---------------------------------------------------------------------------


@pytest.mark.asyncio()
async def test_count(seeded: CrudService):
    assert await seeded.count() == 3
    assert await seeded.count({}, {"conceal": False}) == 4
    assert await seeded.count({"last_name": "Brown"}) == 2
    assert await seeded.count({"id": "missing"}) == 0


@pytest.mark.asyncio()
async def test_count_ignores_pagination_and_projection(seeded: CrudService):
    total = await seeded.count(
        {}, {"skip": 2, "take": 1, "fields": {"username": 1}, "sort": {"id": 1}}
    )
    assert total == 3
    assert isinstance(total, int)


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------


@pytest.mark.asyncio()
async def test_update_applies_only_modifiable_keys(seeded: CrudService):
    row = await seeded.retrieve("a")
    assert row is not None

    updated = await seeded.update(
        row, {"first_name": "Alicia", "email": "hacker@example.com"}
    )

    assert updated is not None
    assert updated["first_name"] == "Alicia"
    assert updated["email"] == "alice@example.com"
    assert row["first_name"] == "Alice"


@pytest.mark.asyncio()
async def test_update_patch_keys_applied_by_presence(seeded: CrudService):
    row = await seeded.retrieve("a")
    updated = await seeded.update(row, {"last_name": ""})
    assert updated["last_name"] == ""


@pytest.mark.asyncio()
async def test_update_stamps_updated_field(service, hooks, seed_rows):
    stamp = datetime(2024, 5, 1, 12, 0, 0)
    crud = CrudService(
        service=service,
        schema="main",
        table="users",
        clock=lambda: stamp,
        hooks=hooks,
    )
    await crud.init()
    await crud.create(seed_rows[0])

    row = await crud.retrieve("a")
    assert row["updated"] is None

    updated = await crud.update(row)
    assert updated["updated"] is not None
    assert str(updated["updated"]).startswith("2024-05-01")


@pytest.mark.asyncio()
async def test_update_without_updated_field(service, hooks, seed_rows):
    crud = CrudService(
        service=service,
        schema="main",
        table="users",
        updated_field=None,
        modifiable_keys=["username"],
        hooks=hooks,
    )
    await crud.init()
    await crud.create(seed_rows[0])

    updated = await crud.update({"id": "a"}, {"username": "al"})
    assert updated["username"] == "al"
    assert updated["updated"] is None


@pytest.mark.asyncio()
async def test_update_requires_identifier(seeded: CrudService, reporter):
    reporter.reset_mock()
    with pytest.raises(MissingIdentifierError) as exc_info:
        await seeded.update({"username": "nobody"})

    assert exc_info.value.operation == "update"
    reporter.assert_awaited_once()
    assert isinstance(reporter.await_args.args[1], MissingIdentifierError)


@pytest.mark.asyncio()
async def test_update_unknown_id_returns_none(seeded: CrudService):
    assert await seeded.update({"id": "nope", "username": "x"}) is None


@pytest.mark.asyncio()
async def test_bulk_update_skips_tombstones(seeded: CrudService):
    count = await seeded.bulk_update({"last_name": ["Brown", "Dunn"]}, {"email": None})
    assert count == 2

    dave = await seeded.retrieve("d", {"conceal": False})
    assert dave["email"] == "dave@example.com"
    assert dave["updated"] is None

    bob = await seeded.retrieve("b")
    assert bob["email"] is None
    assert bob["updated"] is not None


@pytest.mark.asyncio()
async def test_bulk_update_without_concealment(seeded: CrudService):
    count = await seeded.bulk_update({}, {"email": None}, {"conceal": False})
    assert count == 4


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


@pytest.mark.asyncio()
async def test_delete_is_soft(seeded: CrudService):
    row = await seeded.retrieve("b")
    deleted = await seeded.delete(row)

    assert deleted["status"] == "dead"
    assert row["status"] == "active"
    assert await seeded.retrieve("b") is None
    hidden = await seeded.retrieve("b", {"conceal": False})
    assert hidden["status"] == "dead"


@pytest.mark.asyncio()
async def test_delete_ignores_concealment_on_already_dead_row(seeded: CrudService):
    dave = await seeded.retrieve("d", {"conceal": False})
    deleted = await seeded.delete(dave)
    assert deleted["id"] == "d"


@pytest.mark.asyncio()
async def test_delete_requires_identifier(seeded: CrudService, reporter):
    reporter.reset_mock()
    with pytest.raises(MissingIdentifierError) as exc_info:
        await seeded.delete({"username": "bob"})

    assert exc_info.value.operation == "delete"
    assert str(exc_info.value).startswith("Cannot delete row")
    reporter.assert_awaited_once()
    assert reporter.await_args.args[1] is exc_info.value
    assert await seeded.count({"status": "dead"}, {"conceal": False}) == 1


@pytest.mark.asyncio()
async def test_bulk_delete(seeded: CrudService):
    assert await seeded.bulk_delete({"last_name": "Brown"}) == 2
    assert _ids(await seeded.find({})) == ["a"]
    assert await seeded.count({}, {"conceal": False}) == 4


@pytest.mark.asyncio()
async def test_delete_permanently(seeded: CrudService):
    row = await seeded.retrieve("a")
    removed = await seeded.delete_permanently(row)

    assert removed["id"] == "a"
    everything = await seeded.find({}, {"conceal": False})
    assert "a" not in _ids(everything)


@pytest.mark.asyncio()
async def test_delete_permanently_requires_identifier(seeded: CrudService):
    with pytest.raises(MissingIdentifierError) as exc_info:
        await seeded.delete_permanently({"username": "alice"})
    assert exc_info.value.to_dict()["error"] == "MISSING_IDENTIFIER"


@pytest.mark.asyncio()
async def test_delete_permanently_unknown_id(seeded: CrudService):
    assert await seeded.delete_permanently({"id": "nope"}) is None


@pytest.mark.asyncio()
async def test_bulk_delete_permanently_respects_concealment(seeded: CrudService):
    assert await seeded.bulk_delete_permanently({"id": ["c", "d"]}) == 1
    assert _ids(await seeded.find({}, {"conceal": False, "sort": {"id": 1}})) == [
        "a",
        "b",
        "d",
    ]
    assert await seeded.bulk_delete_permanently(None, {"conceal": False}) == 3
    assert await seeded.count({}, {"conceal": False}) == 0


# ---------------------------------------------------------------------------
# Caller-supplied sessions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio()
async def test_caller_session_rollback_discards_writes(seeded: CrudService):
    service = seeded.service
    async with service.session() as conn:
        transaction = await conn.begin()
        await seeded.create(
            {"id": "t", "username": "temp", "status": "active"}, {"session": conn}
        )
        assert await seeded.retrieve("t", {"session": conn}) is not None
        await transaction.rollback()
        assert not conn.closed

    assert await seeded.retrieve("t") is None


@pytest.mark.asyncio()
async def test_caller_session_commit_keeps_writes(seeded: CrudService):
    service = seeded.service
    async with service.session() as conn, conn.begin():
        await seeded.bulk_delete({"id": "a"}, {"client": conn})
        await seeded.update(
            {"id": "b", "username": "bobby", "status": "active"},
            options={"session": conn},
        )

    assert await seeded.retrieve("a") is None
    assert (await seeded.retrieve("b"))["username"] == "bobby"


@pytest.mark.asyncio()
async def test_caller_session_not_released_by_operations(seeded: CrudService):
    conn = await seeded.service.acquire_session()
    try:
        await seeded.find({}, {"session": conn})
        await seeded.count({}, {"session": conn})
        assert not conn.closed
    finally:
        await seeded.service.release_session(conn)
    assert conn.closed


# ---------------------------------------------------------------------------
# Error suppression
# ---------------------------------------------------------------------------


@pytest.mark.asyncio()
async def test_suppressed_error_is_raised_but_not_reported(
    seeded: CrudService, reporter
):
    reporter.reset_mock()
    with pytest.raises(IntegrityError):
        await seeded.create(
            {"id": "a", "username": "dup"}, {"suppress": "UNIQUE constraint"}
        )
    reporter.assert_not_awaited()
