"""Tests for the document store gateway, run against both implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import col

from staffdesk.exceptions import ConflictError, NotFoundError, StaleWriteError, StoreError
from staffdesk.models.document import StoredDocument
from staffdesk.models.enums import Collection
from staffdesk.services.store import (
    DocumentStore,
    Filter,
    InMemoryDocumentStore,
    InsertGuard,
    OrderBy,
    SqlDocumentStore,
)

if TYPE_CHECKING:
    from pathlib import Path

    from staffdesk.services.store import Record

LEAVES = Collection.LEAVE_REQUESTS


@pytest.fixture(params=["memory", "sql"])
def any_store(request: pytest.FixtureRequest, db_session: AsyncSession) -> DocumentStore:
    if request.param == "memory":
        return InMemoryDocumentStore()
    return SqlDocumentStore(db_session)


async def _seed(store: DocumentStore) -> None:
    docs = [
        ("a", {"department": "eng", "status": "approved", "days": 3, "createdAt": "2024-01-01T00:00:00Z"}),
        ("b", {"department": "eng", "status": "pending_admin", "days": 1, "createdAt": "2024-01-03T00:00:00Z"}),
        ("c", {"department": "sales", "status": "approved", "days": 5, "createdAt": "2024-01-02T00:00:00Z"}),
    ]
    for doc_id, data in docs:
        await store.insert(LEAVES, data, doc_id=doc_id)


# ---------------------------------------------------------------------------
# Protocol behaviour
# ---------------------------------------------------------------------------


def test_implementations_satisfy_protocol(db_session: AsyncSession) -> None:
    assert isinstance(InMemoryDocumentStore(), DocumentStore)
    assert isinstance(SqlDocumentStore(db_session), DocumentStore)


async def test_insert_and_get(any_store: DocumentStore) -> None:
    doc_id = await any_store.insert(LEAVES, {"status": "approved", "reason": "trip"})
    record = await any_store.get(LEAVES, doc_id)
    assert record == {"id": doc_id, "status": "approved", "reason": "trip"}


async def test_get_missing_returns_none(any_store: DocumentStore) -> None:
    assert await any_store.get(LEAVES, "missing") is None


async def test_collections_are_separate(any_store: DocumentStore) -> None:
    await any_store.insert(LEAVES, {"status": "approved"}, doc_id="x")
    assert await any_store.get(Collection.PURCHASE_REQUESTS, "x") is None


async def test_insert_duplicate_id_rejected(any_store: DocumentStore) -> None:
    await any_store.insert(LEAVES, {"status": "approved"}, doc_id="dup")
    with pytest.raises(StaleWriteError):
        await any_store.insert(LEAVES, {"status": "rejected"}, doc_id="dup")
    record = await any_store.get(LEAVES, "dup")
    assert record is not None
    assert record["status"] == "approved"


async def test_query_equality_filter(any_store: DocumentStore) -> None:
    await _seed(any_store)
    records = await any_store.query(LEAVES, [Filter("department", "==", "eng")])
    assert sorted(r["id"] for r in records) == ["a", "b"]


async def test_query_in_filter(any_store: DocumentStore) -> None:
    await _seed(any_store)
    records = await any_store.query(LEAVES, [Filter("status", "in", ["pending_admin", "rejected"])])
    assert [r["id"] for r in records] == ["b"]


async def test_query_empty_in_filter_matches_nothing(any_store: DocumentStore) -> None:
    await _seed(any_store)
    assert await any_store.query(LEAVES, [Filter("status", "in", [])]) == []


async def test_query_range_filter_on_integer(any_store: DocumentStore) -> None:
    await _seed(any_store)
    records = await any_store.query(LEAVES, [Filter("days", ">=", 3)])
    assert sorted(r["id"] for r in records) == ["a", "c"]


async def test_query_order_and_limit(any_store: DocumentStore) -> None:
    await _seed(any_store)
    records = await any_store.query(LEAVES, order_by=OrderBy("createdAt", descending=True), limit=2)
    assert [r["id"] for r in records] == ["b", "c"]


async def test_query_null_field(any_store: DocumentStore) -> None:
    await any_store.insert(LEAVES, {"po": None}, doc_id="open")
    await any_store.insert(LEAVES, {"po": "PO-1"}, doc_id="done")
    records = await any_store.query(LEAVES, [Filter("po", "==", None)])
    assert [r["id"] for r in records] == ["open"]


async def test_update_merges_fields(any_store: DocumentStore) -> None:
    await any_store.insert(LEAVES, {"status": "pending_admin", "reason": "trip"}, doc_id="r")
    updated = await any_store.update(LEAVES, "r", {"status": "approved"})
    assert updated == {"id": "r", "status": "approved", "reason": "trip"}
    assert await any_store.get(LEAVES, "r") == updated


async def test_update_with_matching_expectation(any_store: DocumentStore) -> None:
    await any_store.insert(LEAVES, {"status": "pending_admin"}, doc_id="r")
    updated = await any_store.update(LEAVES, "r", {"status": "approved"}, expected={"status": "pending_admin"})
    assert updated["status"] == "approved"


async def test_update_with_stale_expectation(any_store: DocumentStore) -> None:
    await any_store.insert(LEAVES, {"status": "pending_admin"}, doc_id="r")
    await any_store.update(LEAVES, "r", {"status": "approved"}, expected={"status": "pending_admin"})

    with pytest.raises(StaleWriteError, match="changed concurrently"):
        await any_store.update(LEAVES, "r", {"status": "rejected"}, expected={"status": "pending_admin"})

    record = await any_store.get(LEAVES, "r")
    assert record is not None
    assert record["status"] == "approved"


async def test_stale_write_is_a_conflict(any_store: DocumentStore) -> None:
    await any_store.insert(LEAVES, {"status": "approved"}, doc_id="r")
    with pytest.raises(ConflictError):
        await any_store.update(LEAVES, "r", {"status": "rejected"}, expected={"status": "pending_admin"})


async def test_update_missing_document(any_store: DocumentStore) -> None:
    with pytest.raises(NotFoundError):
        await any_store.update(LEAVES, "missing", {"status": "approved"})


async def test_put_overwrites_and_merges(any_store: DocumentStore) -> None:
    await any_store.put(Collection.LEAVE_BALANCE, "u1", {"annual": 21, "sick": 10})
    merged = await any_store.put(Collection.LEAVE_BALANCE, "u1", {"annual": 11}, merge=True)
    assert merged == {"id": "u1", "annual": 11, "sick": 10}

    replaced = await any_store.put(Collection.LEAVE_BALANCE, "u1", {"annual": 5})
    assert replaced == {"id": "u1", "annual": 5}


async def test_put_does_not_store_id_field(any_store: DocumentStore) -> None:
    await any_store.put(Collection.USERS, "u1", {"id": "ignored", "displayName": "Ann"})
    assert await any_store.get(Collection.USERS, "u1") == {"id": "u1", "displayName": "Ann"}


# ---------------------------------------------------------------------------
# Guarded insert
# ---------------------------------------------------------------------------


def _reject_any(records: list[Record]) -> None:
    if records:
        raise ConflictError("taken", conflicts=[{"id": r["id"]} for r in records])


async def test_guard_allows_insert_when_check_passes(any_store: DocumentStore) -> None:
    guard = InsertGuard(scope="eng", collection=LEAVES, check=_reject_any, filters=[Filter("department", "==", "eng")])
    doc_id = await any_store.insert(LEAVES, {"department": "eng"}, guard=guard)
    assert await any_store.get(LEAVES, doc_id) is not None


async def test_guard_blocks_insert(any_store: DocumentStore) -> None:
    await any_store.insert(LEAVES, {"department": "eng"}, doc_id="first")
    guard = InsertGuard(scope="eng", collection=LEAVES, check=_reject_any, filters=[Filter("department", "==", "eng")])

    with pytest.raises(ConflictError) as exc_info:
        await any_store.insert(LEAVES, {"department": "eng"}, doc_id="second", guard=guard)

    assert exc_info.value.conflicts == [{"id": "first"}]
    assert await any_store.get(LEAVES, "second") is None


async def test_guard_scope_reused(any_store: DocumentStore) -> None:
    guard = InsertGuard(scope="sales", collection=LEAVES, check=lambda records: None)
    await any_store.insert(LEAVES, {"department": "sales"}, guard=guard)
    await any_store.insert(LEAVES, {"department": "sales"}, guard=guard)
    assert len(await any_store.query(LEAVES)) == 2


# ---------------------------------------------------------------------------
# SQL specifics
# ---------------------------------------------------------------------------


async def test_sql_version_bumps_on_write(db_session: AsyncSession) -> None:
    store = SqlDocumentStore(db_session)
    await store.insert(LEAVES, {"status": "pending_admin"}, doc_id="r")
    await store.update(LEAVES, "r", {"status": "approved"})
    await store.put(LEAVES, "r", {"status": "approved", "note": "x"}, merge=True)

    result = await db_session.execute(
        select(StoredDocument).where(col(StoredDocument.id) == "r").execution_options(populate_existing=True)
    )
    assert result.scalar_one().version == 3


async def test_sql_writes_visible_to_other_sessions(session_factory: async_sessionmaker[AsyncSession]) -> None:
    async with session_factory() as writer_session:
        await SqlDocumentStore(writer_session).insert(LEAVES, {"status": "approved"}, doc_id="r")
    async with session_factory() as reader_session:
        assert await SqlDocumentStore(reader_session).get(LEAVES, "r") is not None


async def test_sql_store_failure_raises_store_error(tmp_path: Path) -> None:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    try:
        async with AsyncSession(engine) as session:
            store = SqlDocumentStore(session)
            with pytest.raises(StoreError):
                await store.get(LEAVES, "r")
            with pytest.raises(StoreError):
                await store.update(LEAVES, "r", {"status": "approved"})
    finally:
        await engine.dispose()
