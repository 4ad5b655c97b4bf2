"""Document store gateway.

This is the only module that touches persistence. Services address documents
by collection and id, query them with simple field filters, and write them
with single-document operations. Two implementations share the protocol:
``SqlDocumentStore`` keeps documents as JSON rows through an SQLAlchemy async
session, ``InMemoryDocumentStore`` keeps them in process for development and
tests.

Writes that depend on state read earlier are made safe in two ways:

* ``update(..., expected=...)`` is a compare-and-swap. The write is rejected
  with ``StaleWriteError`` if any expected field no longer holds, or if the
  document was rewritten between the read and the write.
* ``insert(..., guard=...)`` runs the guard's query and check atomically with
  the insert, serialized per ``guard.scope``.
"""

# ruff: noqa: TC003
from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Literal, Protocol, runtime_checkable

import sqlalchemy as sa
from pydantic_core import to_jsonable_python
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col

from staffdesk.exceptions import AppError, NotFoundError, StaleWriteError, StoreError
from staffdesk.models.document import ScopeLock, StoredDocument, new_document_id
from staffdesk.models.enums import Collection

logger = logging.getLogger(__name__)

FilterOp = Literal["==", "!=", "in", "<", "<=", ">", ">="]

Record = dict[str, Any]


@dataclass(frozen=True)
class Filter:
    """Field predicate. ``value`` is compared in its JSON form."""

    field: str
    op: FilterOp
    value: Any


@dataclass(frozen=True)
class OrderBy:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class InsertGuard:
    """Precondition evaluated atomically with an insert.

    The documents of ``collection`` matching ``filters`` are passed to
    ``check``, which raises to abort the insert.
    """

    scope: str
    collection: Collection
    check: Callable[[list[Record]], None]
    filters: Sequence[Filter] = ()


@runtime_checkable
class DocumentStore(Protocol):
    """Interface for the document store."""

    async def get(self, collection: Collection, doc_id: str) -> Record | None:
        """Fetch a document by id. Returns None if not found."""
        ...

    async def query(
        self,
        collection: Collection,
        filters: Sequence[Filter] = (),
        order_by: OrderBy | None = None,
        limit: int | None = None,
    ) -> list[Record]:
        """Return the documents matching every filter."""
        ...

    async def insert(
        self,
        collection: Collection,
        record: Mapping[str, Any],
        *,
        doc_id: str | None = None,
        guard: InsertGuard | None = None,
    ) -> str:
        """Create a document and return its id."""
        ...

    async def update(
        self,
        collection: Collection,
        doc_id: str,
        fields: Mapping[str, Any],
        *,
        expected: Mapping[str, Any] | None = None,
    ) -> Record:
        """Merge top-level fields into a document and return the new state."""
        ...

    async def put(
        self,
        collection: Collection,
        doc_id: str,
        record: Mapping[str, Any],
        *,
        merge: bool = False,
    ) -> Record:
        """Create or overwrite (or merge into) a document with a known id."""
        ...


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def to_json(value: Any) -> Any:
    """Convert dates, enums and models to their JSON-safe form."""
    return to_jsonable_python(value)


def _with_id(doc_id: str, data: Mapping[str, Any]) -> Record:
    record = copy.deepcopy(dict(data))
    record["id"] = doc_id
    return record


def _strip_id(record: Mapping[str, Any]) -> Record:
    return {key: value for key, value in to_json(dict(record)).items() if key != "id"}


def _check_expected(collection: Collection, doc_id: str, data: Mapping[str, Any], expected: Mapping[str, Any]) -> None:
    for key, value in to_json(dict(expected)).items():
        if data.get(key) != value:
            raise StaleWriteError(
                f"{collection.value}/{doc_id} changed concurrently: expected {key}={value!r}, found {data.get(key)!r}"
            )


def _matches(data: Mapping[str, Any], flt: Filter) -> bool:
    actual = data.get(flt.field)
    expected = to_json(flt.value)
    if flt.op == "==":
        return actual == expected
    if flt.op == "!=":
        return actual != expected
    if flt.op == "in":
        return actual in expected
    if actual is None:
        return False
    if flt.op == "<":
        return actual < expected
    if flt.op == "<=":
        return actual <= expected
    if flt.op == ">":
        return actual > expected
    return actual >= expected


def _sort_key(order_by: OrderBy) -> Callable[[Record], tuple[bool, Any]]:
    def key(record: Record) -> tuple[bool, Any]:
        value = record.get(order_by.field)
        return (value is None, value if value is not None else "")

    return key


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


class InMemoryDocumentStore:
    """In-process store for development and tests."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, Record]] = {}
        self._lock = asyncio.Lock()

    def _docs(self, collection: Collection) -> dict[str, Record]:
        return self._collections.setdefault(collection.value, {})

    async def get(self, collection: Collection, doc_id: str) -> Record | None:
        data = self._docs(collection).get(doc_id)
        return _with_id(doc_id, data) if data is not None else None

    async def query(
        self,
        collection: Collection,
        filters: Sequence[Filter] = (),
        order_by: OrderBy | None = None,
        limit: int | None = None,
    ) -> list[Record]:
        records = [
            _with_id(doc_id, data)
            for doc_id, data in self._docs(collection).items()
            if all(_matches(data, flt) for flt in filters)
        ]
        if order_by is not None:
            records.sort(key=_sort_key(order_by), reverse=order_by.descending)
        return records[:limit] if limit is not None else records

    async def insert(
        self,
        collection: Collection,
        record: Mapping[str, Any],
        *,
        doc_id: str | None = None,
        guard: InsertGuard | None = None,
    ) -> str:
        async with self._lock:
            if guard is not None:
                guard.check(await self.query(guard.collection, guard.filters))
            new_id = doc_id or new_document_id()
            docs = self._docs(collection)
            if new_id in docs:
                raise StaleWriteError(f"{collection.value}/{new_id} already exists")
            docs[new_id] = _strip_id(record)
            return new_id

    async def update(
        self,
        collection: Collection,
        doc_id: str,
        fields: Mapping[str, Any],
        *,
        expected: Mapping[str, Any] | None = None,
    ) -> Record:
        async with self._lock:
            docs = self._docs(collection)
            data = docs.get(doc_id)
            if data is None:
                raise NotFoundError(f"{collection.value}/{doc_id} not found")
            if expected:
                _check_expected(collection, doc_id, data, expected)
            docs[doc_id] = {**data, **_strip_id(fields)}
            return _with_id(doc_id, docs[doc_id])

    async def put(
        self,
        collection: Collection,
        doc_id: str,
        record: Mapping[str, Any],
        *,
        merge: bool = False,
    ) -> Record:
        async with self._lock:
            docs = self._docs(collection)
            current = docs.get(doc_id, {}) if merge else {}
            docs[doc_id] = {**current, **_strip_id(record)}
            return _with_id(doc_id, docs[doc_id])


# ---------------------------------------------------------------------------
# SQL implementation
# ---------------------------------------------------------------------------


def _json_field(name: str, sample: Any) -> Any:
    """Typed accessor for a top-level JSON field, chosen from the compared value."""
    expr = col(StoredDocument.data)[name]
    if isinstance(sample, bool):
        return expr.as_boolean()
    if isinstance(sample, int):
        return expr.as_integer()
    if isinstance(sample, float):
        return expr.as_float()
    return expr.as_string()


def _filter_clause(flt: Filter) -> Any:
    value = to_json(flt.value)
    if flt.op == "in":
        values = list(value)
        if not values:
            return sa.false()
        return _json_field(flt.field, values[0]).in_(values)
    accessor = _json_field(flt.field, value)
    if flt.op == "==":
        return accessor == value
    if flt.op == "!=":
        return accessor != value
    if flt.op == "<":
        return accessor < value
    if flt.op == "<=":
        return accessor <= value
    if flt.op == ">":
        return accessor > value
    return accessor >= value


class SqlDocumentStore:
    """Store backed by the ``stored_document`` table.

    Every write commits on its own, so one call is one atomic document write.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _get_row(self, collection: Collection, doc_id: str) -> StoredDocument | None:
        result = await self._session.execute(
            select(StoredDocument)
            .where(
                col(StoredDocument.collection) == collection.value,
                col(StoredDocument.id) == doc_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _select(
        self,
        collection: Collection,
        filters: Sequence[Filter],
        order_by: OrderBy | None = None,
        limit: int | None = None,
    ) -> list[Record]:
        query = select(StoredDocument).where(
            col(StoredDocument.collection) == collection.value,
            *(_filter_clause(flt) for flt in filters),
        )
        if order_by is not None:
            ordering = col(StoredDocument.data)[order_by.field].as_string()
            query = query.order_by(ordering.desc() if order_by.descending else ordering.asc())
        if limit is not None:
            query = query.limit(limit)
        result = await self._session.execute(query.execution_options(populate_existing=True))
        return [_with_id(row.id, row.data) for row in result.scalars().all()]

    async def _lock_scope(self, scope: str) -> None:
        lock = await self._session.get(ScopeLock, scope, with_for_update=True)
        if lock is None:
            self._session.add(ScopeLock(scope=scope))
            await self._session.flush()

    async def _fail(self, action: str, collection: Collection, exc: SQLAlchemyError) -> StoreError:
        await self._session.rollback()
        logger.exception("Store %s failed for collection %s", action, collection.value)
        return StoreError(f"Could not {action} {collection.value}: storage is unavailable")

    async def get(self, collection: Collection, doc_id: str) -> Record | None:
        try:
            row = await self._get_row(collection, doc_id)
        except SQLAlchemyError as exc:
            raise await self._fail("read", collection, exc) from exc
        return _with_id(row.id, row.data) if row is not None else None

    async def query(
        self,
        collection: Collection,
        filters: Sequence[Filter] = (),
        order_by: OrderBy | None = None,
        limit: int | None = None,
    ) -> list[Record]:
        try:
            return await self._select(collection, filters, order_by, limit)
        except SQLAlchemyError as exc:
            raise await self._fail("query", collection, exc) from exc

    async def insert(
        self,
        collection: Collection,
        record: Mapping[str, Any],
        *,
        doc_id: str | None = None,
        guard: InsertGuard | None = None,
    ) -> str:
        new_id = doc_id or new_document_id()
        try:
            if doc_id is not None and await self._get_row(collection, doc_id) is not None:
                raise StaleWriteError(f"{collection.value}/{doc_id} already exists")
            if guard is not None:
                await self._lock_scope(guard.scope)
                guard.check(await self._select(guard.collection, guard.filters))
            self._session.add(StoredDocument(collection=collection.value, id=new_id, data=_strip_id(record)))
            await self._session.commit()
        except AppError:
            await self._session.rollback()
            raise
        except IntegrityError as exc:
            await self._session.rollback()
            raise StaleWriteError(f"{collection.value}/{new_id} was written concurrently, retry") from exc
        except SQLAlchemyError as exc:
            raise await self._fail("insert into", collection, exc) from exc
        return new_id

    async def update(
        self,
        collection: Collection,
        doc_id: str,
        fields: Mapping[str, Any],
        *,
        expected: Mapping[str, Any] | None = None,
    ) -> Record:
        try:
            row = await self._get_row(collection, doc_id)
            if row is None:
                raise NotFoundError(f"{collection.value}/{doc_id} not found")
            if expected:
                _check_expected(collection, doc_id, row.data, expected)

            new_data = {**row.data, **_strip_id(fields)}
            result = await self._session.execute(
                sa.update(StoredDocument)
                .where(
                    col(StoredDocument.collection) == collection.value,
                    col(StoredDocument.id) == doc_id,
                    col(StoredDocument.version) == row.version,
                )
                .values(data=new_data, version=row.version + 1, updated_at=datetime.now(UTC))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise StaleWriteError(f"{collection.value}/{doc_id} changed concurrently, reload and retry")
            await self._session.commit()
        except AppError:
            await self._session.rollback()
            raise
        except SQLAlchemyError as exc:
            raise await self._fail("update", collection, exc) from exc
        return _with_id(doc_id, new_data)

    async def put(
        self,
        collection: Collection,
        doc_id: str,
        record: Mapping[str, Any],
        *,
        merge: bool = False,
    ) -> Record:
        try:
            row = await self._get_row(collection, doc_id)
            data = _strip_id(record)
            if row is None:
                self._session.add(StoredDocument(collection=collection.value, id=doc_id, data=data))
            else:
                data = {**row.data, **data} if merge else data
                row.data = data
                row.version += 1
                row.updated_at = datetime.now(UTC)
            await self._session.commit()
        except IntegrityError as exc:
            await self._session.rollback()
            raise StaleWriteError(f"{collection.value}/{doc_id} was written concurrently, retry") from exc
        except SQLAlchemyError as exc:
            raise await self._fail("write", collection, exc) from exc
        return _with_id(doc_id, data)
