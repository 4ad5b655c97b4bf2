from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def new_document_id() -> str:
    """Opaque id for a new document: 32 hex characters."""
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(UTC)


class StoredDocument(SQLModel, table=True):
    """A JSON document in one of the portal collections.

    The document body lives in ``data`` with camelCase keys. ``version`` is
    bumped on every write and backs conditional updates; the timestamps are
    bookkeeping for the row and are not part of the document.
    """

    __tablename__ = "stored_document"

    collection: str = Field(primary_key=True, max_length=64)
    id: str = Field(default_factory=new_document_id, primary_key=True, max_length=64)
    data: dict[str, Any] = Field(default_factory=dict, sa_type=sa.JSON)
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )


class ScopeLock(SQLModel, table=True):
    """Row locked for the duration of a guarded insert within one scope.

    Scopes are strings such as ``leave-calendar:<department>``; the row is
    created on first use and never deleted.
    """

    __tablename__ = "scope_lock"

    scope: str = Field(primary_key=True, max_length=255)
