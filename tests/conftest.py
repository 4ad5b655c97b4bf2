from __future__ import annotations

from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from staffdesk.db import create_tables, get_session
from staffdesk.main import app
from staffdesk.models.enums import Collection, Role
from staffdesk.schemas.auth import Actor
from staffdesk.schemas.balance import LeaveBalance
from staffdesk.schemas.user import UserProfile
from staffdesk.services.clock import FixedClock, get_clock
from staffdesk.services.store import InMemoryDocumentStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

    from staffdesk.services.store import DocumentStore

# Wednesday. Leave starting on Monday 2024-01-15 is bookable.
NOW = datetime(2024, 1, 10, 9, 0, tzinfo=UTC)


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Fresh SQLite file database per test, tables created from the models."""
    _engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'staffdesk.db'}")
    await create_tables(_engine)
    yield _engine
    await _engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
async def async_client(
    session_factory: async_sessionmaker[AsyncSession],
    clock: FixedClock,
) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the session and clock dependencies overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    app.dependency_overrides[get_clock] = lambda: clock
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def seed_user(store: InMemoryDocumentStore) -> Callable[..., Awaitable[Actor]]:
    """Write a user profile and balance straight into the in-memory store."""

    async def _seed(
        user_id: str,
        role: Role = Role.EMPLOYEE,
        department: str = "engineering",
        *,
        name: str | None = None,
        hire_date: date | None = None,
        balance: LeaveBalance | None = None,
        target: DocumentStore | None = None,
    ) -> Actor:
        destination = target or store
        profile = UserProfile(
            id=user_id,
            display_name=name or user_id.title(),
            email=f"{user_id}@example.com",
            role=role,
            department=department,
            hire_date=hire_date,
            created_at=NOW,
            updated_at=NOW,
        )
        await destination.put(Collection.USERS, user_id, profile.to_record())
        await destination.put(Collection.LEAVE_BALANCE, user_id, (balance or LeaveBalance(annual=12, sick=10)).to_record())
        return profile.to_actor()

    return _seed
