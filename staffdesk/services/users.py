from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import status

from staffdesk.exceptions import AppError, NotFoundError
from staffdesk.models.enums import MANAGER_ROLES, Collection, Role
from staffdesk.schemas.user import UserListResponse, UserProfile, UserResponse
from staffdesk.services.balance import ensure_balance
from staffdesk.services.store import Filter, OrderBy

if TYPE_CHECKING:
    from staffdesk.schemas.auth import Actor
    from staffdesk.schemas.user import UpsertUserPayload
    from staffdesk.services.clock import Clock
    from staffdesk.services.store import DocumentStore

logger = logging.getLogger(__name__)


def _build_user_response(user: UserProfile) -> UserResponse:
    return UserResponse(
        id=user.id or "",
        display_name=user.display_name,
        email=user.email,
        role=user.role,
        department=user.department,
        position=user.position,
        hire_date=user.hire_date,
    )


def _matches_search(user: UserProfile, needle: str) -> bool:
    return any(needle in field.lower() for field in (user.display_name, user.email, user.department, user.position))


async def find_user(store: DocumentStore, user_id: str) -> UserProfile | None:
    record = await store.get(Collection.USERS, user_id)
    return UserProfile.from_record(record) if record is not None else None


async def get_user(store: DocumentStore, user_id: str) -> UserResponse:
    user = await find_user(store, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return _build_user_response(user)


async def list_users(
    store: DocumentStore,
    department: str | None = None,
    role: Role | None = None,
    search: str | None = None,
) -> UserListResponse:
    """List users by display name.

    ``search`` is a case-insensitive substring match on name, email,
    department and position.
    """
    filters: list[Filter] = []
    if department:
        filters.append(Filter("department", "==", department))
    if role is not None:
        filters.append(Filter("role", "==", role.value))
    records = await store.query(Collection.USERS, filters, order_by=OrderBy("displayName"))
    users = [UserProfile.from_record(record) for record in records]
    if search and search.strip():
        users = [user for user in users if _matches_search(user, search.strip().lower())]
    items = [_build_user_response(user) for user in users]
    return UserListResponse(items=items, total=len(items))


async def upsert_user(
    store: DocumentStore,
    clock: Clock,
    user_id: str,
    payload: UpsertUserPayload,
) -> UserResponse:
    """Create or update a user profile.

    A user seen for the first time also gets an initial leave balance,
    prorated from the hire date.
    """
    existing = await find_user(store, user_id)
    now = clock.now()
    profile = UserProfile(
        id=user_id,
        display_name=payload.display_name,
        email=payload.email,
        role=payload.role,
        department=payload.department,
        position=payload.position,
        hire_date=payload.hire_date,
        created_at=existing.created_at if existing is not None and existing.created_at else now,
        updated_at=now,
    )
    record = await store.put(Collection.USERS, user_id, profile.to_record())
    await ensure_balance(store, user_id, payload.hire_date, clock)

    logger.info(
        "%s user %s (role=%s, department=%s)",
        "Updated" if existing is not None else "Registered",
        user_id,
        payload.role.value,
        payload.department or "-",
    )
    return _build_user_response(UserProfile.from_record(record))


async def resolve_actor(store: DocumentStore, user_id: str) -> Actor:
    """Turn an authenticated user id into the actor the workflows authorize against."""
    user = await find_user(store, user_id)
    if user is None:
        raise AppError("Unknown user", status_code=status.HTTP_401_UNAUTHORIZED)
    return user.to_actor()


async def resolve_department_manager(store: DocumentStore, department: str) -> UserProfile | None:
    """Find the manager of a department, if it has one.

    With several managers the earliest registered one is chosen, so the
    snapshot taken at submission is deterministic.
    """
    if not department:
        return None
    records = await store.query(
        Collection.USERS,
        [
            Filter("department", "==", department),
            Filter("role", "in", [role.value for role in MANAGER_ROLES]),
        ],
        order_by=OrderBy("createdAt"),
        limit=1,
    )
    return UserProfile.from_record(records[0]) if records else None
