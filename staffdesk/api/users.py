# ruff: noqa: B008, TC001
from __future__ import annotations

from fastapi import APIRouter, Query

from staffdesk.api.deps import ActorDep, AdminDep, ClockDep, StoreDep
from staffdesk.models.enums import Role
from staffdesk.schemas.user import UpsertUserPayload, UserListResponse, UserResponse
from staffdesk.services import users as user_service

users_router = APIRouter(prefix="/users", tags=["users"])


@users_router.put("/{user_id}", response_model=UserResponse)
async def upsert_user(
    user_id: str,
    payload: UpsertUserPayload,
    store: StoreDep,
    clock: ClockDep,
    _admin: AdminDep,
) -> UserResponse:
    """Create or update a user profile (admin only)."""
    return await user_service.upsert_user(store, clock, user_id, payload)


@users_router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    store: StoreDep,
    _actor: ActorDep,
) -> UserResponse:
    return await user_service.get_user(store, user_id)


@users_router.get("", response_model=UserListResponse)
async def list_users(
    store: StoreDep,
    _actor: ActorDep,
    department: str | None = Query(default=None),
    role: Role | None = Query(default=None),
    search: str | None = Query(default=None, max_length=255),
) -> UserListResponse:
    """List users, optionally filtered by department and role or searched by text."""
    return await user_service.list_users(store, department, role, search)
