# ruff: noqa: B008, TC001
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, status

from staffdesk.db import SessionDep
from staffdesk.exceptions import AppError
from staffdesk.models.enums import Role
from staffdesk.schemas.auth import Actor
from staffdesk.services.clock import Clock, get_clock
from staffdesk.services.store import DocumentStore, SqlDocumentStore
from staffdesk.services.users import resolve_actor


async def get_store(session: SessionDep) -> DocumentStore:
    """Document store bound to the request's database session."""
    return SqlDocumentStore(session)


StoreDep = Annotated[DocumentStore, Depends(get_store)]
ClockDep = Annotated[Clock, Depends(get_clock)]


async def get_current_actor(
    store: StoreDep,
    x_user_id: str | None = Header(default=None),
) -> Actor:
    """Resolve the acting user from the dev auth header.

    The identity provider in front of the API sets ``X-User-Id``; the role and
    department come from the user's profile, never from the request.
    """
    if not x_user_id:
        raise AppError("Missing X-User-Id header", status_code=status.HTTP_401_UNAUTHORIZED)
    return await resolve_actor(store, x_user_id)


ActorDep = Annotated[Actor, Depends(get_current_actor)]


async def require_admin(actor: ActorDep) -> Actor:
    """Require admin role for the request."""
    if actor.role != Role.ADMIN:
        raise AppError("Admin access required", status_code=status.HTTP_403_FORBIDDEN)
    return actor


AdminDep = Annotated[Actor, Depends(require_admin)]
