# ruff: noqa: TC001, TC003
from __future__ import annotations

import datetime

from pydantic import BaseModel, Field

from staffdesk.models.enums import Role
from staffdesk.schemas.auth import Actor
from staffdesk.schemas.common import DocumentModel, LenientDate, Timestamp


class UserProfile(DocumentModel):
    """A user as stored in the ``users`` collection."""

    display_name: str = ""
    email: str = ""
    role: Role = Role.EMPLOYEE
    department: str = ""
    position: str = ""
    hire_date: LenientDate = None
    created_at: Timestamp | None = None
    updated_at: Timestamp | None = None

    def to_actor(self) -> Actor:
        return Actor(
            id=self.id or "",
            display_name=self.display_name,
            email=self.email,
            role=self.role,
            department=self.department,
        )


class UpsertUserPayload(BaseModel):
    """Request body for creating or updating a user (admin only)."""

    display_name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)
    role: Role = Role.EMPLOYEE
    department: str = Field(default="", max_length=255)
    position: str = Field(default="", max_length=255)
    hire_date: datetime.date | None = None


class UserResponse(BaseModel):
    id: str
    display_name: str
    email: str
    role: Role
    department: str
    position: str
    hire_date: datetime.date | None


class UserListResponse(BaseModel):
    items: list[UserResponse]
    total: int
