# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel, Field

from portal.models.enums import UserRole


class UpsertUserRequest(BaseModel):
    """Request body for upserting a user in the stub directory."""

    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    role: UserRole = UserRole.APPROVER
    display_name: str | None = Field(default=None, max_length=255)


class UserResponse(BaseModel):
    """Response schema for a directory user."""

    id: uuid.UUID
    email: str
    role: UserRole
    display_name: str | None


class UserListResponse(BaseModel):
    """List of directory users."""

    items: list[UserResponse]
    total: int
