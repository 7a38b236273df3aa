# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from portal.models.enums import UserRole


class UserInfo(BaseModel):
    """User metadata from the User Directory."""

    id: uuid.UUID
    email: str
    role: UserRole
    display_name: str | None = None


@runtime_checkable
class UserDirectory(Protocol):
    """Interface for the User Directory."""

    async def resolve(self, user_id: uuid.UUID) -> UserInfo | None:
        """Fetch user metadata. Returns None if not found."""
        ...

    async def find_by_email(self, email: str) -> uuid.UUID | None:
        """Look up a user id by email (case-insensitive). Returns None if not found."""
        ...

    async def list_users(self) -> list[UserInfo]:
        """List every known user."""
        ...


class InMemoryUserDirectory:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._users: dict[uuid.UUID, UserInfo] = {}

    def seed(self, user: UserInfo) -> None:
        """Seed a user for testing."""
        self._users[user.id] = user

    async def resolve(self, user_id: uuid.UUID) -> UserInfo | None:
        """Fetch user metadata. Returns None if not found."""
        return self._users.get(user_id)

    async def find_by_email(self, email: str) -> uuid.UUID | None:
        """Look up a user id by email (case-insensitive). Returns None if not found."""
        wanted = email.strip().lower()
        for user in self._users.values():
            if user.email.lower() == wanted:
                return user.id
        return None

    async def list_users(self) -> list[UserInfo]:
        """List every known user."""
        return sorted(self._users.values(), key=lambda u: u.email)


_user_directory: UserDirectory = InMemoryUserDirectory()


def get_user_directory() -> UserDirectory:
    """FastAPI dependency for the User Directory."""
    return _user_directory


def set_user_directory(directory: UserDirectory) -> None:
    """Override the directory (for testing or production wiring)."""
    global _user_directory
    _user_directory = directory
