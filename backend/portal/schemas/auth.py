# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

from portal.models.enums import UserRole


class AuthContext(BaseModel):
    """Caller identity, resolved through the user directory."""

    user_id: uuid.UUID
    role: UserRole
    email: str
    display_name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
