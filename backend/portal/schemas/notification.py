# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel

from portal.models.enums import NotificationKind


class Notification(BaseModel):
    """A derived alert for one viewer. Never persisted."""

    id: str
    kind: NotificationKind
    request_id: uuid.UUID
    message: str
    created_at: datetime
    is_read: bool = False


class NotificationListResponse(BaseModel):
    """Notifications for the caller, newest first."""

    items: list[Notification]
    total: int
    unread: int
