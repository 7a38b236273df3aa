# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from portal.models.base import TimestampMixin, UUIDBase


class NotificationReceipt(UUIDBase, TimestampMixin, table=True):
    """Records that a viewer has seen a derived notification id."""

    __tablename__ = "notification_receipt"
    __table_args__ = (sa.UniqueConstraint("viewer_id", "notification_id", name="uq_notification_receipt"),)

    viewer_id: uuid.UUID = Field(index=True)
    notification_id: str = Field(max_length=255)
