# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from portal.models.base import TimestampMixin, UUIDBase, now_utc
from portal.models.enums import ApprovalStatus


class RequestRecord(UUIDBase, TimestampMixin, table=True):
    """A submitted request with its approval queue embedded as JSON.

    ``current_approver_index`` and ``status`` together form the optimistic
    concurrency token checked by every guarded update.
    """

    __tablename__ = "approval_request"
    __table_args__ = (sa.Index("ix_request_status_created", "status", "created_at"),)

    type: str = Field(max_length=50, index=True)
    requester_id: uuid.UUID = Field(index=True)
    requester_name: str = Field(max_length=255)
    details: dict[str, Any] = Field(default_factory=dict, sa_type=sa.JSON)
    status: str = Field(
        default=ApprovalStatus.PENDING, max_length=50, index=True, sa_column_kwargs={"server_default": "PENDING"}
    )
    approval_queue: list[dict[str, Any]] = Field(default_factory=list, sa_type=sa.JSON)
    current_approver_index: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    requester_signature: str = Field(sa_type=sa.Text)
    attachment_url: str | None = Field(default=None, sa_type=sa.Text)
    attachment_file_name: str | None = Field(default=None, max_length=255)
    vendor_id: str | None = Field(default=None, max_length=255)
    queue_history: list[dict[str, Any]] = Field(default_factory=list, sa_type=sa.JSON)


class RequestCommentRecord(UUIDBase, table=True):
    """A free-text comment attached to a request."""

    __tablename__ = "request_comment"

    request_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("approval_request.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    user_id: uuid.UUID
    user_email: str | None = Field(default=None, max_length=255)
    comment: str = Field(sa_type=sa.Text)
    created_at: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
