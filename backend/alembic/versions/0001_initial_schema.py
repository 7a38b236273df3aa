"""initial schema: approval requests, comments, notification receipts

Revision ID: 0001
Revises:
Create Date: 2025-06-02 09:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def upgrade() -> None:
    op.create_table(
        "approval_request",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("requester_id", sa.Uuid(), nullable=False),
        sa.Column("requester_name", sa.String(length=255), nullable=False),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=50), server_default="PENDING", nullable=False),
        sa.Column("approval_queue", sa.JSON(), nullable=False),
        sa.Column("current_approver_index", sa.Integer(), server_default="0", nullable=False),
        sa.Column("requester_signature", sa.Text(), nullable=False),
        sa.Column("attachment_url", sa.Text(), nullable=True),
        sa.Column("attachment_file_name", sa.String(length=255), nullable=True),
        sa.Column("vendor_id", sa.String(length=255), nullable=True),
        sa.Column("queue_history", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_approval_request_type", "approval_request", ["type"])
    op.create_index("ix_approval_request_requester_id", "approval_request", ["requester_id"])
    op.create_index("ix_approval_request_status", "approval_request", ["status"])
    op.create_index("ix_request_status_created", "approval_request", ["status", "created_at"])

    op.create_table(
        "request_comment",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("request_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("user_email", sa.String(length=255), nullable=True),
        sa.Column("comment", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["request_id"], ["approval_request.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_request_comment_request_id", "request_comment", ["request_id"])

    op.create_table(
        "notification_receipt",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("viewer_id", sa.Uuid(), nullable=False),
        sa.Column("notification_id", sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("viewer_id", "notification_id", name="uq_notification_receipt"),
    )
    op.create_index("ix_notification_receipt_viewer_id", "notification_receipt", ["viewer_id"])


def downgrade() -> None:
    op.drop_index("ix_notification_receipt_viewer_id", table_name="notification_receipt")
    op.drop_table("notification_receipt")
    op.drop_index("ix_request_comment_request_id", table_name="request_comment")
    op.drop_table("request_comment")
    op.drop_index("ix_request_status_created", table_name="approval_request")
    op.drop_index("ix_approval_request_status", table_name="approval_request")
    op.drop_index("ix_approval_request_requester_id", table_name="approval_request")
    op.drop_index("ix_approval_request_type", table_name="approval_request")
    op.drop_table("approval_request")
