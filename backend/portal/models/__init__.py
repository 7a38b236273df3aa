from sqlmodel import SQLModel

from portal.models.base import TimestampMixin, UUIDBase
from portal.models.enums import (
    ApprovalAction,
    ApprovalStatus,
    NotificationKind,
    RequestType,
    UserRole,
)
from portal.models.notification import NotificationReceipt
from portal.models.request import RequestCommentRecord, RequestRecord

__all__ = [
    "ApprovalAction",
    "ApprovalStatus",
    "NotificationKind",
    "NotificationReceipt",
    "RequestCommentRecord",
    "RequestRecord",
    "RequestType",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
    "UserRole",
]
