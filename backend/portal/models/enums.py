from __future__ import annotations

import enum


class RequestType(enum.StrEnum):
    """Kind of request; fixes which optional workflow steps apply."""

    FUEL = "FUEL"
    PROCUREMENT = "PROCUREMENT"
    LEAVE = "LEAVE"
    AD_HOC_ITEM = "AD_HOC_ITEM"
    STORE_REQUISITION = "STORE_REQUISITION"


class ApprovalStatus(enum.StrEnum):
    """State of a request, and of each entry in its approval queue."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SENT_BACK = "SENT_BACK"
    COMPLETED = "COMPLETED"

    @property
    def label(self) -> str:
        """Human readable form used in notification messages."""
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    ApprovalStatus.PENDING: "Pending",
    ApprovalStatus.APPROVED: "Approved",
    ApprovalStatus.REJECTED: "Rejected",
    ApprovalStatus.SENT_BACK: "Sent Back for Correction",
    ApprovalStatus.COMPLETED: "Completed",
}


class ApprovalAction(enum.StrEnum):
    """Decision an approver can take on the request in front of them."""

    APPROVE = "APPROVE"
    REJECT = "REJECT"
    SEND_BACK = "SEND_BACK"


class UserRole(enum.StrEnum):
    """Directory role of a portal user."""

    ADMIN = "admin"
    APPROVER = "approver"


class NotificationKind(enum.StrEnum):
    """Why a notification was derived."""

    AWAITING_APPROVAL = "AWAITING_APPROVAL"
    STATUS_CHANGE = "STATUS_CHANGE"
    COMMENT = "COMMENT"
