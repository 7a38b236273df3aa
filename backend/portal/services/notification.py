# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import col

from portal.exceptions import UnavailableError
from portal.models.enums import ApprovalStatus, NotificationKind, UserRole
from portal.models.notification import NotificationReceipt
from portal.schemas.notification import Notification, NotificationListResponse

if TYPE_CHECKING:
    from collections.abc import Iterable, Set

    from sqlalchemy.ext.asyncio import AsyncSession

    from portal.schemas.auth import AuthContext
    from portal.schemas.request import ApprovalRequest, RequestComment
    from portal.services.store import RequestStore

logger = logging.getLogger(__name__)

ADMIN_VISIBLE_STATUSES = frozenset({ApprovalStatus.SENT_BACK, ApprovalStatus.REJECTED, ApprovalStatus.COMPLETED})
COMMENT_PREVIEW_CHARS = 40


# ---------------------------------------------------------------------------
# Derivation
# ---------------------------------------------------------------------------


def awaiting_approval_id(request: ApprovalRequest, viewer_id: uuid.UUID) -> str:
    return f"notif-{request.id}-{request.status.value}-{viewer_id}"


def status_change_id(request: ApprovalRequest) -> str:
    return f"notif-{request.id}-{request.status.value}"


def comment_id(request: ApprovalRequest, comment: RequestComment) -> str:
    # The comment id keeps two comments posted in the same instant apart.
    return f"notif-comment-{request.id}-{comment.created_at.isoformat()}-{comment.id}"


def _comment_author(comment: RequestComment) -> str:
    if comment.user_email:
        return comment.user_email.split("@")[0]
    return "a user"


def _derive_for_request(
    request: ApprovalRequest,
    viewer_id: uuid.UUID,
    viewer_role: UserRole,
) -> Iterable[tuple[str, NotificationKind, str, ApprovalRequest | RequestComment]]:
    if viewer_role == UserRole.APPROVER and request.status == ApprovalStatus.PENDING:
        current = request.current_approver
        if current is not None and current.user_id == viewer_id:
            yield (
                awaiting_approval_id(request, viewer_id),
                NotificationKind.AWAITING_APPROVAL,
                f"New request awaiting your approval: {request.id}",
                request,
            )

    if viewer_role == UserRole.ADMIN:
        if request.status in ADMIN_VISIBLE_STATUSES:
            yield (
                status_change_id(request),
                NotificationKind.STATUS_CHANGE,
                f"Request {request.id} has been {request.status.label}.",
                request,
            )
        for comment in request.comments:
            if comment.user_id == viewer_id:
                continue
            preview = comment.comment[:COMMENT_PREVIEW_CHARS]
            yield (
                comment_id(request, comment),
                NotificationKind.COMMENT,
                f'New comment on {request.id} from {_comment_author(comment)}: "{preview}..."',
                comment,
            )


def derive_notifications(
    requests: Iterable[ApprovalRequest],
    viewer_id: uuid.UUID,
    viewer_role: UserRole,
    seen_ids: Set[str],
) -> list[Notification]:
    """Rebuild a viewer's notifications from the current requests.

    Approvers see requests waiting on them; administrators see requests
    that were sent back, rejected or completed, plus every comment left by
    someone else. Ids are derived from the source data, so a notification
    disappears once its cause does and never appears twice. The result is
    newest first, ties broken by id, and ``is_read`` reflects ``seen_ids``.
    """
    notifications: list[Notification] = []
    for request in requests:
        for notification_id, kind, message, source in _derive_for_request(request, viewer_id, viewer_role):
            notifications.append(
                Notification(
                    id=notification_id,
                    kind=kind,
                    request_id=request.id,
                    message=message,
                    created_at=source.created_at,
                    is_read=notification_id in seen_ids,
                )
            )
    notifications.sort(key=lambda n: n.id)
    notifications.sort(key=lambda n: n.created_at, reverse=True)
    return notifications


# ---------------------------------------------------------------------------
# Seen store
# ---------------------------------------------------------------------------


@runtime_checkable
class NotificationSeenStore(Protocol):
    """Interface for the per-viewer record of acknowledged notification ids."""

    async def mark_seen(self, viewer_id: uuid.UUID, notification_id: str) -> None:
        """Record that the viewer has seen the notification. Idempotent."""
        ...

    async def is_seen(self, viewer_id: uuid.UUID, notification_id: str) -> bool:
        """Whether the viewer has seen the notification."""
        ...

    async def seen_ids(self, viewer_id: uuid.UUID) -> set[str]:
        """Every notification id the viewer has seen."""
        ...


class InMemoryNotificationSeenStore:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._seen: dict[uuid.UUID, set[str]] = {}

    async def mark_seen(self, viewer_id: uuid.UUID, notification_id: str) -> None:
        self._seen.setdefault(viewer_id, set()).add(notification_id)

    async def is_seen(self, viewer_id: uuid.UUID, notification_id: str) -> bool:
        return notification_id in self._seen.get(viewer_id, set())

    async def seen_ids(self, viewer_id: uuid.UUID) -> set[str]:
        return set(self._seen.get(viewer_id, set()))


class SqlNotificationSeenStore:
    """Seen store backed by the ``notification_receipt`` table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def mark_seen(self, viewer_id: uuid.UUID, notification_id: str) -> None:
        if await self.is_seen(viewer_id, notification_id):
            return
        self._session.add(NotificationReceipt(viewer_id=viewer_id, notification_id=notification_id))
        try:
            await self._session.commit()
        except IntegrityError:
            # Another refresh recorded it first.
            await self._session.rollback()
        except SQLAlchemyError as exc:
            logger.exception("Could not record notification %s for %s", notification_id, viewer_id)
            await self._session.rollback()
            raise UnavailableError("Notification store unavailable", context={"viewer_id": viewer_id}) from exc

    async def is_seen(self, viewer_id: uuid.UUID, notification_id: str) -> bool:
        try:
            result = await self._session.execute(
                select(NotificationReceipt.id).where(
                    col(NotificationReceipt.viewer_id) == viewer_id,
                    col(NotificationReceipt.notification_id) == notification_id,
                )
            )
        except SQLAlchemyError as exc:
            logger.exception("Could not read notification receipts for %s", viewer_id)
            raise UnavailableError("Notification store unavailable", context={"viewer_id": viewer_id}) from exc
        return result.first() is not None

    async def seen_ids(self, viewer_id: uuid.UUID) -> set[str]:
        try:
            result = await self._session.execute(
                select(NotificationReceipt.notification_id).where(col(NotificationReceipt.viewer_id) == viewer_id)
            )
        except SQLAlchemyError as exc:
            logger.exception("Could not read notification receipts for %s", viewer_id)
            raise UnavailableError("Notification store unavailable", context={"viewer_id": viewer_id}) from exc
        return set(result.scalars().all())


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def list_notifications(
    store: RequestStore,
    seen_store: NotificationSeenStore,
    viewer: AuthContext,
) -> NotificationListResponse:
    """Derive the viewer's notifications from a fresh snapshot of all requests."""
    requests = await store.list_all()
    seen = await seen_store.seen_ids(viewer.user_id)
    items = derive_notifications(requests, viewer.user_id, viewer.role, seen)
    return NotificationListResponse(
        items=items,
        total=len(items),
        unread=sum(1 for n in items if not n.is_read),
    )


async def mark_notification_read(
    store: RequestStore,
    seen_store: NotificationSeenStore,
    viewer: AuthContext,
    notification_id: str,
) -> NotificationListResponse:
    """Acknowledge a notification and return the refreshed list."""
    await seen_store.mark_seen(viewer.user_id, notification_id)
    return await list_notifications(store, seen_store, viewer)
