from __future__ import annotations

from fastapi import APIRouter

from portal.api.deps import AuthDep, RequestStoreDep, SeenStoreDep
from portal.schemas.notification import NotificationListResponse
from portal.services import notification as notification_service

notifications_router = APIRouter(prefix="/notifications", tags=["notifications"])


@notifications_router.get("", response_model=NotificationListResponse)
async def list_notifications(
    store: RequestStoreDep,
    seen_store: SeenStoreDep,
    auth: AuthDep,
) -> NotificationListResponse:
    """Derive the caller's notifications from the current requests."""
    return await notification_service.list_notifications(store, seen_store, auth)


@notifications_router.post("/{notification_id}/read", response_model=NotificationListResponse)
async def mark_notification_read(
    notification_id: str,
    store: RequestStoreDep,
    seen_store: SeenStoreDep,
    auth: AuthDep,
) -> NotificationListResponse:
    """Mark one notification as read and return the refreshed list."""
    return await notification_service.mark_notification_read(store, seen_store, auth, notification_id)
