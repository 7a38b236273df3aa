# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header, status

from portal.db import SessionDep
from portal.exceptions import AppError
from portal.models.enums import UserRole
from portal.schemas.auth import AuthContext
from portal.services.attachment import AttachmentStore, get_attachment_store
from portal.services.directory import UserDirectory, get_user_directory
from portal.services.notification import NotificationSeenStore, SqlNotificationSeenStore
from portal.services.store import RequestStore, SqlRequestStore
from portal.services.workflow import WorkflowService, get_auditor_id

DirectoryDep = Annotated[UserDirectory, Depends(get_user_directory)]


async def get_auth_context(
    directory: DirectoryDep,
    x_user_id: uuid.UUID | None = Header(default=None),
) -> AuthContext:
    """Resolve the caller from the dev auth header; role comes from the directory, never the client."""
    if x_user_id is None:
        raise AppError("Authentication required", status_code=status.HTTP_401_UNAUTHORIZED)
    user = await directory.resolve(x_user_id)
    if user is None:
        raise AppError("Unknown user", status_code=status.HTTP_401_UNAUTHORIZED)
    return AuthContext(user_id=user.id, role=user.role, email=user.email, display_name=user.display_name)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_admin(
    auth: AuthDep,
) -> AuthContext:
    """Require admin role for the request."""
    if auth.role != UserRole.ADMIN:
        raise AppError("Admin access required", status_code=status.HTTP_403_FORBIDDEN)
    return auth


AdminDep = Annotated[AuthContext, Depends(require_admin)]


async def get_request_store(session: SessionDep) -> RequestStore:
    """FastAPI dependency for the Request Store."""
    return SqlRequestStore(session)


RequestStoreDep = Annotated[RequestStore, Depends(get_request_store)]


async def get_seen_store(session: SessionDep) -> NotificationSeenStore:
    """FastAPI dependency for the notification seen store."""
    return SqlNotificationSeenStore(session)


SeenStoreDep = Annotated[NotificationSeenStore, Depends(get_seen_store)]


async def get_workflow_service(
    store: RequestStoreDep,
    directory: DirectoryDep,
    attachments: Annotated[AttachmentStore, Depends(get_attachment_store)],
    auditor_id: Annotated[uuid.UUID | None, Depends(get_auditor_id)],
) -> WorkflowService:
    """FastAPI dependency wiring the Workflow Service for one request."""
    return WorkflowService(store, directory, attachments, auditor_id)


WorkflowDep = Annotated[WorkflowService, Depends(get_workflow_service)]
