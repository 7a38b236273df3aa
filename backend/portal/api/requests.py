# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from portal.api.deps import AuthDep, WorkflowDep
from portal.models.enums import ApprovalStatus, RequestType
from portal.schemas.request import (
    ActionPayload,
    ApprovalRequest,
    CommentPayload,
    RequestListResponse,
    ResolvePayload,
    SubmitRequestPayload,
)

requests_router = APIRouter(prefix="/requests", tags=["requests"])


@requests_router.post("", response_model=ApprovalRequest, status_code=status.HTTP_201_CREATED)
async def submit_request(
    payload: SubmitRequestPayload,
    service: WorkflowDep,
    auth: AuthDep,
) -> ApprovalRequest:
    """Submit a new request on behalf of the caller."""
    return await service.submit(auth, payload, payload.attachment)


@requests_router.get("", response_model=RequestListResponse)
async def list_requests(
    service: WorkflowDep,
    auth: AuthDep,
    status_filter: ApprovalStatus | None = Query(default=None, alias="status"),
    type_filter: RequestType | None = Query(default=None, alias="type"),
) -> RequestListResponse:
    """List requests, newest first, with optional status and type filters."""
    return await service.list_requests(status_filter, type_filter)


@requests_router.get("/{request_id}", response_model=ApprovalRequest)
async def get_request(
    request_id: uuid.UUID,
    service: WorkflowDep,
    auth: AuthDep,
) -> ApprovalRequest:
    """Get a single request."""
    return await service.get_request(request_id)


@requests_router.post("/{request_id}/actions", response_model=ApprovalRequest)
async def apply_action(
    request_id: uuid.UUID,
    payload: ActionPayload,
    service: WorkflowDep,
    auth: AuthDep,
) -> ApprovalRequest:
    """Approve, reject or send back a request (current approver only)."""
    return await service.apply_action(request_id, auth, payload)


@requests_router.post("/{request_id}/resubmit", response_model=ApprovalRequest)
async def resubmit_request(
    request_id: uuid.UUID,
    payload: SubmitRequestPayload,
    service: WorkflowDep,
    auth: AuthDep,
) -> ApprovalRequest:
    """Restart a sent-back request with corrected details (admin only)."""
    return await service.resubmit(request_id, auth, payload, payload.attachment)


@requests_router.post("/{request_id}/resolve", response_model=ApprovalRequest)
async def resolve_item_request(
    request_id: uuid.UUID,
    service: WorkflowDep,
    auth: AuthDep,
    payload: ResolvePayload | None = None,
) -> ApprovalRequest:
    """Complete an ad-hoc item request directly (admin only)."""
    new_status = payload.status if payload else ApprovalStatus.COMPLETED
    return await service.resolve_ad_hoc_item(request_id, auth, new_status)


@requests_router.post("/{request_id}/comments", response_model=ApprovalRequest, status_code=status.HTTP_201_CREATED)
async def add_comment(
    request_id: uuid.UUID,
    payload: CommentPayload,
    service: WorkflowDep,
    auth: AuthDep,
) -> ApprovalRequest:
    """Leave a comment on a request."""
    return await service.add_comment(request_id, auth, payload.comment)
