"""Approval engine: transition rules for a request's approval queue.

Nothing in this module performs I/O. ``transition`` validates every
precondition before touching anything and returns a new model, so a refused
action never leaves a partially applied change behind.
"""

# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from portal.exceptions import InvalidTransitionError, NotAuthorizedError
from portal.models.enums import ApprovalAction, ApprovalStatus
from portal.schemas.request import LeaveDetails

if TYPE_CHECKING:
    from portal.schemas.request import ActionPayload, ApprovalRequest

_ENTRY_STATUS: dict[ApprovalAction, ApprovalStatus] = {
    ApprovalAction.APPROVE: ApprovalStatus.APPROVED,
    ApprovalAction.REJECT: ApprovalStatus.REJECTED,
    ApprovalAction.SEND_BACK: ApprovalStatus.SENT_BACK,
}


def is_blank(value: str | None) -> bool:
    """True for None, empty and whitespace-only strings."""
    return value is None or not value.strip()


def _context(request: ApprovalRequest, **extra: Any) -> dict[str, Any]:
    return {
        "request_id": request.id,
        "status": request.status,
        "current_approver_index": request.current_approver_index,
        **extra,
    }


def designated_hod(request: ApprovalRequest) -> uuid.UUID | None:
    """Head of department named on a leave request, if any."""
    if isinstance(request.details, LeaveDetails):
        return request.details.hod_id
    return None


def check_role_fields(
    request: ApprovalRequest,
    actor_id: uuid.UUID,
    payload: ActionPayload,
    auditor_id: uuid.UUID | None,
) -> None:
    """Refuse HOD and audit fields from anyone not entitled to set them."""
    if not is_blank(payload.hod_comments) and actor_id != designated_hod(request):
        raise NotAuthorizedError(
            "Only the designated head of department may add HOD comments",
            context=_context(request, actor_id=actor_id),
        )

    wants_audit = not is_blank(payload.internal_audit_comments) or payload.final_amount is not None
    if wants_audit and (auditor_id is None or actor_id != auditor_id):
        raise NotAuthorizedError(
            "Only the internal auditor may add audit comments or a final amount",
            context=_context(request, actor_id=actor_id),
        )


def check_can_act(request: ApprovalRequest, actor_id: uuid.UUID) -> None:
    """Raise unless ``actor_id`` holds the current queue position of a pending request."""
    if request.status != ApprovalStatus.PENDING:
        raise InvalidTransitionError(
            f"Request is {request.status.label}; only pending requests accept approval actions",
            context=_context(request),
        )

    current = request.current_approver
    if current is None:
        raise InvalidTransitionError(
            "Request has no approver at its current queue position",
            context=_context(request, queue_length=len(request.approval_queue)),
        )

    if actor_id != current.user_id:
        raise NotAuthorizedError(
            "Only the current approver may act on this request",
            context=_context(request, actor_id=actor_id),
        )


def transition(
    request: ApprovalRequest,
    actor_id: uuid.UUID,
    payload: ActionPayload,
    *,
    auditor_id: uuid.UUID | None,
    now: datetime,
) -> ApprovalRequest:
    """Apply an approver's decision and return the resulting request.

    Preconditions, in order:
    1. Request is PENDING.
    2. Queue is non-empty and the pointer is inside it.
    3. Actor is the entry at the pointer (administrators included).
    4. A signature is supplied.
    5. SEND_BACK carries comments.
    6. HOD and audit fields come only from their entitled identities.

    APPROVE advances the pointer and completes the request after the last
    entry; REJECT and SEND_BACK leave the pointer where it is.
    """
    check_can_act(request, actor_id)

    if is_blank(payload.signature):
        raise InvalidTransitionError("A signature is required to act on a request", context=_context(request))

    if payload.action == ApprovalAction.SEND_BACK and is_blank(payload.comments):
        raise InvalidTransitionError(
            "Comments are required when sending a request back for correction",
            context=_context(request),
        )

    check_role_fields(request, actor_id, payload, auditor_id)

    updated = request.model_copy(deep=True)
    index = request.current_approver_index
    entry = updated.approval_queue[index]

    entry.status = _ENTRY_STATUS[payload.action]
    entry.comments = None if is_blank(payload.comments) else payload.comments
    entry.signature = payload.signature
    entry.approved_at = now
    if not is_blank(payload.hod_comments):
        entry.hod_comments = payload.hod_comments
    if not is_blank(payload.internal_audit_comments):
        entry.internal_audit_comments = payload.internal_audit_comments
    if payload.final_amount is not None:
        entry.final_amount = payload.final_amount

    if payload.action == ApprovalAction.APPROVE:
        updated.current_approver_index = index + 1
        if updated.current_approver_index == len(updated.approval_queue):
            updated.status = ApprovalStatus.APPROVED
    elif payload.action == ApprovalAction.REJECT:
        updated.status = ApprovalStatus.REJECTED
    else:
        updated.status = ApprovalStatus.SENT_BACK

    return updated
