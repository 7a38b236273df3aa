"""Unit tests for the pure approval engine transition rules."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

import pytest

from portal.exceptions import InvalidTransitionError, NotAuthorizedError
from portal.models.enums import ApprovalAction, ApprovalStatus, RequestType
from portal.schemas.request import ActionPayload, ApprovalRequest, ApproverEntry
from portal.services.engine import transition

NOW = datetime(2025, 3, 3, 9, 30, tzinfo=UTC)
SIGNATURE = "data:image/png;base64,iVBORw0KGgo="

A = uuid.uuid4()
B = uuid.uuid4()
C = uuid.uuid4()
AUDITOR = uuid.uuid4()
ADMIN = uuid.uuid4()


def _request(
    queue: list[uuid.UUID],
    request_type: RequestType = RequestType.PROCUREMENT,
    details: dict[str, Any] | None = None,
    status: ApprovalStatus = ApprovalStatus.PENDING,
    index: int = 0,
) -> ApprovalRequest:
    return ApprovalRequest(
        id=uuid.uuid4(),
        type=request_type,
        details=details if details is not None else {"subject": "Printer toner", "amount": 120000},
        requester_id=uuid.uuid4(),
        requester_name="Requester",
        status=status,
        approval_queue=[ApproverEntry(user_id=user_id) for user_id in queue],
        current_approver_index=index,
        requester_signature=SIGNATURE,
        created_at=datetime(2025, 3, 1, tzinfo=UTC),
    )


def _payload(action: ApprovalAction = ApprovalAction.APPROVE, **kwargs: Any) -> ActionPayload:
    kwargs.setdefault("signature", SIGNATURE)
    return ActionPayload(action=action, **kwargs)


def _apply(request: ApprovalRequest, actor: uuid.UUID, payload: ActionPayload) -> ApprovalRequest:
    return transition(request, actor, payload, auditor_id=AUDITOR, now=NOW)


# ---------------------------------------------------------------------------
# Approve
# ---------------------------------------------------------------------------


def test_approve_advances_pointer_and_stays_pending() -> None:
    request = _request([A, B, C])

    result = _apply(request, A, _payload(comments="Looks fine"))

    assert result.status == ApprovalStatus.PENDING
    assert result.current_approver_index == 1
    entry = result.approval_queue[0]
    assert entry.status == ApprovalStatus.APPROVED
    assert entry.comments == "Looks fine"
    assert entry.signature == SIGNATURE
    assert entry.approved_at == NOW
    assert [e.status for e in result.approval_queue[1:]] == [ApprovalStatus.PENDING, ApprovalStatus.PENDING]


def test_approve_last_entry_completes_request() -> None:
    request = _request([A, B], index=1)

    result = _apply(request, B, _payload())

    assert result.status == ApprovalStatus.APPROVED
    assert result.current_approver_index == len(result.approval_queue) == 2


def test_single_entry_queue_approves_in_one_step() -> None:
    result = _apply(_request([A]), A, _payload())
    assert result.status == ApprovalStatus.APPROVED
    assert result.current_approver_index == 1


def test_transition_does_not_mutate_input() -> None:
    request = _request([A, B])
    before = request.model_dump()

    _apply(request, A, _payload())

    assert request.model_dump() == before


def test_blank_comments_are_stored_as_none() -> None:
    result = _apply(_request([A, B]), A, _payload(comments="   "))
    assert result.approval_queue[0].comments is None


# ---------------------------------------------------------------------------
# Reject / send back
# ---------------------------------------------------------------------------


def test_reject_is_terminal_and_keeps_pointer() -> None:
    request = _request([A, B, C], index=1)

    result = _apply(request, B, _payload(ApprovalAction.REJECT, comments="Over budget"))

    assert result.status == ApprovalStatus.REJECTED
    assert result.current_approver_index == 1
    assert result.approval_queue[1].status == ApprovalStatus.REJECTED
    assert result.approval_queue[1].approved_at == NOW
    assert result.approval_queue[2].status == ApprovalStatus.PENDING


def test_reject_without_comments_is_allowed() -> None:
    result = _apply(_request([A]), A, _payload(ApprovalAction.REJECT))
    assert result.status == ApprovalStatus.REJECTED


def test_send_back_with_comments_succeeds() -> None:
    request = _request([A, B, C], index=1)

    result = _apply(request, B, _payload(ApprovalAction.SEND_BACK, comments="fix budget"))

    assert result.status == ApprovalStatus.SENT_BACK
    assert result.current_approver_index == 1
    assert result.approval_queue[1].status == ApprovalStatus.SENT_BACK
    assert result.approval_queue[1].comments == "fix budget"


@pytest.mark.parametrize("comments", [None, "", "   "])
def test_send_back_requires_comments(comments: str | None) -> None:
    request = _request([A, B])
    with pytest.raises(InvalidTransitionError, match="Comments are required"):
        _apply(request, A, _payload(ApprovalAction.SEND_BACK, comments=comments))


# ---------------------------------------------------------------------------
# Preconditions
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("actor", [B, C, ADMIN, AUDITOR])
def test_only_current_approver_may_act(actor: uuid.UUID) -> None:
    request = _request([A, B, C])
    with pytest.raises(NotAuthorizedError):
        _apply(request, actor, _payload())


def test_previous_approver_cannot_act_again() -> None:
    request = _request([A, B], index=1)
    with pytest.raises(NotAuthorizedError):
        _apply(request, A, _payload())


@pytest.mark.parametrize(
    "status",
    [ApprovalStatus.APPROVED, ApprovalStatus.REJECTED, ApprovalStatus.SENT_BACK, ApprovalStatus.COMPLETED],
)
def test_non_pending_request_rejects_actions(status: ApprovalStatus) -> None:
    request = _request([A, B], status=status)
    with pytest.raises(InvalidTransitionError):
        _apply(request, A, _payload())


def test_empty_queue_rejects_actions() -> None:
    request = _request([], request_type=RequestType.AD_HOC_ITEM, details={"subject": "Stapler"})
    with pytest.raises(InvalidTransitionError, match="no approver"):
        _apply(request, A, _payload())


def test_pointer_past_end_rejects_actions() -> None:
    request = _request([A, B], index=2)
    with pytest.raises(InvalidTransitionError):
        _apply(request, A, _payload())


@pytest.mark.parametrize("signature", ["", "  "])
def test_signature_is_required(signature: str) -> None:
    request = _request([A, B])
    with pytest.raises(InvalidTransitionError, match="signature"):
        _apply(request, A, _payload(signature=signature))


def test_authorization_is_checked_before_signature() -> None:
    request = _request([A, B])
    with pytest.raises(NotAuthorizedError):
        _apply(request, B, _payload(signature=""))


# ---------------------------------------------------------------------------
# Role-conditioned fields
# ---------------------------------------------------------------------------


def _leave(queue: list[uuid.UUID], hod: uuid.UUID, index: int = 0) -> ApprovalRequest:
    return _request(queue, request_type=RequestType.LEAVE, details={"hod_id": str(hod), "leave_days": 5}, index=index)


def test_designated_hod_can_add_hod_comments() -> None:
    request = _leave([A, B], hod=B, index=1)

    result = _apply(request, B, _payload(hod_comments="Cover arranged"))

    assert result.approval_queue[1].hod_comments == "Cover arranged"
    assert result.status == ApprovalStatus.APPROVED


def test_non_hod_hod_comments_are_rejected() -> None:
    request = _leave([A, B], hod=B)
    with pytest.raises(NotAuthorizedError, match="head of department"):
        _apply(request, A, _payload(hod_comments="I approve as HOD"))


def test_hod_comments_rejected_on_non_leave_request() -> None:
    request = _request([A])
    with pytest.raises(NotAuthorizedError):
        _apply(request, A, _payload(hod_comments="Not a leave request"))


def test_blank_hod_comments_from_non_hod_are_ignored() -> None:
    request = _leave([A, B], hod=B)

    result = _apply(request, A, _payload(hod_comments="  "))

    assert result.approval_queue[0].hod_comments is None
    assert result.current_approver_index == 1


def test_auditor_can_set_audit_fields() -> None:
    request = _request([A, AUDITOR], index=1)

    result = _apply(request, AUDITOR, _payload(internal_audit_comments="Quote verified", final_amount=95000))

    entry = result.approval_queue[1]
    assert entry.internal_audit_comments == "Quote verified"
    assert entry.final_amount == 95000
    assert result.status == ApprovalStatus.APPROVED


@pytest.mark.parametrize(
    "fields",
    [{"internal_audit_comments": "Looks fine"}, {"final_amount": 10.0}, {"final_amount": 0}],
)
def test_non_auditor_cannot_set_audit_fields(fields: dict[str, Any]) -> None:
    request = _request([A, AUDITOR])
    with pytest.raises(NotAuthorizedError, match="auditor"):
        _apply(request, A, _payload(**fields))


def test_audit_fields_refused_when_no_auditor_configured() -> None:
    request = _request([AUDITOR])
    with pytest.raises(NotAuthorizedError):
        transition(request, AUDITOR, _payload(final_amount=1.0), auditor_id=None, now=NOW)


def test_refused_role_field_leaves_request_untouched() -> None:
    request = _leave([A, B], hod=B)
    before = request.model_dump()

    with pytest.raises(NotAuthorizedError):
        _apply(request, A, _payload(hod_comments="sneaky"))

    assert request.model_dump() == before
