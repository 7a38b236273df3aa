# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from portal.config import get_settings
from portal.exceptions import AppError, InvalidTransitionError, NotAuthorizedError, NotFoundError, StaleStateError
from portal.models.enums import ApprovalStatus, RequestType, UserRole
from portal.schemas.request import (
    ApprovalRequest,
    ApproverEntry,
    AttachmentRef,
    LeaveDetails,
    QueueGeneration,
    RequestComment,
    RequestListResponse,
    StoreRequisitionDetails,
)
from portal.services.directory import get_user_directory
from portal.services.engine import is_blank, transition

if TYPE_CHECKING:
    from portal.schemas.auth import AuthContext
    from portal.schemas.request import ActionPayload, AttachmentUpload, RequestDraft
    from portal.services.attachment import AttachmentStore
    from portal.services.directory import UserDirectory
    from portal.services.store import RequestStore

logger = logging.getLogger(__name__)


class WorkflowService:
    """Runs approval actions against the Request Store.

    The acting user always comes from the caller's ``AuthContext``. Every
    mutation of an existing request is a single ``conditional_update`` keyed
    on the queue pointer and status that were read, so at most one
    transition is accepted per (request, queue position).
    """

    def __init__(
        self,
        store: RequestStore,
        directory: UserDirectory,
        attachments: AttachmentStore,
        auditor_id: uuid.UUID | None = None,
    ) -> None:
        self._store = store
        self._directory = directory
        self._attachments = attachments
        self._auditor_id = auditor_id

    @staticmethod
    async def resolve_auditor(directory: UserDirectory, auditor_email: str) -> uuid.UUID | None:
        """Look up the configured auditor account once, by email."""
        auditor_id = await directory.find_by_email(auditor_email)
        if auditor_id is None:
            logger.warning("Auditor account %s not found in the user directory", auditor_email)
        return auditor_id

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    async def _get_or_404(self, request_id: uuid.UUID) -> ApprovalRequest:
        request = await self._store.get(request_id)
        if request is None:
            raise NotFoundError("Request not found", context={"request_id": request_id})
        return request

    async def _validate_draft(self, draft: RequestDraft) -> list[uuid.UUID]:
        """Check a draft and return the approver queue it asks for.

        Ad-hoc item requests never get a queue; whatever approvers the draft
        lists are dropped.
        """
        if is_blank(draft.requester_signature):
            raise InvalidTransitionError("A requester signature is required to submit a request")

        if isinstance(draft.details, StoreRequisitionDetails) and not draft.details.items:
            raise InvalidTransitionError("A store requisition needs at least one item")

        if draft.type == RequestType.AD_HOC_ITEM:
            return []

        approver_ids = list(draft.approver_ids)
        if not approver_ids:
            raise InvalidTransitionError("At least one approver is required")
        if len(set(approver_ids)) != len(approver_ids):
            raise InvalidTransitionError("An approver may appear only once in the queue")

        for approver_id in approver_ids:
            user = await self._directory.resolve(approver_id)
            if user is None:
                raise NotFoundError("Approver not found", context={"user_id": approver_id})
            if user.role != UserRole.APPROVER:
                raise InvalidTransitionError(f"User {user.email} is not an approver", context={"user_id": user.id})

        if isinstance(draft.details, LeaveDetails) and draft.details.hod_id not in approver_ids:
            raise InvalidTransitionError(
                "The head of department must be one of the approvers",
                context={"hod_id": draft.details.hod_id},
            )

        return approver_ids

    async def _store_attachment(self, auth: AuthContext, upload: AttachmentUpload | None) -> AttachmentRef | None:
        if upload is None:
            return None
        return await self._attachments.put(auth.user_id, upload.file_name, upload.content)

    async def _discard_attachment(self, attachment_ref: AttachmentRef | None, request_id: uuid.UUID) -> None:
        """Drop an upload whose request write was refused."""
        if attachment_ref is None:
            return
        logger.info("Discarding attachment %s for request %s", attachment_ref.url, request_id)
        await self._attachments.delete(attachment_ref.url)

    @staticmethod
    def _require_admin(auth: AuthContext, action: str, request_id: uuid.UUID) -> None:
        if auth.role != UserRole.ADMIN:
            raise NotAuthorizedError(
                f"Only administrators may {action}",
                context={"request_id": request_id, "actor_id": auth.user_id},
            )

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def submit(
        self,
        auth: AuthContext,
        draft: RequestDraft,
        attachment: AttachmentUpload | None = None,
    ) -> ApprovalRequest:
        """Create a new PENDING request at the head of its approval queue.

        The attachment is uploaded only after the draft validates, and is
        removed again if the store refuses the new request.
        """
        approver_ids = await self._validate_draft(draft)
        attachment_ref = await self._store_attachment(auth, attachment)

        request = ApprovalRequest(
            id=uuid.uuid4(),
            type=draft.type,
            details=draft.details.model_copy(deep=True),
            requester_id=auth.user_id,
            requester_name=draft.requester_name or auth.display_name or auth.email,
            status=ApprovalStatus.PENDING,
            approval_queue=[ApproverEntry(user_id=approver_id) for approver_id in approver_ids],
            current_approver_index=0,
            requester_signature=draft.requester_signature,
            created_at=datetime.now(UTC),
            attachment=attachment_ref,
            vendor_id=draft.vendor_id,
        )
        try:
            created = await self._store.create(request)
        except AppError:
            await self._discard_attachment(attachment_ref, request.id)
            raise
        logger.info(
            "Request %s (%s) submitted by %s with %d approvers",
            created.id,
            created.type,
            auth.user_id,
            len(created.approval_queue),
        )
        return created

    async def apply_action(
        self,
        request_id: uuid.UUID,
        auth: AuthContext,
        payload: ActionPayload,
    ) -> ApprovalRequest:
        """Apply the current approver's decision through a guarded write."""
        request = await self._get_or_404(request_id)
        now = datetime.now(UTC)

        def _mutate(current: ApprovalRequest) -> ApprovalRequest:
            return transition(current, auth.user_id, payload, auditor_id=self._auditor_id, now=now)

        try:
            updated = await self._store.conditional_update(
                request_id, request.current_approver_index, request.status, _mutate
            )
        except StaleStateError:
            logger.warning(
                "Stale %s on request %s by %s at position %d",
                payload.action,
                request_id,
                auth.user_id,
                request.current_approver_index,
            )
            raise

        logger.info(
            "Request %s: %s by %s at position %d -> %s",
            request_id,
            payload.action,
            auth.user_id,
            request.current_approver_index,
            updated.status,
        )
        return updated

    async def resubmit(
        self,
        request_id: uuid.UUID,
        auth: AuthContext,
        draft: RequestDraft,
        attachment: AttachmentUpload | None = None,
    ) -> ApprovalRequest:
        """Restart a sent-back request from the top with a (possibly new) queue.

        The discarded queue is appended to ``queue_history``. A new attachment
        is removed again if the guarded write is refused.
        """
        self._require_admin(auth, "resubmit requests", request_id)
        request = await self._get_or_404(request_id)

        if request.status != ApprovalStatus.SENT_BACK:
            raise InvalidTransitionError(
                "Only requests sent back for correction can be resubmitted",
                context={"request_id": request_id, "status": request.status},
            )
        if draft.type != request.type:
            raise InvalidTransitionError(
                "The type of a request cannot change",
                context={"request_id": request_id, "expected_type": request.type, "actual_type": draft.type},
            )

        approver_ids = await self._validate_draft(draft)
        attachment_ref = await self._store_attachment(auth, attachment)
        now = datetime.now(UTC)

        def _restart(current: ApprovalRequest) -> ApprovalRequest:
            updated = current.model_copy(deep=True)
            updated.queue_history.append(
                QueueGeneration(
                    generation=len(current.queue_history) + 1,
                    closed_at=now,
                    entries=current.approval_queue,
                )
            )
            updated.details = draft.details.model_copy(deep=True)
            updated.requester_name = draft.requester_name or current.requester_name
            updated.requester_signature = draft.requester_signature
            updated.vendor_id = draft.vendor_id
            updated.attachment = attachment_ref or current.attachment
            updated.approval_queue = [ApproverEntry(user_id=approver_id) for approver_id in approver_ids]
            updated.current_approver_index = 0
            updated.status = ApprovalStatus.PENDING
            return updated

        try:
            updated = await self._store.conditional_update(
                request_id, request.current_approver_index, ApprovalStatus.SENT_BACK, _restart
            )
        except AppError:
            await self._discard_attachment(attachment_ref, request_id)
            raise
        logger.info("Request %s resubmitted by %s with %d approvers", request_id, auth.user_id, len(approver_ids))
        return updated

    async def resolve_ad_hoc_item(
        self,
        request_id: uuid.UUID,
        auth: AuthContext,
        new_status: ApprovalStatus = ApprovalStatus.COMPLETED,
    ) -> ApprovalRequest:
        """Mark an ad-hoc item request as completed, bypassing the queue."""
        self._require_admin(auth, "resolve item requests", request_id)
        if new_status != ApprovalStatus.COMPLETED:
            raise InvalidTransitionError(
                "Item requests can only be resolved as completed",
                context={"request_id": request_id, "status": new_status},
            )

        request = await self._get_or_404(request_id)
        if request.type != RequestType.AD_HOC_ITEM:
            raise InvalidTransitionError(
                "Only ad-hoc item requests are resolved directly",
                context={"request_id": request_id, "type": request.type},
            )
        if request.status != ApprovalStatus.PENDING:
            raise InvalidTransitionError(
                f"Request is already {request.status.label}",
                context={"request_id": request_id, "status": request.status},
            )

        def _complete(current: ApprovalRequest) -> ApprovalRequest:
            updated = current.model_copy(deep=True)
            updated.status = ApprovalStatus.COMPLETED
            return updated

        updated = await self._store.conditional_update(
            request_id, request.current_approver_index, ApprovalStatus.PENDING, _complete
        )
        logger.info("Item request %s completed by %s", request_id, auth.user_id)
        return updated

    async def add_comment(self, request_id: uuid.UUID, auth: AuthContext, text: str) -> ApprovalRequest:
        """Leave a comment on a request. Does not touch the workflow state."""
        if is_blank(text):
            raise InvalidTransitionError("A comment cannot be empty", context={"request_id": request_id})
        comment = RequestComment(
            user_id=auth.user_id,
            user_email=auth.email,
            comment=text.strip(),
            created_at=datetime.now(UTC),
        )
        return await self._store.add_comment(request_id, comment)

    async def get_request(self, request_id: uuid.UUID) -> ApprovalRequest:
        """Get a single request by ID."""
        return await self._get_or_404(request_id)

    async def list_requests(
        self,
        status_filter: ApprovalStatus | None = None,
        type_filter: RequestType | None = None,
    ) -> RequestListResponse:
        """List requests with optional filters, newest first."""
        requests = await self._store.list_all()
        if status_filter is not None:
            requests = [r for r in requests if r.status == status_filter]
        if type_filter is not None:
            requests = [r for r in requests if r.type == type_filter]
        return RequestListResponse(items=requests, total=len(requests))


# ---------------------------------------------------------------------------
# Auditor identity
# ---------------------------------------------------------------------------

_auditor_id: uuid.UUID | None = None


async def get_auditor_id() -> uuid.UUID | None:
    """Return the configured auditor's user id, resolving it on first use."""
    global _auditor_id
    if _auditor_id is None:
        _auditor_id = await WorkflowService.resolve_auditor(get_user_directory(), get_settings().auditor_email)
    return _auditor_id


def reset_auditor_id() -> None:
    """Forget the resolved auditor (after re-seeding the directory)."""
    global _auditor_id
    _auditor_id = None
