# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Annotated, Any, Literal, Self

from pydantic import Base64Bytes, BaseModel, ConfigDict, Discriminator, Field, Tag, model_validator

from portal.models.enums import ApprovalAction, ApprovalStatus, RequestType

# ---------------------------------------------------------------------------
# Per-type request details (discriminated union)
# ---------------------------------------------------------------------------


class _DetailsBase(BaseModel):
    """Fields shared by every details variant; unknown keys are kept as-is."""

    model_config = ConfigDict(extra="allow")

    subject: str | None = None


class FuelDetails(_DetailsBase):
    """Fuel requisition details."""

    kind: Literal["FUEL"] = "FUEL"
    amount: float | None = Field(default=None, ge=0)
    litres: float | None = Field(default=None, gt=0)


class ProcurementDetails(_DetailsBase):
    """Product procurement details."""

    kind: Literal["PROCUREMENT"] = "PROCUREMENT"
    amount: float | None = Field(default=None, ge=0)


class LeaveDetails(_DetailsBase):
    """Leave request details, naming the head of department who signs off."""

    kind: Literal["LEAVE"] = "LEAVE"
    hod_id: uuid.UUID
    leave_days: int | None = Field(default=None, ge=1)
    days_remaining: int | None = Field(default=None, ge=0)
    start_date: date | None = None
    end_date: date | None = None

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.start_date is not None and self.end_date is not None and self.end_date < self.start_date:
            msg = "end_date must not be before start_date"
            raise ValueError(msg)
        return self


class AdHocItemDetails(_DetailsBase):
    """Ad-hoc item request; resolved by an administrator, not a queue."""

    kind: Literal["AD_HOC_ITEM"] = "AD_HOC_ITEM"
    description: str | None = None


class StoreRequisitionItem(BaseModel):
    """One line of a store requisition, priced from the inventory record."""

    item_id: str = Field(min_length=1)
    item_name: str = Field(min_length=1)
    quantity: int = Field(gt=0)
    unit_cost: float = Field(default=0, ge=0)
    total_cost: float = 0

    @model_validator(mode="after")
    def _compute_total(self) -> Self:
        self.total_cost = self.unit_cost * self.quantity
        return self


class StoreRequisitionDetails(_DetailsBase):
    """Store requisition with priced item lines. grand_total is informational."""

    kind: Literal["STORE_REQUISITION"] = "STORE_REQUISITION"
    items: list[StoreRequisitionItem] = []
    grand_total: float = 0

    @model_validator(mode="after")
    def _compute_grand_total(self) -> Self:
        self.grand_total = sum(item.total_cost for item in self.items)
        return self


def _details_discriminator(v: Any) -> str:
    """Discriminate request details by their kind tag."""
    kind = v.get("kind") if isinstance(v, dict) else getattr(v, "kind", None)
    return str(kind) if kind else "unknown"


RequestDetails = Annotated[
    Annotated[FuelDetails, Tag(RequestType.FUEL.value)]
    | Annotated[ProcurementDetails, Tag(RequestType.PROCUREMENT.value)]
    | Annotated[LeaveDetails, Tag(RequestType.LEAVE.value)]
    | Annotated[AdHocItemDetails, Tag(RequestType.AD_HOC_ITEM.value)]
    | Annotated[StoreRequisitionDetails, Tag(RequestType.STORE_REQUISITION.value)],
    Discriminator(_details_discriminator),
]


class _TypedDetailsMixin(BaseModel):
    """Tags untagged ``details`` with the enclosing ``type`` and checks they agree."""

    type: RequestType
    details: RequestDetails

    @model_validator(mode="before")
    @classmethod
    def _tag_details(cls, data: Any) -> Any:
        if isinstance(data, dict):
            details = data.get("details")
            if isinstance(details, dict) and "kind" not in details and data.get("type") is not None:
                data = {**data, "details": {**details, "kind": str(data["type"])}}
        return data

    @model_validator(mode="after")
    def _check_details_kind(self) -> Self:
        if self.details.kind != self.type:
            msg = f"details of kind {self.details.kind} do not match request type {self.type}"
            raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# Domain model
# ---------------------------------------------------------------------------


class ApproverEntry(BaseModel):
    """One position in a request's approval queue."""

    user_id: uuid.UUID
    status: ApprovalStatus = ApprovalStatus.PENDING
    comments: str | None = None
    signature: str | None = None
    approved_at: datetime | None = None
    hod_comments: str | None = None
    internal_audit_comments: str | None = None
    final_amount: float | None = None


class QueueGeneration(BaseModel):
    """An approval queue discarded by a resubmission, kept for reference."""

    generation: int
    closed_at: datetime
    entries: list[ApproverEntry]


class RequestComment(BaseModel):
    """Free-text remark left on a request's document."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    user_id: uuid.UUID
    user_email: str | None = None
    comment: str
    created_at: datetime


class AttachmentRef(BaseModel):
    """Opaque pointer returned by the attachment store."""

    url: str
    file_name: str


class ApprovalRequest(_TypedDetailsMixin):
    """A request and its embedded approval queue."""

    id: uuid.UUID
    requester_id: uuid.UUID
    requester_name: str
    status: ApprovalStatus = ApprovalStatus.PENDING
    approval_queue: list[ApproverEntry] = []
    current_approver_index: int = Field(default=0, ge=0)
    requester_signature: str
    created_at: datetime
    attachment: AttachmentRef | None = None
    vendor_id: str | None = None
    comments: list[RequestComment] = []
    queue_history: list[QueueGeneration] = []

    @property
    def current_approver(self) -> ApproverEntry | None:
        """The entry allowed to act now, if the pointer is inside the queue."""
        if 0 <= self.current_approver_index < len(self.approval_queue):
            return self.approval_queue[self.current_approver_index]
        return None


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class AttachmentUpload(BaseModel):
    """Inline file upload, base64 encoded on the wire."""

    file_name: str = Field(min_length=1, max_length=255)
    content: Base64Bytes


class RequestDraft(_TypedDetailsMixin):
    """Everything the requester fills in; ids, status and timestamps are assigned on submit."""

    requester_name: str | None = Field(default=None, max_length=255)
    approver_ids: list[uuid.UUID] = []
    requester_signature: str = ""
    vendor_id: str | None = None


class SubmitRequestPayload(RequestDraft):
    """Request body for submitting or resubmitting a request."""

    attachment: AttachmentUpload | None = None


class ActionPayload(BaseModel):
    """Request body for an approver's decision."""

    action: ApprovalAction
    signature: str = ""
    comments: str | None = Field(default=None, max_length=2000)
    hod_comments: str | None = Field(default=None, max_length=2000)
    internal_audit_comments: str | None = Field(default=None, max_length=2000)
    final_amount: float | None = Field(default=None, ge=0)


class ResolvePayload(BaseModel):
    """Request body for an administrator resolving an ad-hoc item request."""

    status: ApprovalStatus = ApprovalStatus.COMPLETED


class CommentPayload(BaseModel):
    """Request body for leaving a comment on a request."""

    comment: str = Field(min_length=1, max_length=2000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class RequestListResponse(BaseModel):
    """List of requests, newest first."""

    items: list[ApprovalRequest]
    total: int
