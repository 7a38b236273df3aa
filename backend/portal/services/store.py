# ruff: noqa: TC003
from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import col

from portal.exceptions import AppError, NotFoundError, StaleStateError, UnavailableError
from portal.models.base import as_utc
from portal.models.enums import ApprovalStatus
from portal.models.request import RequestCommentRecord, RequestRecord
from portal.schemas.request import ApprovalRequest, RequestComment

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    Mutator = Callable[[ApprovalRequest], ApprovalRequest]

logger = logging.getLogger(__name__)


@runtime_checkable
class RequestStore(Protocol):
    """Interface for the Request Store.

    ``conditional_update`` is the only write path for an existing request.
    It compares ``(current_approver_index, status)`` with the expected
    values, runs the mutator on the stored snapshot and persists the result
    in one guarded write, or raises ``StaleStateError`` if the token moved.
    """

    async def create(self, request: ApprovalRequest) -> ApprovalRequest:
        """Persist a new request."""
        ...

    async def get(self, request_id: uuid.UUID) -> ApprovalRequest | None:
        """Fetch a request. Returns None if not found."""
        ...

    async def list_all(self) -> list[ApprovalRequest]:
        """List every request, newest first."""
        ...

    async def conditional_update(
        self,
        request_id: uuid.UUID,
        expected_index: int,
        expected_status: ApprovalStatus,
        mutator: Mutator,
    ) -> ApprovalRequest:
        """Apply ``mutator`` if the concurrency token still matches."""
        ...

    async def add_comment(self, request_id: uuid.UUID, comment: RequestComment) -> ApprovalRequest:
        """Attach a comment and return the refreshed request."""
        ...


def _check_token(current: ApprovalRequest, expected_index: int, expected_status: ApprovalStatus) -> None:
    """Raise StaleStateError if the stored token differs from the expected one."""
    if current.current_approver_index != expected_index or current.status != expected_status:
        raise StaleStateError(
            "Request changed since it was loaded; reload and retry",
            context={
                "request_id": current.id,
                "expected_index": expected_index,
                "expected_status": expected_status,
                "actual_index": current.current_approver_index,
                "actual_status": current.status,
            },
            current=current,
        )


def _not_found(request_id: uuid.UUID) -> NotFoundError:
    return NotFoundError("Request not found", context={"request_id": request_id})


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


class InMemoryRequestStore:
    """In-memory implementation for development and tests.

    Writes are serialised by a single lock; nothing inside the critical
    section awaits, so the lock is never held across a suspension.
    """

    def __init__(self) -> None:
        self._requests: dict[uuid.UUID, ApprovalRequest] = {}
        self._lock = asyncio.Lock()

    async def create(self, request: ApprovalRequest) -> ApprovalRequest:
        """Persist a new request."""
        async with self._lock:
            if request.id in self._requests:
                raise AppError("Duplicate request", status_code=409, context={"request_id": request.id})
            self._requests[request.id] = request.model_copy(deep=True)
        return request.model_copy(deep=True)

    async def get(self, request_id: uuid.UUID) -> ApprovalRequest | None:
        """Fetch a request. Returns None if not found."""
        request = self._requests.get(request_id)
        return request.model_copy(deep=True) if request is not None else None

    async def list_all(self) -> list[ApprovalRequest]:
        """List every request, newest first."""
        requests = sorted(self._requests.values(), key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in requests]

    async def conditional_update(
        self,
        request_id: uuid.UUID,
        expected_index: int,
        expected_status: ApprovalStatus,
        mutator: Mutator,
    ) -> ApprovalRequest:
        """Apply ``mutator`` if the concurrency token still matches."""
        async with self._lock:
            current = self._requests.get(request_id)
            if current is None:
                raise _not_found(request_id)
            _check_token(current.model_copy(deep=True), expected_index, expected_status)
            updated = mutator(current.model_copy(deep=True))
            self._requests[request_id] = updated.model_copy(deep=True)
        return updated

    async def add_comment(self, request_id: uuid.UUID, comment: RequestComment) -> ApprovalRequest:
        """Attach a comment and return the refreshed request."""
        async with self._lock:
            current = self._requests.get(request_id)
            if current is None:
                raise _not_found(request_id)
            current.comments.append(comment.model_copy())
            return current.model_copy(deep=True)


# ---------------------------------------------------------------------------
# SQL implementation
# ---------------------------------------------------------------------------


def _record_values(request: ApprovalRequest) -> dict[str, Any]:
    """Mutable columns of a request, JSON-ready."""
    data = request.model_dump(mode="json", include={"details", "approval_queue", "queue_history"})
    return {
        "requester_name": request.requester_name,
        "details": data["details"],
        "status": request.status.value,
        "approval_queue": data["approval_queue"],
        "current_approver_index": request.current_approver_index,
        "requester_signature": request.requester_signature,
        "attachment_url": request.attachment.url if request.attachment else None,
        "attachment_file_name": request.attachment.file_name if request.attachment else None,
        "vendor_id": request.vendor_id,
        "queue_history": data["queue_history"],
    }


def _to_record(request: ApprovalRequest) -> RequestRecord:
    return RequestRecord(
        id=request.id,
        created_at=request.created_at,
        type=request.type.value,
        requester_id=request.requester_id,
        **_record_values(request),
    )


def _to_domain(record: RequestRecord, comments: list[RequestCommentRecord]) -> ApprovalRequest:
    attachment = None
    if record.attachment_url:
        attachment = {"url": record.attachment_url, "file_name": record.attachment_file_name or ""}
    return ApprovalRequest.model_validate(
        {
            "id": record.id,
            "type": record.type,
            "requester_id": record.requester_id,
            "requester_name": record.requester_name,
            "details": record.details,
            "status": record.status,
            "approval_queue": record.approval_queue,
            "current_approver_index": record.current_approver_index,
            "requester_signature": record.requester_signature,
            "created_at": as_utc(record.created_at),
            "attachment": attachment,
            "vendor_id": record.vendor_id,
            "queue_history": record.queue_history,
            "comments": [
                {
                    "id": c.id,
                    "user_id": c.user_id,
                    "user_email": c.user_email,
                    "comment": c.comment,
                    "created_at": as_utc(c.created_at),
                }
                for c in comments
            ],
        }
    )


class SqlRequestStore:
    """Request Store backed by the ``approval_request`` table.

    Each guarded write locks the row (SELECT ... FOR UPDATE) and repeats the
    token in the UPDATE's WHERE clause, so a concurrent winner is detected
    even on backends that ignore row locks.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _load_comments(self, request_ids: list[uuid.UUID]) -> dict[uuid.UUID, list[RequestCommentRecord]]:
        grouped: dict[uuid.UUID, list[RequestCommentRecord]] = defaultdict(list)
        if not request_ids:
            return grouped
        result = await self._session.execute(
            select(RequestCommentRecord)
            .where(col(RequestCommentRecord.request_id).in_(request_ids))
            .order_by(col(RequestCommentRecord.created_at))
        )
        for comment in result.scalars().all():
            grouped[comment.request_id].append(comment)
        return grouped

    async def _fetch_record(self, request_id: uuid.UUID, *, for_update: bool = False) -> RequestRecord | None:
        query = select(RequestRecord).where(col(RequestRecord.id) == request_id)
        if for_update:
            query = query.with_for_update()
        result = await self._session.execute(query.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def _unavailable(self, exc: SQLAlchemyError, operation: str, request_id: uuid.UUID | None) -> UnavailableError:
        logger.exception("Request store %s failed for request %s", operation, request_id)
        await self._session.rollback()
        return UnavailableError(f"Request store unavailable during {operation}", context={"request_id": request_id})

    async def create(self, request: ApprovalRequest) -> ApprovalRequest:
        """Persist a new request."""
        try:
            if await self._fetch_record(request.id) is not None:
                raise AppError("Duplicate request", status_code=409, context={"request_id": request.id})
            self._session.add(_to_record(request))
            await self._session.commit()
        except IntegrityError:
            await self._session.rollback()
            raise AppError("Duplicate request", status_code=409, context={"request_id": request.id}) from None
        except SQLAlchemyError as exc:
            raise await self._unavailable(exc, "create", request.id) from exc
        return request

    async def get(self, request_id: uuid.UUID) -> ApprovalRequest | None:
        """Fetch a request. Returns None if not found."""
        try:
            record = await self._fetch_record(request_id)
            if record is None:
                return None
            comments = await self._load_comments([request_id])
        except SQLAlchemyError as exc:
            raise await self._unavailable(exc, "get", request_id) from exc
        return _to_domain(record, comments[request_id])

    async def list_all(self) -> list[ApprovalRequest]:
        """List every request, newest first."""
        try:
            result = await self._session.execute(
                select(RequestRecord)
                .order_by(col(RequestRecord.created_at).desc())
                .execution_options(populate_existing=True)
            )
            records = list(result.scalars().all())
            comments = await self._load_comments([r.id for r in records])
        except SQLAlchemyError as exc:
            raise await self._unavailable(exc, "list", None) from exc
        return [_to_domain(r, comments[r.id]) for r in records]

    async def conditional_update(
        self,
        request_id: uuid.UUID,
        expected_index: int,
        expected_status: ApprovalStatus,
        mutator: Mutator,
    ) -> ApprovalRequest:
        """Apply ``mutator`` if the concurrency token still matches."""
        try:
            record = await self._fetch_record(request_id, for_update=True)
            if record is None:
                raise _not_found(request_id)
            comments = await self._load_comments([request_id])
            current = _to_domain(record, comments[request_id])
            _check_token(current, expected_index, expected_status)

            updated = mutator(current)

            result = await self._session.execute(
                update(RequestRecord)
                .where(
                    col(RequestRecord.id) == request_id,
                    col(RequestRecord.current_approver_index) == expected_index,
                    col(RequestRecord.status) == expected_status.value,
                )
                .values(**_record_values(updated))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await self._session.rollback()
                latest = await self.get(request_id)
                raise StaleStateError(
                    "Request changed since it was loaded; reload and retry",
                    context={
                        "request_id": request_id,
                        "expected_index": expected_index,
                        "expected_status": expected_status,
                    },
                    current=latest,
                )
            await self._session.commit()
        except AppError:
            await self._session.rollback()
            raise
        except SQLAlchemyError as exc:
            raise await self._unavailable(exc, "update", request_id) from exc
        return updated

    async def add_comment(self, request_id: uuid.UUID, comment: RequestComment) -> ApprovalRequest:
        """Attach a comment and return the refreshed request."""
        try:
            if await self._fetch_record(request_id) is None:
                raise _not_found(request_id)
            self._session.add(
                RequestCommentRecord(
                    id=comment.id,
                    request_id=request_id,
                    user_id=comment.user_id,
                    user_email=comment.user_email,
                    comment=comment.comment,
                    created_at=comment.created_at,
                )
            )
            await self._session.commit()
        except AppError:
            await self._session.rollback()
            raise
        except SQLAlchemyError as exc:
            raise await self._unavailable(exc, "comment", request_id) from exc
        request = await self.get(request_id)
        if request is None:
            raise _not_found(request_id)
        return request
