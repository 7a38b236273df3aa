# ruff: noqa: TC003
from __future__ import annotations

import re
import uuid
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

from portal.schemas.request import AttachmentRef

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@runtime_checkable
class AttachmentStore(Protocol):
    """Interface for the Attachment Store. Content is never inspected."""

    async def put(self, owner_id: uuid.UUID, file_name: str, data: bytes) -> AttachmentRef:
        """Store the bytes and return an opaque reference to them."""
        ...

    async def delete(self, url: str) -> None:
        """Remove a stored object. Unknown references are ignored."""
        ...


class InMemoryAttachmentStore:
    """In-memory stub implementation for development."""

    def __init__(self, base_url: str = "memory://request_attachments") -> None:
        self._base_url = base_url.rstrip("/")
        self._blobs: dict[str, bytes] = {}

    def get(self, url: str) -> bytes | None:
        """Return stored bytes for a reference (for testing)."""
        return self._blobs.get(url)

    async def put(self, owner_id: uuid.UUID, file_name: str, data: bytes) -> AttachmentRef:
        """Store the bytes under ``{owner}/{timestamp}_{nonce}_{name}``."""
        stamp = int(datetime.now(UTC).timestamp() * 1000)
        safe_name = _UNSAFE_CHARS.sub("_", file_name)
        url = f"{self._base_url}/{owner_id}/{stamp}_{uuid.uuid4().hex[:8]}_{safe_name}"
        self._blobs[url] = data
        return AttachmentRef(url=url, file_name=file_name)

    async def delete(self, url: str) -> None:
        """Remove a stored object. Unknown references are ignored."""
        self._blobs.pop(url, None)


_attachment_store: AttachmentStore = InMemoryAttachmentStore()


def get_attachment_store() -> AttachmentStore:
    """FastAPI dependency for the Attachment Store."""
    return _attachment_store


def set_attachment_store(store: AttachmentStore) -> None:
    """Override the store (for testing or production wiring)."""
    global _attachment_store
    _attachment_store = store
