from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from portal.api.deps import get_request_store, get_seen_store
from portal.db import init_models
from portal.main import app
from portal.models.enums import UserRole
from portal.schemas.auth import AuthContext
from portal.services.attachment import InMemoryAttachmentStore, get_attachment_store
from portal.services.directory import InMemoryUserDirectory, UserInfo, set_user_directory
from portal.services.notification import InMemoryNotificationSeenStore
from portal.services.store import InMemoryRequestStore
from portal.services.workflow import WorkflowService, reset_auditor_id

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine


@dataclass(frozen=True)
class Cast:
    """The directory users every test works with."""

    admin: UserInfo
    alice: UserInfo
    bob: UserInfo
    carol: UserInfo
    auditor: UserInfo
    dave: UserInfo

    def all(self) -> list[UserInfo]:
        return [self.admin, self.alice, self.bob, self.carol, self.auditor, self.dave]

    @staticmethod
    def auth(user: UserInfo) -> AuthContext:
        return AuthContext(user_id=user.id, role=user.role, email=user.email, display_name=user.display_name)

    @staticmethod
    def headers(user: UserInfo) -> dict[str, str]:
        return {"X-User-Id": str(user.id)}


@pytest.fixture
def cast() -> Cast:
    def _user(email: str, role: UserRole, name: str) -> UserInfo:
        return UserInfo(id=uuid.uuid4(), email=email, role=role, display_name=name)

    return Cast(
        admin=_user("admin@example.com", UserRole.ADMIN, "Ada Admin"),
        alice=_user("alice@example.com", UserRole.APPROVER, "Alice"),
        bob=_user("bob@example.com", UserRole.APPROVER, "Bob"),
        carol=_user("carol@example.com", UserRole.APPROVER, "Carol"),
        auditor=_user("auditor@example.com", UserRole.APPROVER, "Internal Audit"),
        dave=_user("dave@example.com", UserRole.APPROVER, "Dave"),
    )


@pytest.fixture
def directory(cast: Cast) -> Iterator[InMemoryUserDirectory]:
    """Seed the in-memory user directory and install it for the app."""
    svc = InMemoryUserDirectory()
    for user in cast.all():
        svc.seed(user)
    set_user_directory(svc)
    reset_auditor_id()
    yield svc
    set_user_directory(InMemoryUserDirectory())
    reset_auditor_id()


@pytest.fixture
def request_store() -> InMemoryRequestStore:
    return InMemoryRequestStore()


@pytest.fixture
def seen_store() -> InMemoryNotificationSeenStore:
    return InMemoryNotificationSeenStore()


@pytest.fixture
def attachments() -> InMemoryAttachmentStore:
    return InMemoryAttachmentStore()


@pytest.fixture
def service(
    request_store: InMemoryRequestStore,
    directory: InMemoryUserDirectory,
    attachments: InMemoryAttachmentStore,
    cast: Cast,
) -> WorkflowService:
    return WorkflowService(request_store, directory, attachments, auditor_id=cast.auditor.id)


@pytest.fixture
async def async_client(
    directory: InMemoryUserDirectory,
    request_store: InMemoryRequestStore,
    seen_store: InMemoryNotificationSeenStore,
    attachments: InMemoryAttachmentStore,
) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the stores swapped for in-memory ones."""
    app.dependency_overrides[get_request_store] = lambda: request_store
    app.dependency_overrides[get_seen_store] = lambda: seen_store
    app.dependency_overrides[get_attachment_store] = lambda: attachments
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """A throwaway SQLite database with every table created."""
    _engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}")
    await init_models(_engine)
    yield _engine
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session
