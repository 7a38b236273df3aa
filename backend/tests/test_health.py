from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from portal.db import get_session
from portal.main import app
from portal.services.workflow import reset_auditor_id

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from portal.services.directory import InMemoryUserDirectory


def _override_session(mock_session: AsyncMock) -> None:
    async def _session() -> AsyncIterator[AsyncSession]:
        yield mock_session

    app.dependency_overrides[get_session] = _session


@pytest.fixture
async def health_client(directory: InMemoryUserDirectory) -> AsyncIterator[AsyncClient]:
    _override_session(AsyncMock(spec=AsyncSession))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def test_health_returns_200(health_client: AsyncClient) -> None:
    response = await health_client.get("/health")
    assert response.status_code == 200


async def test_health_response_body(health_client: AsyncClient) -> None:
    response = await health_client.get("/health")
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == "0.1.0"
    assert data["environment"] == "development"
    assert data["auditor_configured"] is True


async def test_health_response_schema(health_client: AsyncClient) -> None:
    response = await health_client.get("/health")
    data = response.json()
    assert set(data.keys()) == {"status", "version", "environment", "auditor_configured"}
    assert data["status"] in ("ok", "degraded", "error")


async def test_health_degraded_on_db_failure(directory: InMemoryUserDirectory) -> None:
    """GET /health returns degraded status when the database is unreachable."""
    mock_session = AsyncMock(spec=AsyncSession)
    mock_session.execute.side_effect = ConnectionError("DB unreachable")
    _override_session(mock_session)
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health")
        data = response.json()
        assert response.status_code == 200
        assert data["status"] == "degraded"
    finally:
        app.dependency_overrides.clear()


async def test_health_reports_missing_auditor() -> None:
    """Without the auditor account in the directory the flag is false."""
    reset_auditor_id()
    _override_session(AsyncMock(spec=AsyncSession))
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health")
        assert response.json()["auditor_configured"] is False
    finally:
        app.dependency_overrides.clear()
