import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from portal.config import get_settings
from portal.db import SessionDep
from portal.services.workflow import get_auditor_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok", "degraded", "error"]
    version: str
    environment: str
    auditor_configured: bool


@router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep) -> HealthResponse:
    """Report database reachability and whether the auditor account resolved."""
    settings = get_settings()
    status: Literal["ok", "degraded", "error"] = "ok"

    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check: database connectivity failed")
        status = "degraded"

    auditor_id = await get_auditor_id()
    if auditor_id is None:
        logger.warning("Health check: auditor account %s is not in the directory", settings.auditor_email)

    return HealthResponse(
        status=status,
        version=settings.app_version,
        environment=settings.environment,
        auditor_configured=auditor_id is not None,
    )
