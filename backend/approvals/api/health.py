import asyncio
import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from approvals.config import get_settings
from approvals.db import SessionDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok", "degraded"]
    version: str
    environment: str
    store: Literal["up", "down"]


@router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep) -> HealthResponse:
    """Report whether the approval store answers within the store timeout."""
    settings = get_settings()
    store: Literal["up", "down"] = "up"

    try:
        async with asyncio.timeout(settings.store_timeout_seconds):
            await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check: approval store unreachable")
        store = "down"

    return HealthResponse(
        status="ok" if store == "up" else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        store=store,
    )
