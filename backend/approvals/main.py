from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from approvals.api.health import router as health_router
from approvals.api.router import api_router
from approvals.config import Settings, get_settings
from approvals.db import dispose_engine
from approvals.exceptions import setup_exception_handlers
from approvals.middleware import setup_middleware
from approvals.services.cache import InMemoryTTLCache
from approvals.services.leave_policy import (
    CachedLeavePolicyProvider,
    get_leave_policy_provider,
    set_leave_policy_provider,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager for startup and shutdown."""
    settings = get_settings()
    configure_logging(settings)
    logger.info("Starting %s v%s [%s]", settings.app_name, settings.app_version, settings.environment)
    yield
    await dispose_engine()
    logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    provider = get_leave_policy_provider()
    if not isinstance(provider, CachedLeavePolicyProvider):
        set_leave_policy_provider(
            CachedLeavePolicyProvider(provider, InMemoryTTLCache(settings.policy_cache_ttl_seconds))
        )

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )

    setup_middleware(application, settings)
    setup_exception_handlers(application)

    application.include_router(health_router)
    application.include_router(api_router)

    return application


app = create_app()
