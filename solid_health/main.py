"""Solid Health API - FastAPI application entry point.

Run locally:
    uvicorn solid_health.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from solid_health.config import Settings, get_settings
from solid_health.fitness.adapters import get_provider
from solid_health.fitness.pod.identity import Credentials, IdentitySource
from solid_health.fitness.sync.manager import SyncManager
from solid_health.routers import health, sync

# ---------- Logging ----------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("solidhealth")


def build_identity(settings: Settings) -> IdentitySource:
    """Identity source seeded from SOLID_WEB_ID, if configured."""
    initial = None
    if settings.solid_web_id:
        initial = Credentials(settings.solid_web_id, settings.solid_access_token)
    return IdentitySource(initial, timeout_s=settings.request_timeout_s)


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings = get_settings()
    logger.info(
        "Starting Solid Health API v%s [%s] provider=%s",
        settings.app_version,
        settings.environment,
        settings.provider,
    )
    identity = build_identity(settings)
    provider_cls = get_provider(settings.provider)
    provider = provider_cls(
        access_token=settings.google_fit_access_token or None,
        timeout_s=settings.request_timeout_s,
    )
    manager = SyncManager(identity, provider)

    app.state.identity = identity
    app.state.sync_manager = manager
    manager.start()
    yield
    await manager.stop()
    logger.info("Solid Health API shut down")


# ---------- App factory ----------

def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Solid Health API",
        description="Sync fitness provider data into a Solid pod as FHIR observations.",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- Health check (outside v1 prefix - always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    app.include_router(sync.router, prefix="/api/v1")

    return app


app = create_app()
