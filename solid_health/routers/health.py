"""Health check endpoint - public, no auth required."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

from solid_health.dependencies import AppSettings, Identity

router = APIRouter(tags=["system"])


@router.get("/health")
async def health_check(settings: AppSettings, identity: Identity) -> dict:
    """Liveness probe. Returns 200 if the API process is up."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "identity": "active" if identity.web_id else "none",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
