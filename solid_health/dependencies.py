"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from solid_health.config import Settings, get_settings
from solid_health.fitness.pod.identity import IdentitySource
from solid_health.fitness.sync.manager import SyncManager


def get_sync_manager(request: Request) -> SyncManager:
    """Return the SyncManager created in the app lifespan."""
    manager: SyncManager | None = getattr(request.app.state, "sync_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Sync manager not started")
    return manager


def get_identity(request: Request) -> IdentitySource:
    identity: IdentitySource | None = getattr(request.app.state, "identity", None)
    if identity is None:
        raise HTTPException(status_code=503, detail="Identity source not started")
    return identity


# Annotated shortcuts for route signatures
Manager = Annotated[SyncManager, Depends(get_sync_manager)]
Identity = Annotated[IdentitySource, Depends(get_identity)]
AppSettings = Annotated[Settings, Depends(get_settings)]
