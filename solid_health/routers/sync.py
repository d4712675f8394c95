"""Endpoints exposing sync status, profile, session control and pod data."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from solid_health.dependencies import Identity, Manager
from solid_health.fitness.base import Category
from solid_health.models.base import ErrorDetail
from solid_health.models.sync import (
    DataPointRead,
    ProfileRead,
    SessionCreate,
    SessionRead,
    SyncStatusRead,
)

router = APIRouter(tags=["sync"])


# ---------- Status / profile ----------

@router.get("/sync/status", response_model=SyncStatusRead)
async def get_status(manager: Manager) -> Any:
    return asdict(manager.status.value)


@router.get("/sync/profile", response_model=ProfileRead, responses={404: {"model": ErrorDetail}})
async def get_profile(manager: Manager) -> Any:
    profile = manager.profile.value
    if profile is None:
        raise HTTPException(status_code=404, detail="No profile loaded")
    data = asdict(profile)
    data["friends"] = sorted(profile.friends)
    return data


# ---------- Session ----------

@router.get("/sync/session", response_model=SessionRead)
async def get_session(manager: Manager) -> Any:
    session = manager.session
    return {
        "web_id": session.web_id,
        "state": session.state.value,
        "observation_location": session.observation_location,
    }


@router.post("/sync/session", status_code=202)
async def log_in(identity: Identity, body: SessionCreate) -> dict:
    identity.login(body.web_id, body.access_token)
    return {"web_id": body.web_id}


@router.delete("/sync/session", status_code=204)
async def log_out(identity: Identity) -> None:
    identity.logout()


# ---------- Fitness data ----------

@router.get("/fitness/{category}", response_model=list[DataPointRead])
async def list_points(
    manager: Manager,
    category: Category,
    start: datetime = Query(...),
    end: datetime = Query(...),
) -> Any:
    """Pod data points in ``[start, end]``; waits while the pod is loading."""
    if start.tzinfo is None or end.tzinfo is None:
        raise HTTPException(status_code=422, detail="start and end must include a timezone")
    if end < start:
        raise HTTPException(status_code=422, detail="end must not be before start")
    points = await manager.session.snapshot.points(category, start, end)
    return [asdict(p) for p in points]
