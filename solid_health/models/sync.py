"""Pydantic models for sync status, profile, session and fitness reads."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from solid_health.models.base import SolidHealthBase


# ---------- Status / profile ----------

class SyncStatusRead(SolidHealthBase):
    description: str
    value: int = 0
    max_value: int | None = None
    error: str | None = None


class ProfileRead(SolidHealthBase):
    web_id: str
    name: str | None = None
    image: str | None = None
    friends: list[str] = Field(default_factory=list)
    private_type_index: str | None = None


# ---------- Session ----------

class SessionCreate(SolidHealthBase):
    web_id: str = Field(min_length=1)
    access_token: str | None = None


class SessionRead(SolidHealthBase):
    web_id: str | None = None
    state: str
    observation_location: str | None = None


# ---------- Fitness data ----------

class DataPointRead(SolidHealthBase):
    uri: str
    date: str
    value: float
    parsed_date: datetime
