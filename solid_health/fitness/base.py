"""Base classes and canonical data models for the solid-health sync engine.

Every provider adapter must subclass ProviderClient and return plain
DataPoint lists.  Points read back from the pod are PodDataPoint, which
carry the resource URI used as the merge anchor for value updates.
"""

from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone

logger = logging.getLogger("solidhealth.fitness")


class Category(str, enum.Enum):
    """Measurement categories kept in sync."""

    STEPS = "steps"
    DISTANCE = "distance"
    HEART_RATE = "heartrate"

    @property
    def is_daily(self) -> bool:
        """Steps and distance are one value per day; heart rate is per instant."""
        return self is not Category.HEART_RATE


# ---------------------------------------------------------------------------
# Data points
# ---------------------------------------------------------------------------


@dataclass
class DataPoint:
    """One raw sample from the fitness provider.

    Attributes:
        date:  ``YYYY-MM-DD`` for steps/distance, an ISO-8601 timestamp for
               heart rate.
        value: Measured value (steps, metres, beats per minute).
    """

    date: str
    value: float


@dataclass
class PodDataPoint(DataPoint):
    """A DataPoint stored in the pod.

    Attributes:
        uri:         Observation resource URI inside the pod document.
        parsed_date: UTC instant derived from ``date`` via parse_instant().
    """

    uri: str = ""
    parsed_date: datetime | None = None

    def __post_init__(self) -> None:
        if self.parsed_date is None:
            self.parsed_date = parse_instant(self.date)


def parse_instant(value: str) -> datetime:
    """Parse a date or timestamp string into a timezone-aware UTC datetime.

    A bare calendar date maps to midnight UTC.  Naive timestamps are taken
    as UTC.

    Raises:
        ValueError: If the string is not ISO-8601.
    """
    text = value.strip()
    if len(text) == 10:
        return datetime.combine(date.fromisoformat(text), time.min, tzinfo=timezone.utc)
    dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Profile / status
# ---------------------------------------------------------------------------


@dataclass
class Profile:
    """Snapshot of the user's profile document.

    Attributes:
        web_id:             The user's WebID.
        name:               foaf:name, if present.
        image:              foaf:img, if present.
        friends:            WebIDs from foaf:knows.
        private_type_index: solid:privateTypeIndex document, if present.
    """

    web_id: str
    name: str | None = None
    image: str | None = None
    friends: set[str] = field(default_factory=set)
    private_type_index: str | None = None


@dataclass(frozen=True)
class SyncStatus:
    """Progress of the current sync run.

    ``max_value`` of None means the amount of remaining work is unknown.
    """

    description: str
    value: int = 0
    max_value: int | None = None
    error: str | None = None

    @classmethod
    def progress(cls, description: str, value: int, max_value: int) -> "SyncStatus":
        return cls(description=description, value=value, max_value=max_value)

    @classmethod
    def failure(cls, description: str, error: BaseException) -> "SyncStatus":
        return cls(description=description, value=0, max_value=1, error=str(error))

    def __str__(self) -> str:
        if self.max_value is None:
            return f"{self.description} ..."
        return f"{self.description} {self.value}/{self.max_value}"


# ---------------------------------------------------------------------------
# Abstract provider
# ---------------------------------------------------------------------------


class ProviderClient(ABC):
    """Read-only source of raw fitness samples.

    Implementations must map "no data for this period" to an empty list,
    never to an exception.
    """

    #: Unique slug used by the provider registry.
    SOURCE_ID: str = "unknown"

    #: Human-readable name for logging.
    DISPLAY_NAME: str = "Unknown Provider"

    @abstractmethod
    async def daily_steps(self, start_iso: str, end_iso: str) -> list[DataPoint]:
        """Return one point per day with the day's step count."""

    @abstractmethod
    async def daily_distance(self, start_iso: str, end_iso: str) -> list[DataPoint]:
        """Return one point per day with the distance walked in metres."""

    @abstractmethod
    async def heart_rate(self, start_iso: str, end_iso: str) -> list[DataPoint]:
        """Return every heart-rate sample in the window, oldest first."""

    async def get_samples(
        self, category: Category, start_iso: str, end_iso: str
    ) -> list[DataPoint]:
        """Dispatch to the per-category fetcher.

        Args:
            category:  Which measurement to fetch.
            start_iso: Window start (ISO-8601).
            end_iso:   Window end (ISO-8601).

        Returns:
            Provider samples for the window; empty when there are none.
        """
        if category is Category.STEPS:
            return await self.daily_steps(start_iso, end_iso)
        if category is Category.DISTANCE:
            return await self.daily_distance(start_iso, end_iso)
        return await self.heart_rate(start_iso, end_iso)

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _safe_float(value: object) -> float | None:
        """Safely coerce a value to float, returning None on failure."""
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning("Could not coerce %r to float", value)
            return None
