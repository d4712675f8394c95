"""Per-identity session state.

A Session is created for every identity change and owns everything that
belongs to that identity: the generation token, the fitness snapshot and
the current run state.  Work started for an older generation checks the
token before each write and stops once it has been superseded.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from solid_health.fitness.base import Category, PodDataPoint, Profile, SyncStatus
from solid_health.fitness.errors import StaleSessionError
from solid_health.fitness.sync.channels import StatusBus

logger = logging.getLogger("solidhealth.fitness.sync.session")


class SyncState(str, enum.Enum):
    IDLE = "idle"
    LOADING_PROFILE = "loading_profile"
    LOADING_TYPE_INDEX = "loading_type_index"
    LOADING_OBSERVATIONS = "loading_observations"
    READY = "ready"
    SYNCING_MONTH = "syncing_month"
    FAILED = "failed"


@dataclass
class FitnessSnapshot:
    """Pod-side fitness data for the active identity.

    While ``loading`` is True readers block in ``wait_ready()`` rather than
    see partial data.
    """

    steps: list[PodDataPoint] = field(default_factory=list)
    distance: list[PodDataPoint] = field(default_factory=list)
    heart_rate: list[PodDataPoint] = field(default_factory=list)
    _ready: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def loading(self) -> bool:
        return not self._ready.is_set()

    def mark_ready(self) -> None:
        self._ready.set()

    async def wait_ready(self) -> None:
        await self._ready.wait()

    def bucket(self, category: Category) -> list[PodDataPoint]:
        if category is Category.STEPS:
            return self.steps
        if category is Category.DISTANCE:
            return self.distance
        return self.heart_rate

    def extend(self, points: dict[Category, list[PodDataPoint]]) -> None:
        for category, items in points.items():
            self.bucket(category).extend(items)

    def add(self, category: Category, point: PodDataPoint) -> None:
        self.bucket(category).append(point)

    def window(self, category: Category, start: datetime, end: datetime) -> list[PodDataPoint]:
        """Points with ``start <= parsed_date <= end`` (no waiting)."""
        return [p for p in self.bucket(category) if start <= p.parsed_date <= end]

    async def points(self, category: Category, start: datetime, end: datetime) -> list[PodDataPoint]:
        """Wait for loading to finish, then return the points in the window."""
        await self.wait_ready()
        return self.window(category, start, end)


class Session:
    """State owned by one identity.

    Args:
        web_id:     Active WebID, or None when logged out.
        generation: Token assigned by the manager at creation.
        is_current: Returns the manager's current generation.
        status:     Bus that status updates are published on.
    """

    def __init__(
        self,
        web_id: str | None,
        generation: int,
        is_current: Callable[[int], bool],
        status: StatusBus,
    ) -> None:
        self.web_id = web_id
        self.generation = generation
        self._is_current = is_current
        self._status = status
        self.snapshot = FitnessSnapshot()
        self.profile: Profile | None = None
        self.observation_location: str | None = None
        self.state = SyncState.IDLE

    @property
    def current(self) -> bool:
        return self._is_current(self.generation)

    def guard(self) -> None:
        """Raise StaleSessionError if a newer identity has taken over."""
        if not self.current:
            raise StaleSessionError(
                f"session {self.generation} for {self.web_id} was superseded"
            )

    def transition(self, state: SyncState) -> None:
        logger.debug("Session %d: %s → %s", self.generation, self.state.value, state.value)
        self.state = state

    def report(self, status: SyncStatus) -> None:
        """Publish ``status`` unless this session is stale."""
        if not self.current:
            return
        logger.info("%s", status)
        self._status.publish(status)
