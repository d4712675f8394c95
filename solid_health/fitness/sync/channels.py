"""Single-slot broadcast channels for sync status and profile snapshots.

Each channel holds exactly the latest value.  A new subscriber receives it
immediately and every later publish is delivered to all current
subscribers.  Nothing is queued: a slow consumer of ``updates()`` only
sees the most recent value when it catches up.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable, Generic, Optional, TypeVar

from solid_health.fitness.base import Profile, SyncStatus

logger = logging.getLogger("solidhealth.fitness.sync.channels")

T = TypeVar("T")


class Channel(Generic[T]):
    """Latest-value broadcast channel.

    Usage::

        status = Channel(SyncStatus("Setting up..."))
        unsubscribe = status.subscribe(print)
        status.publish(SyncStatus("Done", 1, 1))
        unsubscribe()
    """

    def __init__(self, initial: T, name: str = "channel") -> None:
        self._value = initial
        self._name = name
        self._subscribers: list[Callable[[T], object]] = []

    @property
    def value(self) -> T:
        return self._value

    def publish(self, value: T) -> None:
        """Replace the current value and notify every subscriber."""
        self._value = value
        for callback in list(self._subscribers):
            self._deliver(callback, value)

    def subscribe(self, callback: Callable[[T], object]) -> Callable[[], None]:
        """Register ``callback`` and call it with the current value.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(callback)
        self._deliver(callback, self._value)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def updates(self) -> AsyncIterator[T]:
        """Yield the current value, then the latest value after each change."""
        changed = asyncio.Event()
        unsubscribe = self.subscribe(lambda _: changed.set())
        try:
            while True:
                await changed.wait()
                changed.clear()
                yield self._value
        finally:
            unsubscribe()

    def __len__(self) -> int:
        return len(self._subscribers)

    def _deliver(self, callback: Callable[[T], object], value: T) -> None:
        try:
            callback(value)
        except Exception:
            logger.exception("Subscriber to %s channel failed", self._name)


class StatusBus(Channel[SyncStatus]):
    """Current sync status."""

    def __init__(self) -> None:
        super().__init__(SyncStatus(description="Setting up..."), name="status")


class ProfileBus(Channel[Optional[Profile]]):
    """Current profile; None when nobody is logged in."""

    def __init__(self) -> None:
        super().__init__(None, name="profile")
