"""Tests for broadcast channels and per-identity sessions."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from solid_health.fitness.base import Category, PodDataPoint, SyncStatus
from solid_health.fitness.errors import StaleSessionError
from solid_health.fitness.pod.identity import Credentials, IdentitySource
from solid_health.fitness.sync.channels import Channel, ProfileBus, StatusBus
from solid_health.fitness.sync.session import FitnessSnapshot, Session, SyncState


class TestChannel:
    def test_subscriber_gets_current_value_immediately(self) -> None:
        received: list[SyncStatus] = []
        bus = StatusBus()
        bus.subscribe(received.append)
        assert [s.description for s in received] == ["Setting up..."]

    def test_publish_reaches_every_subscriber(self) -> None:
        first: list[int] = []
        second: list[int] = []
        channel: Channel[int] = Channel(0)
        channel.subscribe(first.append)
        channel.subscribe(second.append)
        channel.publish(1)
        assert first == [0, 1]
        assert second == [0, 1]

    def test_unsubscribe_stops_delivery(self) -> None:
        received: list[int] = []
        channel: Channel[int] = Channel(0)
        unsubscribe = channel.subscribe(received.append)
        unsubscribe()
        unsubscribe()
        channel.publish(5)
        assert received == [0]
        assert len(channel) == 0

    def test_failing_subscriber_does_not_block_others(self) -> None:
        received: list[int] = []

        def broken(_: int) -> None:
            raise RuntimeError("subscriber bug")

        channel: Channel[int] = Channel(0)
        channel.subscribe(broken)
        channel.subscribe(received.append)
        channel.publish(3)
        assert received == [0, 3]
        assert channel.value == 3

    def test_profile_bus_starts_empty(self) -> None:
        assert ProfileBus().value is None

    @pytest.mark.asyncio
    async def test_updates_yields_latest_value(self) -> None:
        channel: Channel[int] = Channel(0)
        updates = channel.updates()
        assert await updates.__anext__() == 0

        channel.publish(1)
        channel.publish(2)
        assert await asyncio.wait_for(updates.__anext__(), timeout=1) == 2
        await updates.aclose()
        assert len(channel) == 0


def _point(day: int) -> PodDataPoint:
    return PodDataPoint(date=f"2020-03-{day:02d}", value=day, uri=f"doc#steps_202003{day:02d}")


class TestFitnessSnapshot:
    def test_window_is_inclusive(self) -> None:
        snapshot = FitnessSnapshot()
        snapshot.extend({Category.STEPS: [_point(1), _point(2), _point(3)]})
        start = datetime(2020, 3, 1, tzinfo=timezone.utc)
        end = datetime(2020, 3, 2, tzinfo=timezone.utc)
        assert [p.value for p in snapshot.window(Category.STEPS, start, end)] == [1, 2]
        assert snapshot.window(Category.DISTANCE, start, end) == []

    @pytest.mark.asyncio
    async def test_points_wait_for_loading(self) -> None:
        snapshot = FitnessSnapshot()
        start = datetime(2020, 3, 1, tzinfo=timezone.utc)
        end = datetime(2020, 3, 31, tzinfo=timezone.utc)
        reader = asyncio.ensure_future(snapshot.points(Category.STEPS, start, end))

        await asyncio.sleep(0)
        assert snapshot.loading
        assert not reader.done()

        snapshot.add(Category.STEPS, _point(4))
        snapshot.mark_ready()
        assert [p.value for p in await reader] == [4]


class TestSession:
    def test_guard_raises_once_superseded(self) -> None:
        current = {"generation": 1}
        session = Session("https://a.example/#me", 1, lambda g: g == current["generation"], StatusBus())
        session.guard()

        current["generation"] = 2
        assert not session.current
        with pytest.raises(StaleSessionError):
            session.guard()

    def test_stale_session_does_not_publish(self) -> None:
        bus = StatusBus()
        current = {"generation": 1}
        session = Session(None, 1, lambda g: g == current["generation"], bus)

        session.report(SyncStatus("Loading profile"))
        assert bus.value.description == "Loading profile"

        current["generation"] = 2
        session.report(SyncStatus("Loading data from pod"))
        assert bus.value.description == "Loading profile"

    def test_transition(self) -> None:
        session = Session(None, 0, lambda g: True, StatusBus())
        assert session.state is SyncState.IDLE
        session.transition(SyncState.LOADING_PROFILE)
        assert session.state is SyncState.LOADING_PROFILE


class TestIdentitySource:
    def test_login_and_logout_broadcast(self) -> None:
        received: list[Credentials | None] = []
        identity = IdentitySource()
        identity.subscribe(received.append)

        identity.login("https://a.example/#me", "secret")
        identity.logout()

        assert received[0] is None
        assert received[1] == Credentials("https://a.example/#me", "secret")
        assert received[2] is None
        assert identity.web_id is None

    def test_credentials_repr_hides_token(self) -> None:
        assert "secret" not in repr(Credentials("https://a.example/#me", "secret"))

    def test_initial_credentials(self) -> None:
        identity = IdentitySource(Credentials("https://a.example/#me"))
        assert identity.web_id == "https://a.example/#me"
