"""Diff provider samples against pod samples.

Matching is by exact instant (``parsed_date``):

- steps / distance: a matched pod point whose value differs by more than
  the tolerance is modified; an unmatched provider point is created.
- heart rate: near-duplicate provider readings are collapsed first, then
  unmatched survivors are created.  Heart rate is never modified.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from solid_health.fitness.base import Category, DataPoint, PodDataPoint, parse_instant

logger = logging.getLogger("solidhealth.fitness.sync.dedup")


@dataclass
class Modification:
    """A pod point whose stored value must be replaced."""

    category: Category
    point: PodDataPoint
    new_value: float


@dataclass
class MonthPlan:
    """Everything one month of reconciliation has to write."""

    creates: dict[Category, list[DataPoint]] = field(
        default_factory=lambda: {c: [] for c in Category}
    )
    modifications: list[Modification] = field(default_factory=list)

    @property
    def create_count(self) -> int:
        return sum(len(points) for points in self.creates.values())


def _index_by_instant(points: list[PodDataPoint]) -> dict[datetime, PodDataPoint]:
    index: dict[datetime, PodDataPoint] = {}
    for point in points:
        index.setdefault(point.parsed_date, point)
    return index


def diff_daily(
    category: Category,
    provider: list[DataPoint],
    pod: list[PodDataPoint],
    tolerance: float,
) -> tuple[list[DataPoint], list[Modification]]:
    """Diff day-granular samples.

    Args:
        category:  STEPS or DISTANCE.
        provider:  Provider samples for the window.
        pod:       Pod samples for the same window.
        tolerance: Values within this absolute difference are equal.

    Returns:
        (points to create, modifications to apply)
    """
    pod_by_instant = _index_by_instant(pod)
    creates: list[DataPoint] = []
    modifications: list[Modification] = []

    for point in provider:
        existing = pod_by_instant.get(parse_instant(point.date))
        if existing is None:
            creates.append(point)
        elif abs(point.value - existing.value) > tolerance:
            modifications.append(Modification(category, existing, point.value))

    return creates, modifications


def collapse_heart_rate(
    provider: list[DataPoint], window_seconds: float, value_delta: float
) -> list[DataPoint]:
    """Drop readings that repeat the previous provider reading.

    A reading is collapsed when it is within ``window_seconds`` and
    ``value_delta`` of the immediately preceding provider reading (collapsed
    or not).
    """
    ordered = sorted(provider, key=lambda p: parse_instant(p.date))
    survivors: list[DataPoint] = []
    previous: tuple[datetime, float] | None = None

    for point in ordered:
        instant = parse_instant(point.date)
        if previous is not None:
            prev_instant, prev_value = previous
            if (
                abs(point.value - prev_value) <= value_delta
                and abs((instant - prev_instant).total_seconds()) <= window_seconds
            ):
                previous = (instant, point.value)
                continue
        survivors.append(point)
        previous = (instant, point.value)

    if len(survivors) != len(ordered):
        logger.debug("Collapsed %d near-duplicate heart rate readings", len(ordered) - len(survivors))
    return survivors


def diff_heart_rate(
    provider: list[DataPoint],
    pod: list[PodDataPoint],
    window_seconds: float,
    value_delta: float,
) -> list[DataPoint]:
    """Heart-rate points to create: collapsed survivors with no pod point at the same instant."""
    pod_instants = {p.parsed_date for p in pod}
    return [
        point
        for point in collapse_heart_rate(provider, window_seconds, value_delta)
        if parse_instant(point.date) not in pod_instants
    ]
