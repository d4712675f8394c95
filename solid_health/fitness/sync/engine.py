"""Month-by-month reconciliation between the fitness provider and the pod.

Starting with the month containing "now", each month is diffed and the
differences written back to the pod:

1. Fetch provider samples for steps, distance and heart rate concurrently;
   pod samples come from the in-memory snapshot.
2. Plan creates and modifications (see ``dedup``).
3. Apply modifications one at a time; they target the same document.
4. Encode creates, add them to the snapshot, upload in fixed-size batches.
5. If anything was created, continue with the previous month; otherwise
   everything is up to date.

Any failure ends the run with a terminal status.  Nothing is retried or
rolled back; the next identity change starts a fresh run.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from solid_health.fitness.base import Category, ProviderClient, SyncStatus
from solid_health.fitness.config_loader import SyncConfig
from solid_health.fitness.errors import StaleSessionError
from solid_health.fitness.pod.observations import EncodedObservation, ObservationStore
from solid_health.fitness.sync.dedup import MonthPlan, diff_daily, diff_heart_rate
from solid_health.fitness.sync.session import Session, SyncState

logger = logging.getLogger("solidhealth.fitness.sync.engine")

UP_TO_DATE = "Everything up to date"
SYNC_FAILED = "Could not sync data"


def month_window(anchor: datetime) -> tuple[datetime, datetime]:
    """Return the first and last instant (UTC) of the month containing ``anchor``."""
    anchor = anchor.astimezone(timezone.utc)
    start = anchor.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    next_start = (start + timedelta(days=32)).replace(day=1)
    return start, next_start - timedelta(milliseconds=1)


def previous_month(start: datetime) -> tuple[datetime, datetime]:
    return month_window(start - timedelta(days=1))


class ReconciliationEngine:
    """Drive one reconciliation run for a session.

    Args:
        session:      The identity's session (snapshot, generation token).
        provider:     Source of raw fitness samples.
        observations: Observation document of the session's pod.
        config:       Sync configuration.
    """

    def __init__(
        self,
        session: Session,
        provider: ProviderClient,
        observations: ObservationStore,
        config: SyncConfig,
    ) -> None:
        self._session = session
        self._provider = provider
        self._observations = observations
        self._config = config

    async def run(self, now: datetime | None = None) -> int:
        """Reconcile from the month containing ``now`` backwards.

        Returns:
            Number of months processed.
        """
        anchor = now or datetime.now(timezone.utc)
        start, end = month_window(anchor)
        max_months = self._config.reconciliation.backfill_max_months
        months = 0

        try:
            while True:
                months += 1
                created = await self.sync_month(start, end)
                if created == 0:
                    break
                if months >= max_months:
                    logger.info("Backfill stopped after %d months", months)
                    break
                start, end = previous_month(start)
        except StaleSessionError as exc:
            logger.info("Sync run abandoned: %s", exc)
            return months
        except Exception as exc:
            logger.warning("Sync failed for %s: %s", start.strftime("%B %Y"), exc)
            self._session.transition(SyncState.FAILED)
            self._session.report(SyncStatus.failure(SYNC_FAILED, exc))
            return months

        self._session.transition(SyncState.IDLE)
        self._session.report(SyncStatus.progress(UP_TO_DATE, 1, 1))
        return months

    async def sync_month(self, start: datetime, end: datetime) -> int:
        """Reconcile one month.

        Returns:
            Number of observations created.
        """
        self._session.guard()
        self._session.transition(SyncState.SYNCING_MONTH)
        label = start.strftime("%B %Y")

        start_iso, end_iso = start.isoformat(), end.isoformat()
        categories = list(Category)
        samples = await asyncio.gather(
            *(self._provider.get_samples(c, start_iso, end_iso) for c in categories),
            return_exceptions=True,
        )
        for result in samples:
            if isinstance(result, BaseException):
                raise result
        plan = self.plan(dict(zip(categories, samples)), start, end)

        logger.info(
            "%s: %d to modify, %d steps, %d distance, %d heart rate to upload",
            label,
            len(plan.modifications),
            len(plan.creates[Category.STEPS]),
            len(plan.creates[Category.DISTANCE]),
            len(plan.creates[Category.HEART_RATE]),
        )

        await self._apply_modifications(plan, label)
        return await self._upload_creates(plan, label)

    def plan(self, provider: dict, start: datetime, end: datetime) -> MonthPlan:
        """Diff provider samples against the snapshot for one window."""
        rc = self._config.reconciliation
        snapshot = self._session.snapshot
        plan = MonthPlan()

        for category in (Category.STEPS, Category.DISTANCE):
            creates, modifications = diff_daily(
                category,
                provider.get(category, []),
                snapshot.window(category, start, end),
                rc.modify_tolerance,
            )
            plan.creates[category] = creates
            plan.modifications.extend(modifications)

        plan.creates[Category.HEART_RATE] = diff_heart_rate(
            provider.get(Category.HEART_RATE, []),
            snapshot.window(Category.HEART_RATE, start, end),
            rc.heart_rate_collapse_seconds,
            rc.heart_rate_collapse_delta,
        )
        return plan

    async def _apply_modifications(self, plan: MonthPlan, label: str) -> None:
        total = len(plan.modifications)
        if total == 0:
            return

        description = f"Updating pod data for {label}"
        self._session.report(SyncStatus.progress(description, 0, total))
        for i, modification in enumerate(plan.modifications, start=1):
            await self._observations.modify(modification.point, modification.new_value)
            self._session.report(SyncStatus.progress(description, i, total))

    async def _upload_creates(self, plan: MonthPlan, label: str) -> int:
        encoded: list[EncodedObservation] = []
        for category, points in plan.creates.items():
            for point in points:
                observation = self._observations.encode(point, category)
                encoded.append(observation)
                # Optimistic: in the snapshot before the upload is confirmed.
                self._session.snapshot.add(category, observation.point)

        total = len(encoded)
        description = f"Syncing data to pod for {label}"
        self._session.report(SyncStatus.progress(description, 0, total))

        batch_size = self._config.reconciliation.upload_batch_size
        uploaded = 0
        for offset in range(0, total, batch_size):
            batch = encoded[offset:offset + batch_size]
            await self._observations.upload(batch)
            uploaded += len(batch)
            self._session.report(SyncStatus.progress(description, uploaded, total))

        return total
