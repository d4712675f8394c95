"""React to identity changes: load the pod, then reconcile it.

Every login or logout creates a new Session with the next generation
token.  The previous session's work keeps running until its next write,
where the generation guard stops it.

Load chain for a logged-in identity::

    LOADING_PROFILE → LOADING_TYPE_INDEX → LOADING_OBSERVATIONS → READY
        → SYNCING_MONTH ... → IDLE
    (any failure → FAILED)
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from solid_health.fitness.base import ProviderClient, SyncStatus
from solid_health.fitness.config_loader import SyncConfig, get_sync_config
from solid_health.fitness.errors import MissingCapability, StaleSessionError
from solid_health.fitness.pod.client import PodClient
from solid_health.fitness.pod.identity import Credentials, IdentitySource
from solid_health.fitness.pod.observations import ObservationStore
from solid_health.fitness.pod.profile import ProfileLoader
from solid_health.fitness.pod.triple_store import RdflibTripleStore
from solid_health.fitness.pod.type_index import TypeIndexResolver
from solid_health.fitness.sync.channels import ProfileBus, StatusBus
from solid_health.fitness.sync.engine import ReconciliationEngine
from solid_health.fitness.sync.session import Session, SyncState

logger = logging.getLogger("solidhealth.fitness.sync.manager")

LOAD_FAILED = "Could not load profile"


class SyncManager:
    """Own the current session and the status/profile channels.

    Usage::

        manager = SyncManager(identity, provider)
        manager.start()            # subscribes to identity changes
        manager.status.subscribe(print)
        identity.login(web_id, token)

    Args:
        identity: Source of login/logout events and pod credentials.
        provider: Fitness data provider.
        config:   Sync configuration (defaults to the bundled YAML).
    """

    def __init__(
        self,
        identity: IdentitySource,
        provider: ProviderClient,
        config: SyncConfig | None = None,
    ) -> None:
        self._identity = identity
        self._provider = provider
        self._config = config or get_sync_config()
        self.status = StatusBus()
        self.profile = ProfileBus()
        self._generation = 0
        self.session = Session(None, 0, self._is_current, self.status)
        self.session.snapshot.mark_ready()
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Subscribe to identity changes; the current identity is handled at once."""
        if self._unsubscribe is None:
            self._unsubscribe = self._identity.subscribe(self._on_identity)

    async def stop(self) -> None:
        """Unsubscribe and wait for in-flight runs to finish."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._generation += 1  # stale-out any running session
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _on_identity(self, credentials: Credentials | None) -> None:
        session = self._begin(credentials)
        if credentials is None:
            return
        task = asyncio.get_running_loop().create_task(self._run(session, credentials))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    # ------------------------------------------------------------------
    # Session handling
    # ------------------------------------------------------------------

    async def switch_identity(
        self, credentials: Credentials | None, now: datetime | None = None
    ) -> Session:
        """Start a new session for ``credentials`` and run it to completion.

        Args:
            credentials: The new identity, or None for logout.
            now:         Anchor for the first reconciled month (defaults to now).

        Returns:
            The new session.
        """
        session = self._begin(credentials)
        if credentials is not None:
            await self._run(session, credentials, now)
        return session

    def _begin(self, credentials: Credentials | None) -> Session:
        """Supersede the current session.  Runs synchronously on the identity event."""
        self._generation += 1
        session = Session(
            credentials.web_id if credentials else None,
            self._generation,
            self._is_current,
            self.status,
        )
        self.session = session
        self.profile.publish(None)
        if credentials is None:
            session.snapshot.mark_ready()
        return session

    async def _run(
        self, session: Session, credentials: Credentials, now: datetime | None = None
    ) -> None:
        client = self._identity.client_for(credentials).with_guard(session.guard)
        try:
            observations = await self._load(session, client)
        finally:
            session.snapshot.mark_ready()

        if observations is not None:
            engine = ReconciliationEngine(session, self._provider, observations, self._config)
            await engine.run(now)

    async def _load(self, session: Session, client: PodClient) -> ObservationStore | None:
        store = RdflibTripleStore(client)
        web_id = session.web_id

        try:
            session.transition(SyncState.LOADING_PROFILE)
            session.report(SyncStatus(description="Loading profile"))
            profile = await ProfileLoader(store).load(web_id)
            session.guard()
            session.profile = profile
            self.profile.publish(profile)

            if not profile.private_type_index:
                raise MissingCapability("No private type index")

            session.transition(SyncState.LOADING_TYPE_INDEX)
            session.report(SyncStatus(description="Loading private type index"))
            resolver = TypeIndexResolver(store, client, self._config.bootstrap)
            location = await resolver.resolve(profile.private_type_index)
            session.observation_location = location

            session.transition(SyncState.LOADING_OBSERVATIONS)
            session.report(SyncStatus(description="Loading data from pod"))
            observations = ObservationStore(store, client, self._config, web_id, location)
            await observations.load()
            session.guard()
            session.snapshot.extend(observations.parse())

        except StaleSessionError as exc:
            logger.info("Load abandoned: %s", exc)
            return None
        except Exception as exc:
            logger.warning("%s for %s: %s", LOAD_FAILED, web_id, exc)
            session.transition(SyncState.FAILED)
            session.report(SyncStatus.failure(LOAD_FAILED, exc))
            return None

        session.transition(SyncState.READY)
        session.report(SyncStatus.progress("Done", 1, 1))
        return observations
