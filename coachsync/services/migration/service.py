"""
Public migration facade.

Wires stores, auth, connectivity and the backend mode controller into
orchestrator runs, and guarantees one run per direction at a time.
"""
import asyncio
import logging
from typing import Callable

from coachsync.config import Settings, get_settings
from coachsync.datastore.base import DataStore
from coachsync.exceptions import DataStoreError, MigrationError
from coachsync.schemas.migration import (
    ConflictPolicy,
    HydrationResult,
    MigrationCounts,
    MigrationDirection,
    MigrationMode,
    MigrationResult,
    SourceDataCheck,
)
from coachsync.services.auth_client import AuthService
from coachsync.services.backend_mode import BackendModeController
from coachsync.services.connectivity import ConnectivityChecker
from coachsync.services.migration.base import read_snapshot
from coachsync.services.migration.guard import SingleFlight
from coachsync.services.migration.orchestrator import MigrationOrchestrator
from coachsync.services.migration.progress import ProgressSink

logger = logging.getLogger(__name__)

StoreFactory = Callable[[], DataStore]

FORWARD_MODES = (MigrationMode.MERGE, MigrationMode.REPLACE)
REVERSE_MODES = (MigrationMode.KEEP_SOURCE, MigrationMode.DELETE_SOURCE)


class MigrationService:
    """
    Entry point for local <-> cloud migrations.

    Store factories are called once per operation; the orchestrator owns the
    returned stores for the duration of the run and closes them afterwards.
    """

    def __init__(
        self,
        local_store_factory: StoreFactory,
        cloud_store_factory: StoreFactory,
        auth: AuthService,
        connectivity: ConnectivityChecker,
        mode_controller: BackendModeController,
        settings: Settings | None = None,
    ):
        self.local_store_factory = local_store_factory
        self.cloud_store_factory = cloud_store_factory
        self.auth = auth
        self.connectivity = connectivity
        self.mode_controller = mode_controller
        self.settings = settings or get_settings()
        self.guard = SingleFlight()
        # Reverse runs and hydrations share a destination; they queue on one lock
        self._direction_locks = {direction: asyncio.Lock() for direction in MigrationDirection}

    def _orchestrator(
        self,
        direction: MigrationDirection,
        mode: MigrationMode,
        conflict_policy: ConflictPolicy = ConflictPolicy.OVERWRITE,
        account_id: str | None = None,
    ) -> MigrationOrchestrator:
        local = self.local_store_factory()
        cloud = self.cloud_store_factory()
        if direction == MigrationDirection.FORWARD:
            source, destination = local, cloud
        else:
            source, destination = cloud, local
        return MigrationOrchestrator(
            source=source,
            destination=destination,
            direction=direction,
            mode=mode,
            auth=self.auth,
            connectivity=self.connectivity,
            mode_controller=self.mode_controller,
            conflict_policy=conflict_policy,
            account_id=account_id,
            settings=self.settings,
        )

    async def migrate_forward(
        self,
        sink: ProgressSink | None = None,
        mode: MigrationMode = MigrationMode.MERGE,
    ) -> MigrationResult:
        """Copy local data to the cloud. The local copy is never modified."""
        if mode not in FORWARD_MODES:
            raise ValueError(f"Invalid forward migration mode: {mode}")

        async def run() -> MigrationResult:
            logger.info(f"Starting forward migration (mode={mode.value})")
            async with self._direction_locks[MigrationDirection.FORWARD]:
                result = await self._orchestrator(MigrationDirection.FORWARD, mode).run(sink)
            logger.info(f"Forward migration finished: success={result.success}, counts={result.counts}")
            return result

        return await self.guard.run(MigrationDirection.FORWARD.value, run)

    async def migrate_reverse(
        self,
        sink: ProgressSink | None = None,
        mode: MigrationMode = MigrationMode.KEEP_SOURCE,
    ) -> MigrationResult:
        """Copy cloud data to local storage, then switch to local mode."""
        if mode not in REVERSE_MODES:
            raise ValueError(f"Invalid reverse migration mode: {mode}")

        async def run() -> MigrationResult:
            logger.info(f"Starting reverse migration (mode={mode.value})")
            async with self._direction_locks[MigrationDirection.REVERSE]:
                result = await self._orchestrator(MigrationDirection.REVERSE, mode).run(sink)
            logger.info(f"Reverse migration finished: success={result.success}, counts={result.counts}")
            return result

        return await self.guard.run(MigrationDirection.REVERSE.value, run)

    async def hydrate(self, account_id: str, sink: ProgressSink | None = None) -> HydrationResult:
        """Pull newer cloud data into local storage for ``account_id``."""

        async def run() -> HydrationResult:
            logger.info(f"Starting hydration for account {account_id}")
            orchestrator = self._orchestrator(
                MigrationDirection.REVERSE,
                MigrationMode.KEEP_SOURCE,
                conflict_policy=ConflictPolicy.NEWER_WINS,
                account_id=account_id,
            )
            async with self._direction_locks[MigrationDirection.REVERSE]:
                result = await orchestrator.run_hydration(sink)
            logger.info(
                f"Hydration finished: success={result.success}, "
                f"written={result.written}, skipped={result.skipped}"
            )
            return result

        return await self.guard.run(f"hydrate:{account_id}", run)

    async def _close_quietly(self, store: DataStore) -> None:
        try:
            await store.close()
        except (DataStoreError, MigrationError, OSError) as e:
            logger.warning(f"Failed to close {store.backend_name} store: {e}")

    def _source_factory(self, direction: MigrationDirection) -> StoreFactory:
        if direction == MigrationDirection.FORWARD:
            return self.local_store_factory
        return self.cloud_store_factory

    async def check_source_has_data(self, direction: MigrationDirection) -> SourceDataCheck:
        """
        Report whether the migration source holds anything worth migrating.

        Read failures are reported as ``check_failed`` instead of "no data", so
        callers can tell an empty source from an unreachable one.
        """
        store = self._source_factory(direction)()
        try:
            await store.initialize()
            snapshot = await read_snapshot(store)
            return SourceDataCheck(has_data=not snapshot.is_empty(), check_failed=False)
        except (DataStoreError, MigrationError) as e:
            logger.warning(f"Source data check failed for {direction.value}: {e}")
            return SourceDataCheck(has_data=False, check_failed=True, error=str(e))
        finally:
            await self._close_quietly(store)

    async def get_source_summary(self, direction: MigrationDirection) -> MigrationCounts:
        """Per-type counts of the migration source."""
        store = self._source_factory(direction)()
        try:
            await store.initialize()
            snapshot = await read_snapshot(store)
            return snapshot.counts()
        finally:
            await self._close_quietly(store)
