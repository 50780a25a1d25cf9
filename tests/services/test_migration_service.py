import asyncio

import pytest

from coachsync.datastore.local import LocalDataStore
from coachsync.schemas.migration import MigrationDirection
from coachsync.services.backend_mode import BACKEND_CLOUD, BackendModeController
from coachsync.services.connectivity import StaticConnectivityChecker
from coachsync.services.migration import MigrationService
from tests.helpers import FakeAuthService, FlakyStore, YieldingStore


def build_service(local, cloud):
    return MigrationService(
        local_store_factory=lambda: local,
        cloud_store_factory=lambda: cloud,
        auth=FakeAuthService(),
        connectivity=StaticConnectivityChecker(online=True),
        mode_controller=BackendModeController(mode=BACKEND_CLOUD),
    )


@pytest.mark.asyncio
class TestConcurrentRuns:
    async def test_simultaneous_forward_calls_share_one_upload(self, seed_data):
        baseline_cloud = YieldingStore()
        await build_service(FlakyStore(seed_data), baseline_cloud).migrate_forward()

        cloud = YieldingStore()
        service = build_service(FlakyStore(seed_data), cloud)
        initiator_events, joiner_events = [], []

        a, b = await asyncio.gather(
            service.migrate_forward(initiator_events.append),
            service.migrate_forward(joiner_events.append),
        )

        assert a is b
        assert a.success, a.errors
        assert cloud.write_calls == baseline_cloud.write_calls
        assert initiator_events
        assert joiner_events == []
        assert not service.guard.is_running(MigrationDirection.FORWARD.value)

    async def test_reverse_and_hydration_never_write_local_at_once(self, seed_data):
        local = YieldingStore()
        service = build_service(local, FlakyStore(seed_data))

        reverse, hydration = await asyncio.gather(
            service.migrate_reverse(),
            service.hydrate("user-1"),
        )

        assert local.max_concurrent_game_writes == 1
        assert reverse.success, reverse.errors
        assert hydration.success, hydration.errors
        # the download landed first, so hydration found nothing newer
        assert hydration.written.games == 0
        assert hydration.skipped.games == 2


@pytest.mark.asyncio
class TestSourceChecks:
    async def test_unopenable_local_store_is_a_failed_check(self):
        service = build_service(
            LocalDataStore("sqlite+aiosqlite:////nonexistent_dir/x/y.db"),
            FlakyStore(),
        )

        check = await service.check_source_has_data(MigrationDirection.FORWARD)

        assert check.check_failed
        assert not check.has_data
        assert "Could not open local store" in check.error

    async def test_close_failure_does_not_mask_the_result(self, seed_data):
        local = FlakyStore(seed_data)

        async def failing_close():
            raise OSError("disk went away")

        local.close = failing_close
        service = build_service(local, FlakyStore())

        check = await service.check_source_has_data(MigrationDirection.FORWARD)
        summary = await service.get_source_summary(MigrationDirection.FORWARD)

        assert check.has_data and not check.check_failed
        assert summary.players == 3
