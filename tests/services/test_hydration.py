import pytest

from coachsync.exceptions import SessionExpiredError
from coachsync.schemas.migration import ConflictPolicy
from coachsync.services.backend_mode import BACKEND_CLOUD, BackendModeController
from coachsync.services.connectivity import StaticConnectivityChecker
from coachsync.services.migration import MigrationService
from coachsync.services.migration.hydration import entity_timestamp, should_write
from tests.helpers import FakeAuthService, FlakyStore, make_game


def build_service(cloud, local, controller=None, user_id="user-1"):
    return MigrationService(
        local_store_factory=lambda: local,
        cloud_store_factory=lambda: cloud,
        auth=FakeAuthService(user_id=user_id),
        connectivity=StaticConnectivityChecker(online=True),
        mode_controller=controller or BackendModeController(mode=BACKEND_CLOUD),
    )


class TestFreshnessRule:
    def test_missing_destination_is_written(self):
        assert should_write({"id": "p1"}, None, ConflictPolicy.NEWER_WINS)

    def test_strictly_newer_source_wins(self):
        source = {"updated_at": "2026-02-01T00:00:00Z"}
        destination = {"updated_at": "2026-01-01T00:00:00Z"}

        assert should_write(source, destination, ConflictPolicy.NEWER_WINS)
        assert not should_write(destination, source, ConflictPolicy.NEWER_WINS)

    def test_equal_timestamps_keep_destination(self):
        doc = {"updated_at": "2026-02-01T00:00:00Z"}

        assert not should_write(doc, dict(doc), ConflictPolicy.NEWER_WINS)

    def test_unparseable_timestamp_keeps_destination(self):
        source = {"updated_at": "soon"}
        destination = {"updated_at": "2026-01-01T00:00:00Z"}

        assert not should_write(source, destination, ConflictPolicy.NEWER_WINS)

    def test_overwrite_policy_always_writes(self):
        assert should_write({"updated_at": "2020-01-01"}, {"updated_at": "2026-01-01"}, ConflictPolicy.OVERWRITE)

    def test_singletons_fall_back_to_last_modified(self):
        plan = {"last_modified": 1767225600000}

        assert entity_timestamp(plan).year == 2026


@pytest.mark.asyncio
class TestHydration:
    async def test_older_cloud_copy_leaves_local_untouched(self, seed_data):
        local = FlakyStore({
            "players": [{"id": "p1", "name": "Alice (edited)", "updated_at": "2026-02-01T00:00:00Z"}],
        })
        service = build_service(FlakyStore(seed_data), local)

        result = await service.hydrate("user-1")

        assert result.success, result.errors
        assert result.account_id == "user-1"
        assert local.players["p1"]["name"] == "Alice (edited)"
        assert result.skipped.players == 1
        assert result.written.players == 2

    async def test_newer_cloud_copy_overwrites_local(self, seed_data):
        local = FlakyStore({
            "players": [{"id": "p1", "name": "Old Alice", "updated_at": "2025-12-01T00:00:00Z"}],
        })
        service = build_service(FlakyStore(seed_data), local)

        result = await service.hydrate("user-1")

        assert local.players["p1"]["name"] == "Alice"
        assert result.written.players == 3
        assert result.skipped.players == 0

    async def test_kept_local_game_is_excluded_from_content_check(self, seed_data):
        local_game = make_game("g1", updated_at="2026-04-01T00:00:00Z")
        local = FlakyStore({"games": {"g1": local_game}})
        service = build_service(FlakyStore(seed_data), local)

        result = await service.hydrate("user-1")

        assert result.success, result.errors
        assert result.skipped.games == 1
        assert local.games["g1"]["game_events"] == []

    async def test_roster_follows_kept_team(self, seed_data):
        local = FlakyStore({
            "players": [{"id": "p3", "name": "Cara", "updated_at": "2026-05-01T00:00:00Z"}],
            "teams": [{"id": "t1", "name": "Falcons (local)", "updated_at": "2026-05-01T00:00:00Z"}],
            "team_rosters": {"t1": [{"id": "p3", "name": "Cara"}]},
        })
        service = build_service(FlakyStore(seed_data), local)

        result = await service.hydrate("user-1")

        assert result.success, result.errors
        assert local.teams["t1"]["name"] == "Falcons (local)"
        assert local.rosters["t1"] == [{"id": "p3", "name": "Cara"}]
        assert result.skipped.team_rosters == 2
        assert not any("team rosters in destination" in w for w in result.warnings)

    async def test_different_account_is_rejected(self, seed_data):
        local = FlakyStore()
        service = build_service(FlakyStore(seed_data), local, user_id="someone-else")

        with pytest.raises(SessionExpiredError, match="different account"):
            await service.hydrate("user-1")

        assert local.write_calls == 0

    async def test_never_switches_mode_or_deletes(self, seed_data):
        cloud = FlakyStore(seed_data)
        controller = BackendModeController(mode=BACKEND_CLOUD)
        service = build_service(cloud, FlakyStore(), controller)

        result = await service.hydrate("user-1")

        assert result.success
        assert controller.mode == BACKEND_CLOUD
        assert cloud.clear_calls == 0

    async def test_write_failures_are_counted(self, seed_data):
        local = FlakyStore(fail_ids={"c1"})
        service = build_service(FlakyStore(seed_data), local)

        result = await service.hydrate("user-1")

        assert not result.success
        assert result.failed.personnel == 1
        assert result.written.personnel == 0
