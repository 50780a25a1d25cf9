import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from coachsync.datastore.local import LocalDataStore, migrate_tournament_level
from coachsync.exceptions import DataStoreError
from coachsync.schemas.migration import MigrationStage
from coachsync.services.connectivity import StaticConnectivityChecker
from coachsync.services.backend_mode import BackendModeController
from coachsync.services.migration import MigrationService
from tests.helpers import FakeAuthService, FlakyStore


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    await engine.dispose()


@pytest.fixture
async def store(test_engine) -> LocalDataStore:
    store = LocalDataStore(TEST_DATABASE_URL, engine=test_engine)
    await store.initialize()
    yield store
    await store.close()


@pytest.mark.asyncio
class TestLocalDataStore:
    async def test_upsert_is_idempotent(self, store):
        await store.upsert_player({"id": "p1", "name": "Alice"})
        await store.upsert_player({"id": "p1", "name": "Alice B."})

        players = await store.get_players()

        assert players == [{"id": "p1", "name": "Alice B."}]

    async def test_archived_teams_hidden_unless_requested(self, store):
        await store.upsert_team({"id": "t1", "name": "Falcons"})
        await store.upsert_team({"id": "t2", "name": "Old", "archived": True})

        assert [t["id"] for t in await store.get_teams()] == ["t1"]
        assert [t["id"] for t in await store.get_teams(include_deleted=True)] == ["t1", "t2"]

    async def test_roster_requires_existing_team(self, store):
        with pytest.raises(DataStoreError):
            await store.set_team_roster("missing", [{"id": "p1", "name": "Alice"}])

    async def test_rosters_round_trip(self, store):
        await store.upsert_team({"id": "t1", "name": "Falcons"})
        await store.upsert_team({"id": "t2", "name": "Hawks"})
        await store.set_team_roster("t1", [{"id": "p1", "name": "Alice"}])
        await store.set_team_roster("t2", [])

        assert await store.get_team_roster("t1") == [{"id": "p1", "name": "Alice"}]
        assert await store.get_all_team_rosters() == {"t1": [{"id": "p1", "name": "Alice"}]}

    async def test_games_are_keyed_by_id(self, store):
        await store.save_game("g1", {"id": "g1", "team_name": "Falcons", "game_events": [{"id": "e1"}]})

        games = await store.get_games()

        assert list(games) == ["g1"]
        assert games["g1"]["game_events"] == [{"id": "e1"}]

    async def test_adjustments_grouped_by_player(self, store):
        await store.upsert_player_adjustment({"id": "a1", "player_id": "p1", "goals_delta": 1})
        await store.upsert_player_adjustment({"id": "a2", "player_id": "p2", "goals_delta": 2})

        assert [a["id"] for a in await store.get_player_adjustments("p1")] == ["a1"]
        grouped = await store.get_all_player_adjustments()
        assert set(grouped) == {"p1", "p2"}

    async def test_singletons(self, store):
        assert await store.get_warmup_plan() is None

        await store.save_warmup_plan({"id": "default", "version": 2})
        await store.save_settings({"language": "fi"})

        assert (await store.get_warmup_plan())["version"] == 2
        assert (await store.get_settings())["language"] == "fi"

    async def test_clear_all_user_data(self, store):
        await store.upsert_player({"id": "p1", "name": "Alice"})
        await store.save_settings({"language": "en"})

        await store.clear_all_user_data()

        assert await store.get_players() == []
        assert await store.get_settings() is None

    async def test_tournament_level_is_migrated_on_read(self, store):
        await store.upsert_tournament({"id": "tr1", "name": "Spring Cup", "level": "Elite A"})

        raw = await store.get_tournaments()
        migrated = await store.get_tournaments(apply_migrations=True)

        assert "series" not in raw[0]
        assert migrated[0]["series"] == [{"id": "series_tr1_elite-a", "level": "Elite A"}]

    async def test_uninitialized_store_raises(self):
        store = LocalDataStore(TEST_DATABASE_URL)

        with pytest.raises(DataStoreError):
            await store.get_players()


class TestTournamentLevelMigration:
    def test_existing_series_untouched(self):
        tournament = {"id": "tr1", "level": "A", "series": [{"id": "s", "level": "B"}]}

        assert migrate_tournament_level(tournament) is tournament

    def test_without_level_untouched(self):
        tournament = {"id": "tr1", "name": "Cup"}

        assert migrate_tournament_level(tournament) == {"id": "tr1", "name": "Cup"}


@pytest.mark.asyncio
class TestReverseIntoSqlite:
    async def test_download_into_local_sqlite(self, test_engine, seed_data):
        local = LocalDataStore(TEST_DATABASE_URL, engine=test_engine)
        cloud = FlakyStore(seed_data)
        service = MigrationService(
            local_store_factory=lambda: local,
            cloud_store_factory=lambda: cloud,
            auth=FakeAuthService(),
            connectivity=StaticConnectivityChecker(online=True),
            mode_controller=BackendModeController(mode="cloud"),
        )
        events = []

        result = await service.migrate_reverse(events.append)

        assert result.success, result.errors
        assert result.counts.players == 3
        assert result.counts.team_rosters == 2
        assert events[-1].stage == MigrationStage.COMPLETE

        await local.initialize()
        games = await local.get_games()
        assert set(games) == {"g1", "g2"}
        assert games["g1"]["game_events"][0]["id"] == "e1"
