"""Test doubles and sample data shared by the test suite."""
import asyncio
import copy

from coachsync.datastore import InMemoryStore
from coachsync.exceptions import DataStoreError, SessionExpiredError, StoreNetworkError
from coachsync.services.auth_client import AuthService, Session


class FakeAuthService(AuthService):
    """Hands out sessions; starts failing after ``fail_after`` refreshes when set."""

    def __init__(self, user_id: str = "user-1", fail_after: int | None = None):
        self.user_id = user_id
        self.fail_after = fail_after
        self.refresh_calls = 0

    async def refresh_session(self) -> Session:
        self.refresh_calls += 1
        if self.fail_after is not None and self.refresh_calls > self.fail_after:
            raise SessionExpiredError("Your session has expired. Please sign in again and retry.")
        return Session(access_token="test-token", user_id=self.user_id)


class FlakyStore(InMemoryStore):
    """In-memory store with injectable write, clear and read failures."""

    def __init__(
        self,
        seed: dict | None = None,
        fail_ids: set[str] | None = None,
        drop_ids: set[str] | None = None,
        fail_clear: bool = False,
        fail_reads: bool = False,
    ):
        super().__init__(seed)
        self.fail_ids = set(fail_ids or ())
        self.drop_ids = set(drop_ids or ())  # accepted but silently not persisted
        self.fail_clear = fail_clear
        self.fail_reads = fail_reads
        self.write_calls = 0
        self.clear_calls = 0

    def _check_write(self, doc_id: str) -> bool:
        self.write_calls += 1
        if doc_id in self.fail_ids:
            raise DataStoreError(f"Write rejected for {doc_id}", entity_id=doc_id)
        return doc_id not in self.drop_ids

    def _put(self, bucket: dict, doc: dict) -> dict:
        if not self._check_write(doc.get("id")):
            return copy.deepcopy(doc)
        return InMemoryStore._put(bucket, doc)

    async def save_game(self, game_id: str, game: dict) -> dict:
        if not self._check_write(game_id):
            return copy.deepcopy(game)
        return await super().save_game(game_id, game)

    async def get_players(self) -> list[dict]:
        if self.fail_reads:
            raise StoreNetworkError("connection reset")
        return await super().get_players()

    async def clear_all_user_data(self) -> None:
        self.clear_calls += 1
        if self.fail_clear:
            raise DataStoreError("Delete rejected by server")
        await super().clear_all_user_data()


class YieldingStore(FlakyStore):
    """Suspends inside every game write so concurrent runs can interleave."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.active_game_writes = 0
        self.max_concurrent_game_writes = 0

    async def save_game(self, game_id: str, game: dict) -> dict:
        self.active_game_writes += 1
        self.max_concurrent_game_writes = max(self.max_concurrent_game_writes, self.active_game_writes)
        try:
            await asyncio.sleep(0)
            return await super().save_game(game_id, game)
        finally:
            self.active_game_writes -= 1


def make_game(game_id: str, **overrides) -> dict:
    game = {
        "id": game_id,
        "team_name": "Falcons",
        "opponent_name": "Hawks",
        "game_date": "2026-03-01",
        "home_score": 2,
        "away_score": 1,
        "home_or_away": "home",
        "number_of_periods": 2,
        "period_duration_minutes": 20,
        "current_period": 2,
        "game_status": "gameEnd",
        "is_played": True,
        "season_id": None,
        "tournament_id": None,
        "team_id": None,
        "game_events": [],
        "available_players": [],
        "selected_player_ids": [],
        "created_at": "2026-03-01T09:00:00Z",
        "updated_at": "2026-03-01T11:00:00Z",
    }
    game.update(overrides)
    return game


def make_seed() -> dict:
    """Three players, one team bound to a missing season, two games (one needs defaults)."""
    return {
        "players": [
            {"id": "p1", "name": "Alice", "jersey_number": "7", "updated_at": "2026-01-10T10:00:00Z"},
            {"id": "p2", "name": "Bob", "is_goalie": True, "updated_at": "2026-01-10T10:00:00Z"},
            {"id": "p3", "name": "Cara", "updated_at": "2026-01-10T10:00:00Z"},
        ],
        "seasons": [{"id": "s1", "name": "Spring 2026", "updated_at": "2026-01-01T00:00:00Z"}],
        "tournaments": [],
        "teams": [
            {"id": "t1", "name": "Falcons", "bound_season_id": "s-gone", "updated_at": "2026-01-05T00:00:00Z"},
        ],
        "team_rosters": {
            "t1": [{"id": "p1", "name": "Alice"}, {"id": "p2", "name": "Bob"}],
        },
        "personnel": [{"id": "c1", "name": "Coach Kim", "role": "head_coach"}],
        "games": {
            "g1": make_game(
                "g1",
                season_id="s1",
                team_id="t1",
                game_events=[{"id": "e1", "type": "goal", "time": 312, "scorer_id": "p1"}],
                available_players=[{"id": "p1", "name": "Alice"}, {"id": "p2", "name": "Bob"}],
                selected_player_ids=["p1", "p2"],
            ),
            "g2": make_game(
                "g2",
                team_name="",
                opponent_name=None,
                game_date="03/05/2026",
                created_at="2026-03-05T12:00:00Z",
                period_duration_minutes=0,
            ),
        },
        "player_adjustments": [
            {"id": "a1", "player_id": "p1", "season_id": "s1", "goals_delta": 2},
        ],
        "warmup_plan": {"id": "default", "version": 1, "sections": [], "last_modified": "2026-01-01T00:00:00Z"},
        "settings": {"language": "en", "updated_at": "2026-01-01T00:00:00Z"},
    }
