"""
In-memory store adapter.

Reference implementation of the DataStore contract. Every read and write
copies documents so callers can never alias stored state.
"""
import copy
import logging

from coachsync.datastore.base import DataStore, Document
from coachsync.exceptions import DataStoreError

logger = logging.getLogger(__name__)


class InMemoryStore(DataStore):
    backend_name = "memory"

    def __init__(self, seed: dict | None = None):
        self.players: dict[str, Document] = {}
        self.teams: dict[str, Document] = {}
        self.rosters: dict[str, list[Document]] = {}
        self.seasons: dict[str, Document] = {}
        self.tournaments: dict[str, Document] = {}
        self.personnel: dict[str, Document] = {}
        self.games: dict[str, Document] = {}
        self.adjustments: dict[str, Document] = {}
        self.warmup_plan: Document | None = None
        self.settings: Document | None = None
        self.initialized = False
        self.closed = False
        if seed:
            self.load(seed)

    def load(self, seed: dict) -> None:
        """Populate from a dict of entity lists (used for fixtures and imports)."""
        for player in seed.get("players", []):
            self.players[player["id"]] = copy.deepcopy(player)
        for team in seed.get("teams", []):
            self.teams[team["id"]] = copy.deepcopy(team)
        for team_id, roster in seed.get("team_rosters", {}).items():
            self.rosters[team_id] = copy.deepcopy(roster)
        for season in seed.get("seasons", []):
            self.seasons[season["id"]] = copy.deepcopy(season)
        for tournament in seed.get("tournaments", []):
            self.tournaments[tournament["id"]] = copy.deepcopy(tournament)
        for member in seed.get("personnel", []):
            self.personnel[member["id"]] = copy.deepcopy(member)
        for game_id, game in seed.get("games", {}).items():
            self.games[game_id] = copy.deepcopy(game)
        for adjustment in seed.get("player_adjustments", []):
            self.adjustments[adjustment["id"]] = copy.deepcopy(adjustment)
        self.warmup_plan = copy.deepcopy(seed.get("warmup_plan"))
        self.settings = copy.deepcopy(seed.get("settings"))

    def dump(self) -> dict:
        """Full copy of the store contents."""
        return copy.deepcopy({
            "players": list(self.players.values()),
            "teams": list(self.teams.values()),
            "team_rosters": self.rosters,
            "seasons": list(self.seasons.values()),
            "tournaments": list(self.tournaments.values()),
            "personnel": list(self.personnel.values()),
            "games": self.games,
            "player_adjustments": list(self.adjustments.values()),
            "warmup_plan": self.warmup_plan,
            "settings": self.settings,
        })

    async def initialize(self) -> None:
        self.initialized = True
        self.closed = False

    async def close(self) -> None:
        self.closed = True

    @staticmethod
    def _put(bucket: dict[str, Document], doc: Document) -> Document:
        doc_id = doc.get("id")
        if not doc_id:
            raise DataStoreError("Document has no id")
        bucket[doc_id] = copy.deepcopy(doc)
        return copy.deepcopy(doc)

    async def get_players(self) -> list[Document]:
        return copy.deepcopy(list(self.players.values()))

    async def upsert_player(self, player: Document) -> Document:
        return self._put(self.players, player)

    async def get_teams(self, include_deleted: bool = False) -> list[Document]:
        teams = list(self.teams.values())
        if not include_deleted:
            teams = [t for t in teams if not t.get("archived")]
        return copy.deepcopy(teams)

    async def upsert_team(self, team: Document) -> Document:
        return self._put(self.teams, team)

    async def get_team_roster(self, team_id: str) -> list[Document]:
        return copy.deepcopy(self.rosters.get(team_id, []))

    async def get_all_team_rosters(self) -> dict[str, list[Document]]:
        return copy.deepcopy({k: v for k, v in self.rosters.items() if v})

    async def set_team_roster(self, team_id: str, roster: list[Document]) -> None:
        if team_id not in self.teams:
            raise DataStoreError(f"Team {team_id} does not exist", entity_id=team_id)
        self.rosters[team_id] = copy.deepcopy(roster)

    async def get_seasons(self, apply_migrations: bool = False) -> list[Document]:
        return copy.deepcopy(list(self.seasons.values()))

    async def upsert_season(self, season: Document) -> Document:
        return self._put(self.seasons, season)

    async def get_tournaments(self, apply_migrations: bool = False) -> list[Document]:
        return copy.deepcopy(list(self.tournaments.values()))

    async def upsert_tournament(self, tournament: Document) -> Document:
        return self._put(self.tournaments, tournament)

    async def get_all_personnel(self) -> list[Document]:
        return copy.deepcopy(list(self.personnel.values()))

    async def upsert_personnel_member(self, member: Document) -> Document:
        return self._put(self.personnel, member)

    async def get_games(self) -> dict[str, Document]:
        return copy.deepcopy(self.games)

    async def save_game(self, game_id: str, game: Document) -> Document:
        self.games[game_id] = copy.deepcopy(game)
        return copy.deepcopy(game)

    async def get_player_adjustments(self, player_id: str) -> list[Document]:
        return copy.deepcopy([a for a in self.adjustments.values() if a.get("player_id") == player_id])

    async def get_all_player_adjustments(self) -> dict[str, list[Document]]:
        grouped: dict[str, list[Document]] = {}
        for adjustment in self.adjustments.values():
            grouped.setdefault(adjustment.get("player_id"), []).append(copy.deepcopy(adjustment))
        return grouped

    async def upsert_player_adjustment(self, adjustment: Document) -> Document:
        return self._put(self.adjustments, adjustment)

    async def get_warmup_plan(self) -> Document | None:
        return copy.deepcopy(self.warmup_plan)

    async def save_warmup_plan(self, plan: Document) -> None:
        self.warmup_plan = copy.deepcopy(plan)

    async def get_settings(self) -> Document | None:
        return copy.deepcopy(self.settings)

    async def save_settings(self, settings: Document) -> None:
        self.settings = copy.deepcopy(settings)

    async def clear_all_user_data(self) -> None:
        logger.info("Clearing all data from in-memory store")
        self.players.clear()
        self.teams.clear()
        self.rosters.clear()
        self.seasons.clear()
        self.tournaments.clear()
        self.personnel.clear()
        self.games.clear()
        self.adjustments.clear()
        self.warmup_plan = None
        self.settings = None
