"""
Store adapter contract.

Both the local embedded store and the cloud store implement this interface,
so the migration engine can treat "local" and "cloud" as interchangeable
sources and destinations. Entities travel as plain JSON-compatible dicts.
"""
from abc import ABC, abstractmethod
from typing import Any

Document = dict[str, Any]


class DataStore(ABC):
    """Uniform CRUD/upsert contract per entity type."""

    backend_name: str = "abstract"

    @abstractmethod
    async def initialize(self) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    # Players
    @abstractmethod
    async def get_players(self) -> list[Document]:
        ...

    @abstractmethod
    async def upsert_player(self, player: Document) -> Document:
        ...

    # Teams and rosters
    @abstractmethod
    async def get_teams(self, include_deleted: bool = False) -> list[Document]:
        ...

    @abstractmethod
    async def upsert_team(self, team: Document) -> Document:
        ...

    @abstractmethod
    async def get_team_roster(self, team_id: str) -> list[Document]:
        ...

    @abstractmethod
    async def set_team_roster(self, team_id: str, roster: list[Document]) -> None:
        ...

    async def get_all_team_rosters(self) -> dict[str, list[Document]]:
        """Bulk roster read. Stores with a cheaper bulk query override this."""
        rosters: dict[str, list[Document]] = {}
        for team in await self.get_teams(include_deleted=True):
            roster = await self.get_team_roster(team["id"])
            if roster:
                rosters[team["id"]] = roster
        return rosters

    # Seasons and tournaments
    @abstractmethod
    async def get_seasons(self, apply_migrations: bool = False) -> list[Document]:
        ...

    @abstractmethod
    async def upsert_season(self, season: Document) -> Document:
        ...

    @abstractmethod
    async def get_tournaments(self, apply_migrations: bool = False) -> list[Document]:
        ...

    @abstractmethod
    async def upsert_tournament(self, tournament: Document) -> Document:
        ...

    # Personnel
    @abstractmethod
    async def get_all_personnel(self) -> list[Document]:
        ...

    @abstractmethod
    async def upsert_personnel_member(self, member: Document) -> Document:
        ...

    # Games
    @abstractmethod
    async def get_games(self) -> dict[str, Document]:
        ...

    @abstractmethod
    async def save_game(self, game_id: str, game: Document) -> Document:
        ...

    # Player stat adjustments
    @abstractmethod
    async def get_player_adjustments(self, player_id: str) -> list[Document]:
        ...

    async def get_all_player_adjustments(self) -> dict[str, list[Document]]:
        """Bulk adjustment read, keyed by player id."""
        adjustments: dict[str, list[Document]] = {}
        for player in await self.get_players():
            items = await self.get_player_adjustments(player["id"])
            if items:
                adjustments[player["id"]] = items
        return adjustments

    @abstractmethod
    async def upsert_player_adjustment(self, adjustment: Document) -> Document:
        ...

    # Singletons
    @abstractmethod
    async def get_warmup_plan(self) -> Document | None:
        ...

    @abstractmethod
    async def save_warmup_plan(self, plan: Document) -> None:
        ...

    @abstractmethod
    async def get_settings(self) -> Document | None:
        ...

    @abstractmethod
    async def save_settings(self, settings: Document) -> None:
        ...

    @abstractmethod
    async def clear_all_user_data(self) -> None:
        ...
