"""
Shared constants and data holders for the migration engine.

Contains the entity ordering, failure classification, progress ranges,
user-facing messages and the snapshot type passed between stages.
"""
import logging
from dataclasses import dataclass, field
from typing import Any

from coachsync.datastore.base import Document
from coachsync.schemas.migration import MigrationCounts, MigrationStage

logger = logging.getLogger(__name__)


# ==================== Entity Types ====================

ENTITY_PLAYER = "player"
ENTITY_SEASON = "season"
ENTITY_TOURNAMENT = "tournament"
ENTITY_TEAM = "team"
ENTITY_TEAM_ROSTER = "team_roster"
ENTITY_PERSONNEL = "personnel"
ENTITY_GAME = "game"
ENTITY_ADJUSTMENT = "player_adjustment"
ENTITY_WARMUP_PLAN = "warmup_plan"
ENTITY_SETTINGS = "settings"

# Write order: every type comes after the types it references
ENTITY_ORDER = (
    ENTITY_PLAYER,
    ENTITY_SEASON,
    ENTITY_TOURNAMENT,
    ENTITY_TEAM,
    ENTITY_TEAM_ROSTER,
    ENTITY_PERSONNEL,
    ENTITY_GAME,
    ENTITY_ADJUSTMENT,
    ENTITY_WARMUP_PLAN,
    ENTITY_SETTINGS,
)

# A failure of one of these blocks success, mode switch and source deletion
CRITICAL_ENTITY_TYPES = frozenset({
    ENTITY_PLAYER,
    ENTITY_TEAM,
    ENTITY_GAME,
    ENTITY_SEASON,
    ENTITY_TOURNAMENT,
    ENTITY_PERSONNEL,
})

# MigrationCounts attribute for each entity type
COUNT_FIELDS = {
    ENTITY_PLAYER: "players",
    ENTITY_SEASON: "seasons",
    ENTITY_TOURNAMENT: "tournaments",
    ENTITY_TEAM: "teams",
    ENTITY_TEAM_ROSTER: "team_rosters",
    ENTITY_PERSONNEL: "personnel",
    ENTITY_GAME: "games",
    ENTITY_ADJUSTMENT: "player_adjustments",
    ENTITY_WARMUP_PLAN: "warmup_plan",
    ENTITY_SETTINGS: "settings",
}

ENTITY_LABELS = {
    ENTITY_PLAYER: "Player",
    ENTITY_SEASON: "Season",
    ENTITY_TOURNAMENT: "Tournament",
    ENTITY_TEAM: "Team",
    ENTITY_TEAM_ROSTER: "Roster",
    ENTITY_PERSONNEL: "Personnel",
    ENTITY_GAME: "Game",
    ENTITY_ADJUSTMENT: "Adjustment",
    ENTITY_WARMUP_PLAN: "Warmup plan",
    ENTITY_SETTINGS: "Settings",
}

# Plural labels used in progress "current entity" strings
ENTITY_PROGRESS_LABELS = {
    ENTITY_PLAYER: "players",
    ENTITY_SEASON: "seasons",
    ENTITY_TOURNAMENT: "tournaments",
    ENTITY_TEAM: "teams",
    ENTITY_TEAM_ROSTER: "team rosters",
    ENTITY_PERSONNEL: "personnel",
    ENTITY_GAME: "games",
    ENTITY_ADJUSTMENT: "player adjustments",
    ENTITY_WARMUP_PLAN: "warmup plan",
    ENTITY_SETTINGS: "settings",
}


def increment_count(counts: MigrationCounts, entity_type: str, amount: int = 1) -> None:
    """Add to the counter of an entity type (booleans are set instead)."""
    attr = COUNT_FIELDS[entity_type]
    current = getattr(counts, attr)
    if isinstance(current, bool):
        setattr(counts, attr, True)
    else:
        setattr(counts, attr, current + amount)


# ==================== Progress Ranges ====================

# Percentage span covered by each stage, per direction
FORWARD_STAGE_RANGES = {
    MigrationStage.PREPARING: (0, 5),
    MigrationStage.EXPORTING: (5, 25),
    MigrationStage.VALIDATING: (25, 30),
    MigrationStage.CLEARING: (30, 30),
    MigrationStage.UPLOADING: (30, 85),
    MigrationStage.VERIFYING: (85, 100),
}

REVERSE_STAGE_RANGES = {
    MigrationStage.PREPARING: (0, 5),
    MigrationStage.DOWNLOADING: (5, 45),
    MigrationStage.VALIDATING: (45, 50),
    MigrationStage.SAVING: (50, 85),
    MigrationStage.VERIFYING: (85, 95),
    MigrationStage.DELETING: (95, 100),
}

# Games report progress one by one below this count, then every N games
GAME_PROGRESS_BATCH_THRESHOLD = 10
GAME_PROGRESS_BATCH_SIZE = 10


# ==================== Messages ====================

MSG_PREPARING = "Preparing migration..."
MSG_EXPORTING = "Exporting local data..."
MSG_VALIDATING = "Validating data integrity..."
MSG_CLEARING = "Clearing existing cloud data..."
MSG_UPLOADING = "Uploading to cloud..."
MSG_VERIFYING = "Verifying migration..."
MSG_FORWARD_COMPLETE = "Migration complete! Your data is now synced to the cloud."
MSG_FORWARD_NETWORK_ERROR = "Network error during migration. Your local data is unchanged."

MSG_REVERSE_PREPARING = "Preparing download..."
MSG_DOWNLOADING = "Downloading from cloud..."
MSG_SAVING = "Saving to local storage..."
MSG_REVERSE_VERIFYING = "Verifying download..."
MSG_DELETING = "Deleting cloud data..."
MSG_REVERSE_COMPLETE = "Download complete! Your data is now stored locally."
MSG_REVERSE_COMPLETE_DELETED = "Download complete! Cloud data has been deleted."
MSG_REVERSE_NETWORK_ERROR = "Network error during download. Your cloud data is unchanged."

MSG_HYDRATE_PREPARING = "Preparing cloud sync..."
MSG_HYDRATE_COMPLETE = "Cloud sync complete! Local data is up to date."

MSG_NO_SOURCE_DATA = "No local data found to migrate."
MSG_NO_CLOUD_DATA = "No cloud data found to download."
MSG_NO_VALID_DATA = "No valid data to migrate. All records failed validation."
MSG_CLOUD_CLEARED = "CLOUD_CLEARED"
MSG_SESSION_EXPIRED = "Your session expired during migration. Please sign in again and retry."
MSG_PREEXISTING_DATA = "Destination already contained data before migration (pre-existing destination data)."


# ==================== Data Holders ====================

@dataclass
class DataSnapshot:
    """Read-only export of a whole dataset, grouped by entity type."""

    players: list[Document] = field(default_factory=list)
    seasons: list[Document] = field(default_factory=list)
    tournaments: list[Document] = field(default_factory=list)
    teams: list[Document] = field(default_factory=list)
    team_rosters: dict[str, list[Document]] = field(default_factory=dict)
    personnel: list[Document] = field(default_factory=list)
    games: dict[str, Document] = field(default_factory=dict)
    player_adjustments: list[Document] = field(default_factory=list)
    warmup_plan: Document | None = None
    settings: Document | None = None

    def is_empty(self) -> bool:
        """True when there is nothing worth migrating (singletons alone don't count)."""
        return not any((
            self.players,
            self.seasons,
            self.tournaments,
            self.teams,
            self.personnel,
            self.games,
            self.player_adjustments,
        ))

    def entity_count(self) -> int:
        return (
            len(self.players)
            + len(self.seasons)
            + len(self.tournaments)
            + len(self.teams)
            + sum(len(entries) for entries in self.team_rosters.values())
            + len(self.personnel)
            + len(self.games)
            + len(self.player_adjustments)
            + (1 if self.warmup_plan else 0)
            + (1 if self.settings else 0)
        )

    def counts(self) -> MigrationCounts:
        return MigrationCounts(
            players=len(self.players),
            teams=len(self.teams),
            team_rosters=sum(len(entries) for entries in self.team_rosters.values()),
            seasons=len(self.seasons),
            tournaments=len(self.tournaments),
            games=len(self.games),
            personnel=len(self.personnel),
            player_adjustments=len(self.player_adjustments),
            warmup_plan=self.warmup_plan is not None,
            settings=self.settings is not None,
        )

    def ids(self, entity_type: str) -> set[str]:
        """IDs of one entity type. Roster entries are keyed "<team_id>:<player_id>"."""
        if entity_type == ENTITY_TEAM_ROSTER:
            return {
                f"{team_id}:{entry.get('id')}"
                for team_id, entries in self.team_rosters.items()
                for entry in entries
            }
        if entity_type == ENTITY_GAME:
            return set(self.games)
        items = {
            ENTITY_PLAYER: self.players,
            ENTITY_SEASON: self.seasons,
            ENTITY_TOURNAMENT: self.tournaments,
            ENTITY_TEAM: self.teams,
            ENTITY_PERSONNEL: self.personnel,
            ENTITY_ADJUSTMENT: self.player_adjustments,
        }.get(entity_type)
        if items is None:
            return set()
        return {item["id"] for item in items if item.get("id")}


async def read_snapshot(store: Any) -> DataSnapshot:
    """Export everything from a store. Archived teams are included."""
    adjustments = await store.get_all_player_adjustments()
    return DataSnapshot(
        players=await store.get_players(),
        seasons=await store.get_seasons(apply_migrations=True),
        tournaments=await store.get_tournaments(apply_migrations=True),
        teams=await store.get_teams(include_deleted=True),
        team_rosters=await store.get_all_team_rosters(),
        personnel=await store.get_all_personnel(),
        games=await store.get_games(),
        player_adjustments=[item for items in adjustments.values() for item in items],
        warmup_plan=await store.get_warmup_plan(),
        settings=await store.get_settings(),
    )


@dataclass
class EntityFailure:
    """One entity that was skipped by validation or failed to write."""

    entity_type: str
    entity_id: str
    reason: str

    @property
    def is_critical(self) -> bool:
        return self.entity_type in CRITICAL_ENTITY_TYPES

    def describe(self) -> str:
        return f"{ENTITY_LABELS.get(self.entity_type, self.entity_type)} {self.entity_id}: {self.reason}"


def summarize_messages(messages: list[str], limit: int) -> list[str]:
    """Cap a list of detail lines, appending a "... and N more" line when truncated."""
    if limit <= 0 or len(messages) <= limit:
        return list(messages)
    return messages[:limit] + [f"... and {len(messages) - limit} more"]
