"""
Entity sanitizer.

Repairs what can be repaired (defaults, truncation, orphaned optional
references) and quarantines what cannot, so that nothing invalid reaches the
destination store. Pure: the input snapshot is never modified.
"""
import copy
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from coachsync.schemas import (
    AppSettings,
    Game,
    Personnel,
    Player,
    PlayerStatAdjustment,
    Season,
    Team,
    TeamPlayer,
    Tournament,
    WarmupPlan,
)
from coachsync.schemas.common import (
    ADJUSTMENT_NOTES_MAX,
    GAME_NAME_MAX,
    GAME_NOTES_MAX,
    GAME_STATUSES,
    HOME_OR_AWAY,
    PERIOD_COUNTS,
    PERSONNEL_NAME_MAX,
    PERSONNEL_NOTES_MAX,
    PLAYER_NAME_MAX,
    PLAYER_NOTES_MAX,
    SEASON_NAME_MAX,
    TEAM_NAME_MAX,
    TEAM_NOTES_MAX,
    TOURNAMENT_NAME_MAX,
)
from coachsync.services.migration.base import (
    DataSnapshot,
    EntityFailure,
    ENTITY_ADJUSTMENT,
    ENTITY_GAME,
    ENTITY_LABELS,
    ENTITY_PERSONNEL,
    ENTITY_PLAYER,
    ENTITY_SEASON,
    ENTITY_SETTINGS,
    ENTITY_TEAM,
    ENTITY_TEAM_ROSTER,
    ENTITY_TOURNAMENT,
    ENTITY_WARMUP_PLAN,
)
from coachsync.utils.timestamps import parse_date, parse_timestamp

logger = logging.getLogger(__name__)

DEFAULT_TEAM_NAME = "My Team"
DEFAULT_OPPONENT_NAME = "Opponent"
DEFAULT_PERIOD_DURATION = 10
DEFAULT_PERIOD_COUNT = 2
DEFAULT_GAME_STATUS = "notStarted"
DEFAULT_HOME_OR_AWAY = "home"

# (model, name limit, {notes field: limit})
NAMED_ENTITY_RULES: dict[str, tuple[type[BaseModel], int, dict[str, int]]] = {
    ENTITY_PLAYER: (Player, PLAYER_NAME_MAX, {"nickname": PLAYER_NAME_MAX, "notes": PLAYER_NOTES_MAX}),
    ENTITY_SEASON: (Season, SEASON_NAME_MAX, {}),
    ENTITY_TOURNAMENT: (Tournament, TOURNAMENT_NAME_MAX, {}),
    ENTITY_TEAM: (Team, TEAM_NAME_MAX, {"notes": TEAM_NOTES_MAX}),
    ENTITY_PERSONNEL: (Personnel, PERSONNEL_NAME_MAX, {"notes": PERSONNEL_NOTES_MAX}),
}


@dataclass
class SanitizeResult:
    snapshot: DataSnapshot
    repairs: list[str] = field(default_factory=list)
    skipped: list[EntityFailure] = field(default_factory=list)

    def skipped_ids(self, entity_type: str) -> set[str]:
        return {item.entity_id for item in self.skipped if item.entity_type == entity_type}

    @property
    def critical_skips(self) -> list[EntityFailure]:
        return [item for item in self.skipped if item.is_critical]

    @property
    def non_critical_skips(self) -> list[EntityFailure]:
        return [item for item in self.skipped if not item.is_critical]


# ==================== Helpers ====================

def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _validation_reason(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "value"
        parts.append(f"{location}: {item.get('msg')}")
    return "; ".join(parts) or "failed validation"


def _normalize_jersey(doc: dict) -> None:
    number = doc.get("jersey_number")
    if isinstance(number, (int, float)) and not isinstance(number, bool):
        doc["jersey_number"] = str(int(number)) if float(number).is_integer() else str(number)


def _number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


class _Sanitizer:
    """Single-use worker holding the repair and skip logs for one pass."""

    def __init__(self) -> None:
        self.repairs: list[str] = []
        self.skipped: list[EntityFailure] = []

    def repair(self, entity_type: str, entity_id: str, message: str) -> None:
        self.repairs.append(f"{ENTITY_LABELS[entity_type]} {entity_id}: {message}")

    def skip(self, entity_type: str, entity_id: Any, reason: str) -> None:
        failure = EntityFailure(entity_type, str(entity_id) if entity_id else "<missing id>", reason)
        logger.warning(f"Skipping {failure.describe()}")
        self.skipped.append(failure)

    def dedupe(self, entity_type: str, items: list[dict]) -> list[dict]:
        """Drop items without an id and later duplicates of an id."""
        seen: set[str] = set()
        unique = []
        for item in items:
            entity_id = item.get("id") if isinstance(item, dict) else None
            if _is_blank(entity_id):
                self.skip(entity_type, None, "missing id")
                continue
            if entity_id in seen:
                self.skip(entity_type, entity_id, "duplicate id (first occurrence kept)")
                continue
            seen.add(entity_id)
            unique.append(item)
        return unique

    def truncate(self, entity_type: str, doc: dict, field_name: str, limit: int) -> None:
        value = doc.get(field_name)
        if isinstance(value, str) and len(value) > limit:
            doc[field_name] = value[:limit]
            self.repair(entity_type, doc["id"], f"{field_name} truncated to {limit} characters")

    def validate(self, entity_type: str, model: type[BaseModel], doc: dict) -> bool:
        try:
            model.model_validate(doc)
        except ValidationError as e:
            self.skip(entity_type, doc.get("id"), _validation_reason(e))
            return False
        return True

    def clear_orphan(self, entity_type: str, doc: dict, field_name: str, valid_ids: set[str], label: str) -> None:
        ref = doc.get(field_name)
        if ref is not None and ref not in valid_ids:
            doc[field_name] = None
            self.repair(entity_type, doc["id"], f"cleared orphaned {label} reference")

    # ==================== Entity rules ====================

    def named_entities(self, entity_type: str, items: list[dict]) -> list[dict]:
        model, name_max, text_limits = NAMED_ENTITY_RULES[entity_type]
        valid = []
        for doc in self.dedupe(entity_type, items):
            name = doc.get("name")
            if not isinstance(name, str) or not name.strip():
                self.skip(entity_type, doc["id"], "name is empty")
                continue
            if name != name.strip():
                doc["name"] = name.strip()
            self.truncate(entity_type, doc, "name", name_max)
            for field_name, limit in text_limits.items():
                self.truncate(entity_type, doc, field_name, limit)
            if entity_type == ENTITY_PLAYER:
                _normalize_jersey(doc)
            if self.validate(entity_type, model, doc):
                valid.append(doc)
        return valid

    def rosters(self, rosters: dict[str, list[dict]], team_ids: set[str], player_ids: set[str]) -> dict[str, list[dict]]:
        valid: dict[str, list[dict]] = {}
        for team_id, entries in rosters.items():
            if team_id not in team_ids:
                self.skip(ENTITY_TEAM_ROSTER, team_id, "team does not exist")
                continue
            kept = []
            seen: set[str] = set()
            for entry in entries or []:
                player_id = entry.get("id") if isinstance(entry, dict) else None
                entry_key = f"{team_id}:{player_id}"
                if player_id not in player_ids:
                    self.skip(ENTITY_TEAM_ROSTER, entry_key, "player does not exist")
                    continue
                if player_id in seen:
                    self.skip(ENTITY_TEAM_ROSTER, entry_key, "duplicate roster entry")
                    continue
                seen.add(player_id)
                _normalize_jersey(entry)
                if self.validate(ENTITY_TEAM_ROSTER, TeamPlayer, {**entry, "id": entry_key}):
                    kept.append(entry)
            valid[team_id] = kept
        return valid

    def game(self, game_id: str, game: dict, season_ids: set[str], tournament_ids: set[str], team_ids: set[str]) -> dict | None:
        game["id"] = game.get("id") or game_id
        if game["id"] != game_id:
            self.skip(ENTITY_GAME, game_id, f"id does not match its key ({game['id']})")
            return None

        for field_name, default in (("team_name", DEFAULT_TEAM_NAME), ("opponent_name", DEFAULT_OPPONENT_NAME)):
            value = game.get(field_name)
            if _is_blank(value) or not isinstance(value, str):
                game[field_name] = default
                self.repair(ENTITY_GAME, game_id, f"{field_name} defaulted to '{default}'")
            elif value != value.strip():
                game[field_name] = value.strip()
            self.truncate(ENTITY_GAME, game, field_name, GAME_NAME_MAX)

        duration = _number(game.get("period_duration_minutes"))
        if duration is None or duration <= 0:
            game["period_duration_minutes"] = DEFAULT_PERIOD_DURATION
            self.repair(ENTITY_GAME, game_id, f"period_duration_minutes defaulted to {DEFAULT_PERIOD_DURATION}")
        elif duration != game.get("period_duration_minutes"):
            game["period_duration_minutes"] = duration

        if game.get("number_of_periods") not in PERIOD_COUNTS or isinstance(game.get("number_of_periods"), bool):
            game["number_of_periods"] = DEFAULT_PERIOD_COUNT
            self.repair(ENTITY_GAME, game_id, f"number_of_periods defaulted to {DEFAULT_PERIOD_COUNT}")

        if game.get("game_status") not in GAME_STATUSES:
            game["game_status"] = DEFAULT_GAME_STATUS
            self.repair(ENTITY_GAME, game_id, f"game_status defaulted to '{DEFAULT_GAME_STATUS}'")

        if game.get("home_or_away") not in HOME_OR_AWAY:
            game["home_or_away"] = DEFAULT_HOME_OR_AWAY
            self.repair(ENTITY_GAME, game_id, f"home_or_away defaulted to '{DEFAULT_HOME_OR_AWAY}'")

        for field_name in ("home_score", "away_score"):
            score = _number(game.get(field_name, 0))
            if score is None or score < 0:
                game[field_name] = 0
                self.repair(ENTITY_GAME, game_id, f"{field_name} reset to 0")
            elif score != game.get(field_name):
                game[field_name] = int(score)

        period = _number(game.get("current_period", 1))
        if period is None or period < 1:
            game["current_period"] = 1
            self.repair(ENTITY_GAME, game_id, "current_period reset to 1")

        self.truncate(ENTITY_GAME, game, "game_notes", GAME_NOTES_MAX)

        raw_date = game.get("game_date")
        if not (isinstance(raw_date, str) and len(raw_date.strip()) == 10 and parse_date(raw_date)):
            created = parse_timestamp(game.get("created_at"))
            if created is None:
                self.skip(ENTITY_GAME, game_id, "invalid game_date and no usable created_at")
                return None
            game["game_date"] = created.date().isoformat()
            self.repair(ENTITY_GAME, game_id, f"game_date derived from created_at ({game['game_date']})")
        elif raw_date != raw_date.strip():
            game["game_date"] = raw_date.strip()

        self.clear_orphan(ENTITY_GAME, game, "season_id", season_ids, "season")
        self.clear_orphan(ENTITY_GAME, game, "tournament_id", tournament_ids, "tournament")
        self.clear_orphan(ENTITY_GAME, game, "team_id", team_ids, "team")

        for player in game.get("available_players") or []:
            if isinstance(player, dict):
                _normalize_jersey(player)

        if not self.validate(ENTITY_GAME, Game, game):
            return None
        return game

    def adjustments(self, items: list[dict], player_ids: set[str], season_ids: set[str], tournament_ids: set[str]) -> list[dict]:
        valid = []
        for doc in self.dedupe(ENTITY_ADJUSTMENT, items):
            if doc.get("player_id") not in player_ids:
                self.skip(ENTITY_ADJUSTMENT, doc["id"], "player does not exist")
                continue
            self.clear_orphan(ENTITY_ADJUSTMENT, doc, "season_id", season_ids, "season")
            self.clear_orphan(ENTITY_ADJUSTMENT, doc, "tournament_id", tournament_ids, "tournament")
            self.truncate(ENTITY_ADJUSTMENT, doc, "note", ADJUSTMENT_NOTES_MAX)
            if self.validate(ENTITY_ADJUSTMENT, PlayerStatAdjustment, doc):
                valid.append(doc)
        return valid

    def singleton(self, entity_type: str, model: type[BaseModel], doc: dict | None) -> dict | None:
        if doc is None:
            return None
        try:
            model.model_validate(doc)
        except ValidationError as e:
            self.skip(entity_type, entity_type, _validation_reason(e))
            return None
        return doc


def sanitize_snapshot(snapshot: DataSnapshot) -> SanitizeResult:
    """
    Repair or quarantine every entity of a snapshot.

    Args:
        snapshot: Exported source data (left untouched)

    Returns:
        SanitizeResult with the cleaned snapshot, repair notes and skipped entities
    """
    source = copy.deepcopy(snapshot)
    worker = _Sanitizer()

    players = worker.named_entities(ENTITY_PLAYER, source.players)
    seasons = worker.named_entities(ENTITY_SEASON, source.seasons)
    tournaments = worker.named_entities(ENTITY_TOURNAMENT, source.tournaments)
    teams = worker.named_entities(ENTITY_TEAM, source.teams)
    personnel = worker.named_entities(ENTITY_PERSONNEL, source.personnel)

    player_ids = {p["id"] for p in players}
    season_ids = {s["id"] for s in seasons}
    tournament_ids = {t["id"] for t in tournaments}

    for team in teams:
        worker.clear_orphan(ENTITY_TEAM, team, "bound_season_id", season_ids, "season")
        worker.clear_orphan(ENTITY_TEAM, team, "bound_tournament_id", tournament_ids, "tournament")
    team_ids = {t["id"] for t in teams}

    rosters = worker.rosters(source.team_rosters, team_ids, player_ids)

    games: dict[str, dict] = {}
    for game_id, game in source.games.items():
        if not isinstance(game, dict):
            worker.skip(ENTITY_GAME, game_id, "not a game document")
            continue
        cleaned = worker.game(game_id, game, season_ids, tournament_ids, team_ids)
        if cleaned is not None:
            games[game_id] = cleaned

    adjustments = worker.adjustments(source.player_adjustments, player_ids, season_ids, tournament_ids)

    cleaned_snapshot = DataSnapshot(
        players=players,
        seasons=seasons,
        tournaments=tournaments,
        teams=teams,
        team_rosters=rosters,
        personnel=personnel,
        games=games,
        player_adjustments=adjustments,
        warmup_plan=worker.singleton(ENTITY_WARMUP_PLAN, WarmupPlan, source.warmup_plan),
        settings=worker.singleton(ENTITY_SETTINGS, AppSettings, source.settings),
    )

    if worker.repairs or worker.skipped:
        logger.info(
            f"Sanitized snapshot: {len(worker.repairs)} repairs, {len(worker.skipped)} skipped"
        )
    return SanitizeResult(snapshot=cleaned_snapshot, repairs=worker.repairs, skipped=worker.skipped)
