from typing import Literal

from pydantic import BaseModel, Field

from coachsync.schemas.common import EntityBase, GAME_NAME_MAX, GAME_NOTES_MAX
from coachsync.schemas.team import TeamPlayer


class GameEvent(BaseModel):
    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    time: float = Field(0, ge=0)
    scorer_id: str | None = None
    assister_id: str | None = None
    entity_id: str | None = None

    class Config:
        extra = "allow"


class Game(EntityBase):
    """Saved game aggregate.

    Events and available players are denormalized snapshots, not live
    references to Player rows.
    """

    id: str = Field(..., min_length=1)
    team_name: str = Field(..., min_length=1, max_length=GAME_NAME_MAX)
    opponent_name: str = Field(..., min_length=1, max_length=GAME_NAME_MAX)
    game_date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    game_time: str | None = None
    game_location: str | None = None
    home_score: int = Field(0, ge=0)
    away_score: int = Field(0, ge=0)
    home_or_away: Literal["home", "away"] = "home"
    number_of_periods: Literal[1, 2] = 2
    period_duration_minutes: float = Field(10, gt=0)
    current_period: int = Field(1, ge=1)
    game_status: Literal["notStarted", "inProgress", "periodEnd", "gameEnd"] = "notStarted"
    is_played: bool = True
    season_id: str | None = None
    tournament_id: str | None = None
    team_id: str | None = None
    game_notes: str | None = Field(None, max_length=GAME_NOTES_MAX)
    game_events: list[GameEvent] = Field(default_factory=list)
    available_players: list[TeamPlayer] = Field(default_factory=list)
    selected_player_ids: list[str] = Field(default_factory=list)
