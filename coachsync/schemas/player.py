from pydantic import Field

from coachsync.schemas.common import (
    ADJUSTMENT_NOTES_MAX,
    EntityBase,
    PLAYER_NAME_MAX,
    PLAYER_NOTES_MAX,
)


class Player(EntityBase):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=PLAYER_NAME_MAX)
    nickname: str | None = Field(None, max_length=PLAYER_NAME_MAX)
    jersey_number: str | None = None
    notes: str | None = Field(None, max_length=PLAYER_NOTES_MAX)
    is_goalie: bool = False
    received_fair_play_card: bool = False


class PlayerStatAdjustment(EntityBase):
    id: str = Field(..., min_length=1)
    player_id: str = Field(..., min_length=1)
    season_id: str | None = None
    tournament_id: str | None = None
    games_played_delta: int = 0
    goals_delta: int = 0
    assists_delta: int = 0
    note: str | None = Field(None, max_length=ADJUSTMENT_NOTES_MAX)
