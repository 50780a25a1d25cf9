from pydantic import BaseModel, Field

from coachsync.schemas.common import (
    EntityBase,
    PLAYER_NAME_MAX,
    TEAM_NAME_MAX,
    TEAM_NOTES_MAX,
)


class Team(EntityBase):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=TEAM_NAME_MAX)
    bound_season_id: str | None = None
    bound_tournament_id: str | None = None
    notes: str | None = Field(None, max_length=TEAM_NOTES_MAX)
    color: str | None = None
    archived: bool = False


class TeamPlayer(BaseModel):
    """Roster entry. ``id`` is the referenced player's id."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=PLAYER_NAME_MAX)
    nickname: str | None = None
    jersey_number: str | None = None
    is_goalie: bool = False

    class Config:
        extra = "allow"
