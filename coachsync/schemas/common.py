"""Limits and enumerations shared by the entity schemas."""

from pydantic import BaseModel

# Maximum lengths for free-text fields
PLAYER_NAME_MAX = 100
PLAYER_NOTES_MAX = 500
TEAM_NAME_MAX = 48
TEAM_NOTES_MAX = 1000
SEASON_NAME_MAX = 100
TOURNAMENT_NAME_MAX = 100
PERSONNEL_NAME_MAX = 100
PERSONNEL_NOTES_MAX = 500
GAME_NOTES_MAX = 1000
GAME_NAME_MAX = 100
ADJUSTMENT_NOTES_MAX = 500

GAME_STATUSES = ("notStarted", "inProgress", "periodEnd", "gameEnd")
HOME_OR_AWAY = ("home", "away")
PERIOD_COUNTS = (1, 2)


class EntityBase(BaseModel):
    """Base for all stored documents: keyed by a caller-assigned string id."""

    id: str
    # ISO-8601 strings; epoch milliseconds are tolerated
    created_at: str | float | None = None
    updated_at: str | float | None = None

    class Config:
        extra = "allow"
