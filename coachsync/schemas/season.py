from pydantic import Field

from coachsync.schemas.common import EntityBase, SEASON_NAME_MAX, TOURNAMENT_NAME_MAX


class Season(EntityBase):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=SEASON_NAME_MAX)
    start_date: str | None = None
    end_date: str | None = None
    location: str | None = None
    archived: bool = False


class Tournament(EntityBase):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=TOURNAMENT_NAME_MAX)
    start_date: str | None = None
    end_date: str | None = None
    location: str | None = None
    level: str | None = None
    archived: bool = False
