from pydantic import Field

from coachsync.schemas.common import EntityBase, PERSONNEL_NAME_MAX, PERSONNEL_NOTES_MAX


class Personnel(EntityBase):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=PERSONNEL_NAME_MAX)
    role: str | None = None
    phone: str | None = None
    email: str | None = None
    notes: str | None = Field(None, max_length=PERSONNEL_NOTES_MAX)
