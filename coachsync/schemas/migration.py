from enum import Enum
from pydantic import BaseModel, Field


class MigrationDirection(str, Enum):
    FORWARD = "forward"  # local -> cloud
    REVERSE = "reverse"  # cloud -> local


class MigrationMode(str, Enum):
    MERGE = "merge"
    REPLACE = "replace"
    KEEP_SOURCE = "keep_source"
    DELETE_SOURCE = "delete_source"


class ConflictPolicy(str, Enum):
    OVERWRITE = "overwrite"
    NEWER_WINS = "newer_wins"


class MigrationStage(str, Enum):
    PREPARING = "preparing"
    EXPORTING = "exporting"
    DOWNLOADING = "downloading"
    VALIDATING = "validating"
    CLEARING = "clearing"
    UPLOADING = "uploading"
    SAVING = "saving"
    VERIFYING = "verifying"
    DELETING = "deleting"
    COMPLETE = "complete"
    ERROR = "error"


class MigrationProgress(BaseModel):
    stage: MigrationStage
    progress: int = Field(0, ge=0, le=100)
    current_entity: str | None = None
    message: str | None = None
    error: str | None = None


class MigrationCounts(BaseModel):
    players: int = 0
    teams: int = 0
    team_rosters: int = 0  # roster entries, not rosters
    seasons: int = 0
    tournaments: int = 0
    games: int = 0
    personnel: int = 0
    player_adjustments: int = 0
    warmup_plan: bool = False
    settings: bool = False


class MigrationResult(BaseModel):
    success: bool
    counts: MigrationCounts = Field(default_factory=MigrationCounts)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    destination_cleaned: bool = False


class HydrationResult(BaseModel):
    success: bool
    account_id: str
    written: MigrationCounts = Field(default_factory=MigrationCounts)
    skipped: MigrationCounts = Field(default_factory=MigrationCounts)
    failed: MigrationCounts = Field(default_factory=MigrationCounts)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class SourceDataCheck(BaseModel):
    has_data: bool
    check_failed: bool
    error: str | None = None
