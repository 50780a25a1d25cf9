from coachsync.schemas.player import Player, PlayerStatAdjustment
from coachsync.schemas.team import Team, TeamPlayer
from coachsync.schemas.season import Season, Tournament
from coachsync.schemas.personnel import Personnel
from coachsync.schemas.game import Game, GameEvent
from coachsync.schemas.documents import AppSettings, WarmupPlan, WarmupStep
from coachsync.schemas.migration import (
    ConflictPolicy,
    HydrationResult,
    MigrationCounts,
    MigrationDirection,
    MigrationMode,
    MigrationProgress,
    MigrationResult,
    MigrationStage,
    SourceDataCheck,
)
