"""
Migration engine.

Moves a coach's dataset between the local store and the cloud store.

Components:
- sanitize_snapshot: repairs or quarantines invalid entities
- MigrationOrchestrator: staged, dependency-ordered copy for every direction
- VerificationEngine: identity, count and game content checks
- ProgressReporter: monotonic 0-100 progress events
- SingleFlight: one run per direction, joiners share the result
- MigrationService: public facade
"""
from coachsync.services.migration.base import (
    CRITICAL_ENTITY_TYPES,
    DataSnapshot,
    ENTITY_ORDER,
    EntityFailure,
    read_snapshot,
)
from coachsync.services.migration.guard import SingleFlight
from coachsync.services.migration.hydration import should_write
from coachsync.services.migration.orchestrator import MigrationOrchestrator
from coachsync.services.migration.progress import ProgressReporter
from coachsync.services.migration.sanitizer import SanitizeResult, sanitize_snapshot
from coachsync.services.migration.service import MigrationService
from coachsync.services.migration.verification import VerificationEngine, VerificationResult

__all__ = [
    "CRITICAL_ENTITY_TYPES",
    "DataSnapshot",
    "ENTITY_ORDER",
    "EntityFailure",
    "read_snapshot",
    "SingleFlight",
    "should_write",
    "MigrationOrchestrator",
    "ProgressReporter",
    "SanitizeResult",
    "sanitize_snapshot",
    "MigrationService",
    "VerificationEngine",
    "VerificationResult",
]
