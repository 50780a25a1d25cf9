"""
Post-write verification.

Checks the destination by identity, not only by count: every sanitized
source ID must be present, per-type counts must have grown by at least the
number of newly written IDs, and embedded game content must have survived.
"""
import logging
from dataclasses import dataclass, field

from coachsync.datastore.base import DataStore
from coachsync.exceptions import DataStoreError
from coachsync.services.migration.base import (
    CRITICAL_ENTITY_TYPES,
    DataSnapshot,
    ENTITY_GAME,
    ENTITY_LABELS,
    ENTITY_ORDER,
    ENTITY_PROGRESS_LABELS,
    ENTITY_SETTINGS,
    ENTITY_TEAM_ROSTER,
    ENTITY_WARMUP_PLAN,
    MSG_PREEXISTING_DATA,
    read_snapshot,
)

logger = logging.getLogger(__name__)

# Types verified by ID set; singletons are checked for presence only
KEYED_ENTITY_TYPES = tuple(t for t in ENTITY_ORDER if t not in (ENTITY_WARMUP_PLAN, ENTITY_SETTINGS))


def ids_by_type(snapshot: DataSnapshot) -> dict[str, set[str]]:
    return {entity_type: snapshot.ids(entity_type) for entity_type in KEYED_ENTITY_TYPES}


@dataclass
class VerificationResult:
    passed: bool = True
    missing_ids: dict[str, list[str]] = field(default_factory=dict)
    content_mismatches: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class VerificationEngine:
    def __init__(self, destination: DataStore):
        self.destination = destination

    async def capture(self) -> DataSnapshot:
        """Destination contents taken before anything is written."""
        return await read_snapshot(self.destination)

    async def verify(
        self,
        expected: DataSnapshot,
        before: DataSnapshot,
        written_ids: dict[str, set[str]],
        excluded_games: set[str] | None = None,
        excluded_rosters: set[str] | None = None,
    ) -> VerificationResult:
        """
        Compare the destination against what should have arrived.

        Args:
            expected: Sanitized snapshot that was migrated
            before: Destination snapshot captured before writing
            written_ids: IDs the writer reported as written, per type
            excluded_games: Games whose destination copy was deliberately kept
            excluded_rosters: Team ids whose destination roster was deliberately kept
        """
        result = VerificationResult()
        excluded_games = excluded_games or set()
        excluded_rosters = excluded_rosters or set()
        pre_ids = ids_by_type(before)

        try:
            actual = await read_snapshot(self.destination)
        except DataStoreError as e:
            logger.error(f"Verification read failed: {e}")
            result.passed = False
            result.errors.append(f"Verification failed: could not read destination ({e})")
            return result

        if any(pre_ids.get(entity_type) for entity_type in KEYED_ENTITY_TYPES):
            result.warnings.append(MSG_PREEXISTING_DATA)

        for entity_type in KEYED_ENTITY_TYPES:
            critical = entity_type in CRITICAL_ENTITY_TYPES
            label = ENTITY_PROGRESS_LABELS[entity_type]
            pre = pre_ids.get(entity_type, set())
            after = actual.ids(entity_type)

            # Count check
            newly_written = written_ids.get(entity_type, set()) - pre
            if len(after) < len(pre):
                message = f"Count check failed for {label}: destination shrank from {len(pre)} to {len(after)}"
                self._record(result, critical, message)
            elif len(after) - len(pre) < len(newly_written):
                message = (
                    f"Count check failed for {label}: expected at least {len(newly_written)} new, "
                    f"found {len(after) - len(pre)}"
                )
                self._record(result, critical, message)

            # Identity check
            expected_ids = expected.ids(entity_type)
            if entity_type == ENTITY_TEAM_ROSTER:
                expected_ids = {key for key in expected_ids if key.split(":", 1)[0] not in excluded_rosters}
            missing = sorted(expected_ids - after)
            if missing:
                result.missing_ids[entity_type] = missing
                message = f"Missing {len(missing)} {label} in destination: {', '.join(missing)}"
                self._record(result, critical, message)

        self._check_game_content(expected, actual, excluded_games, result)

        if expected.warmup_plan is not None and actual.warmup_plan is None:
            result.warnings.append(f"{ENTITY_LABELS[ENTITY_WARMUP_PLAN]} missing in destination")
        if expected.settings is not None and actual.settings is None:
            result.warnings.append(f"{ENTITY_LABELS[ENTITY_SETTINGS]} missing in destination")

        if result.passed:
            logger.info("Verification passed")
        else:
            logger.error(f"Verification failed: {result.errors}")
        return result

    def _record(self, result: VerificationResult, critical: bool, message: str) -> None:
        if critical:
            result.passed = False
            result.errors.append(message)
        else:
            result.warnings.append(message)

    def _check_game_content(
        self,
        expected: DataSnapshot,
        actual: DataSnapshot,
        excluded_games: set[str],
        result: VerificationResult,
    ) -> None:
        for game_id, source_game in expected.games.items():
            if game_id in excluded_games or game_id not in actual.games:
                continue
            dest_game = actual.games[game_id]
            source_events = len(source_game.get("game_events") or [])
            dest_events = len(dest_game.get("game_events") or [])
            source_players = len(source_game.get("available_players") or [])
            dest_players = len(dest_game.get("available_players") or [])
            if source_events != dest_events or source_players != dest_players:
                message = (
                    f"{ENTITY_LABELS[ENTITY_GAME]} {game_id}: content mismatch "
                    f"(events {source_events} -> {dest_events}, "
                    f"available players {source_players} -> {dest_players})"
                )
                result.content_mismatches.append(message)
                result.errors.append(message)
                result.passed = False
