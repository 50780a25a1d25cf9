"""
Migration orchestrator.

One orchestrator drives every direction: forward (local -> cloud), reverse
(cloud -> local) and hydration (cloud -> local, newer wins). It runs the
stages in order, writes entity types in dependency order and decides under
partial failure whether it is safe to switch backend or delete the source.
"""
import logging
from collections import defaultdict
from typing import Awaitable

from coachsync.config import Settings, get_settings
from coachsync.datastore.base import DataStore, Document
from coachsync.exceptions import (
    ConnectivityError,
    DataStoreError,
    MigrationError,
    SessionExpiredError,
    StoreNetworkError,
)
from coachsync.schemas.migration import (
    ConflictPolicy,
    HydrationResult,
    MigrationCounts,
    MigrationDirection,
    MigrationMode,
    MigrationResult,
    MigrationStage,
)
from coachsync.services.auth_client import AuthService
from coachsync.services.backend_mode import BackendModeController
from coachsync.services.connectivity import ConnectivityChecker
from coachsync.services.migration import base
from coachsync.services.migration.base import (
    DataSnapshot,
    EntityFailure,
    ENTITY_ADJUSTMENT,
    ENTITY_GAME,
    ENTITY_LABELS,
    ENTITY_PERSONNEL,
    ENTITY_PLAYER,
    ENTITY_PROGRESS_LABELS,
    ENTITY_SEASON,
    ENTITY_SETTINGS,
    ENTITY_TEAM,
    ENTITY_TEAM_ROSTER,
    ENTITY_TOURNAMENT,
    ENTITY_WARMUP_PLAN,
    increment_count,
    read_snapshot,
    summarize_messages,
)
from coachsync.services.migration.hydration import should_write
from coachsync.services.migration.progress import ProgressReporter, ProgressSink, should_report_game
from coachsync.services.migration.sanitizer import sanitize_snapshot
from coachsync.services.migration.verification import VerificationEngine

logger = logging.getLogger(__name__)


class _RunState:
    """Mutable bookkeeping for one orchestrator run."""

    def __init__(self) -> None:
        self.counts = MigrationCounts()
        self.skipped = MigrationCounts()
        self.failed = MigrationCounts()
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.repairs: list[str] = []
        self.failures: list[EntityFailure] = []
        self.written_ids: dict[str, set[str]] = defaultdict(set)
        self.failed_ids: dict[str, set[str]] = defaultdict(set)
        self.kept_ids: dict[str, set[str]] = defaultdict(set)
        self.destination_cleaned = False
        self.aborted = False

    def fail(self, entity_type: str, entity_id: str, reason: str, amount: int = 1) -> None:
        failure = EntityFailure(entity_type, entity_id, reason)
        logger.error(f"Failed to migrate {failure.describe()}")
        self.failures.append(failure)
        self.failed_ids[entity_type].add(entity_id)
        increment_count(self.failed, entity_type, amount)

    def abort(self, message: str) -> None:
        logger.error(f"Migration aborted: {message}")
        self.errors.append(message)
        self.aborted = True

    @property
    def has_critical_failures(self) -> bool:
        return any(failure.is_critical for failure in self.failures)

    @property
    def succeeded(self) -> bool:
        return not self.aborted and not self.errors and not self.has_critical_failures

    def error_lines(self, limit: int) -> list[str]:
        critical = [f.describe() for f in self.failures if f.is_critical]
        return self.errors + summarize_messages(critical, limit)

    def warning_lines(self, limit: int) -> list[str]:
        minor = [f.describe() for f in self.failures if not f.is_critical]
        return (
            self.warnings
            + summarize_messages(self.repairs, limit)
            + summarize_messages(minor, limit)
        )


class MigrationOrchestrator:
    """
    Runs one directional migration between two stores.

    Both stores are opened here and closed on every exit path.
    """

    def __init__(
        self,
        source: DataStore,
        destination: DataStore,
        direction: MigrationDirection,
        mode: MigrationMode,
        auth: AuthService,
        connectivity: ConnectivityChecker,
        mode_controller: BackendModeController | None = None,
        conflict_policy: ConflictPolicy = ConflictPolicy.OVERWRITE,
        account_id: str | None = None,
        settings: Settings | None = None,
    ):
        self.source = source
        self.destination = destination
        self.direction = direction
        self.mode = mode
        self.auth = auth
        self.connectivity = connectivity
        self.mode_controller = mode_controller
        self.conflict_policy = conflict_policy
        self.account_id = account_id
        self.settings = settings or get_settings()
        self.verifier = VerificationEngine(destination)

        forward = direction == MigrationDirection.FORWARD
        self.stage_ranges = base.FORWARD_STAGE_RANGES if forward else base.REVERSE_STAGE_RANGES
        self.read_stage = MigrationStage.EXPORTING if forward else MigrationStage.DOWNLOADING
        self.write_stage = MigrationStage.UPLOADING if forward else MigrationStage.SAVING

    @property
    def is_forward(self) -> bool:
        return self.direction == MigrationDirection.FORWARD

    @property
    def is_hydration(self) -> bool:
        return self.account_id is not None

    # ==================== Public entry points ====================

    async def run(self, sink: ProgressSink | None = None) -> MigrationResult:
        """
        Execute the migration.

        Raises:
            ConnectivityError: Device offline before anything was touched
            SessionExpiredError: Session could not be refreshed before anything was touched
        """
        state = await self._execute(sink)
        limit = self.settings.max_failures_to_report
        return MigrationResult(
            success=state.succeeded,
            counts=state.counts,
            errors=state.error_lines(limit),
            warnings=state.warning_lines(limit),
            destination_cleaned=state.destination_cleaned,
        )

    async def run_hydration(self, sink: ProgressSink | None = None) -> HydrationResult:
        state = await self._execute(sink)
        limit = self.settings.max_failures_to_report
        return HydrationResult(
            success=state.succeeded,
            account_id=self.account_id or "",
            written=state.counts,
            skipped=state.skipped,
            failed=state.failed,
            errors=state.error_lines(limit),
            warnings=state.warning_lines(limit),
        )

    # ==================== Pipeline ====================

    async def _execute(self, sink: ProgressSink | None) -> _RunState:
        reporter = ProgressReporter(sink, self.stage_ranges)
        state = _RunState()

        await reporter.report(MigrationStage.PREPARING, 0.0, message=self._preparing_message())
        await self._preflight()

        try:
            await self.source.initialize()
            await self.destination.initialize()
            await reporter.report(MigrationStage.PREPARING, 1.0, message=self._preparing_message())
            await self._migrate(reporter, state)
        except StoreNetworkError as e:
            state.abort(f"{self._network_error_message()} ({e})")
        except DataStoreError as e:
            state.abort(f"Migration failed: {e}")
        except (SessionExpiredError, ConnectivityError) as e:
            logger.warning(f"Lost session during {self.direction.value} migration: {e}")
            state.abort(base.MSG_SESSION_EXPIRED)
        except Exception as e:
            logger.exception(f"Unexpected error during {self.direction.value} migration")
            state.abort(f"Unexpected error during migration: {e}")
        finally:
            await self._close_stores()

        if not state.succeeded:
            first_error = state.error_lines(1)[0] if state.error_lines(1) else None
            await reporter.fail("Migration finished with errors.", error=first_error)
        else:
            await reporter.complete(self._complete_message(state))
        return state

    async def _preflight(self) -> None:
        """Connectivity and session checks; the only failures that are raised."""
        if not await self.connectivity.is_online():
            raise ConnectivityError("You appear to be offline. Connect to the internet and try again.")
        session = await self.auth.refresh_session()
        if self.account_id is not None and session.user_id != self.account_id:
            raise SessionExpiredError(
                "You are signed in as a different account. Please sign in again and retry."
            )

    async def _migrate(self, reporter: ProgressReporter, state: _RunState) -> None:
        # Export
        await reporter.report(self.read_stage, 0.0, message=self._read_message())
        try:
            snapshot = await read_snapshot(self.source)
        except DataStoreError as e:
            if isinstance(e, StoreNetworkError):
                state.abort(f"{self._network_error_message()} ({e})")
            else:
                state.abort(f"Failed to read source data: {e}")
            return
        await reporter.report(self.read_stage, 1.0, message=self._read_message())
        logger.info(f"Exported {snapshot.entity_count()} entities from {self.source.backend_name}")

        if snapshot.is_empty():
            state.warnings.append(base.MSG_NO_SOURCE_DATA if self.is_forward else base.MSG_NO_CLOUD_DATA)
            return

        # Validate
        await reporter.report(MigrationStage.VALIDATING, 0.0, message=base.MSG_VALIDATING)
        sanitized = sanitize_snapshot(snapshot)
        state.repairs.extend(sanitized.repairs)
        for skipped in sanitized.skipped:
            state.failures.append(skipped)
            increment_count(state.failed, skipped.entity_type)
        cleaned = sanitized.snapshot

        if cleaned.entity_count() == 0:
            state.abort(base.MSG_NO_VALID_DATA)
            return
        skipped_games = sanitized.skipped_ids(ENTITY_GAME)
        if self.mode == MigrationMode.REPLACE and skipped_games:
            state.abort(
                f"Replace mode aborted: {len(skipped_games)} game(s) failed validation. "
                "Cloud data was not cleared."
            )
            return
        await reporter.report(MigrationStage.VALIDATING, 1.0, message=base.MSG_VALIDATING)

        # Clear (replace only)
        if self.mode == MigrationMode.REPLACE:
            await reporter.report(MigrationStage.CLEARING, 0.0, message=base.MSG_CLEARING)
            try:
                await self.destination.clear_all_user_data()
            except DataStoreError as e:
                state.abort(f"Failed to clear existing cloud data: {e}")
                return
            state.destination_cleaned = True
            state.warnings.append(base.MSG_CLOUD_CLEARED)

        try:
            existing = await self.verifier.capture()
        except DataStoreError as e:
            state.abort(f"Failed to read destination before writing: {e}")
            return

        # Write
        if not await self._write_all(cleaned, existing, reporter, state):
            return

        # Verify
        await reporter.report(MigrationStage.VERIFYING, 0.0, message=self._verify_message())
        verification = await self.verifier.verify(
            cleaned,
            existing,
            state.written_ids,
            excluded_games=state.kept_ids[ENTITY_GAME],
            excluded_rosters=state.kept_ids[ENTITY_TEAM_ROSTER],
        )
        state.errors.extend(verification.errors)
        state.warnings.extend(verification.warnings)
        await reporter.report(MigrationStage.VERIFYING, 1.0, message=self._verify_message())

        if not self.is_forward and not self.is_hydration:
            await self._finish_reverse(reporter, state, verified=verification.passed)

    async def _finish_reverse(self, reporter: ProgressReporter, state: _RunState, verified: bool) -> None:
        """Switch to local mode, then (optionally) delete the cloud copy."""
        delete_source = self.mode == MigrationMode.DELETE_SOURCE
        if not verified or state.has_critical_failures:
            if delete_source:
                state.warnings.append(
                    "Cloud data was not deleted because the download did not complete cleanly."
                )
            return
        if self.mode_controller is None:
            return

        switch = self.mode_controller.disable_cloud_mode()
        if not switch.success:
            state.errors.append(f"Failed to switch to local mode: {switch.message or 'unknown error'}")
            if delete_source:
                state.warnings.append("Cloud data was not deleted because the backend mode switch failed.")
            return

        if not delete_source:
            if not self.mode_controller.update_cloud_account_info(True):
                state.warnings.append("Could not record that cloud data still exists.")
            return

        await reporter.report(MigrationStage.DELETING, 0.0, message=base.MSG_DELETING)
        try:
            await self.source.clear_all_user_data()
        except (DataStoreError, SessionExpiredError) as e:
            logger.warning(f"Cloud deletion failed after verified download: {e}")
            state.warnings.append(
                f"Cloud data could not be deleted ({e}). Your local copy is complete; "
                "the leftover cloud copy is harmless."
            )
            return
        state.destination_cleaned = True
        self.mode_controller.clear_cloud_account_info()
        await reporter.report(MigrationStage.DELETING, 1.0, message=base.MSG_DELETING)

    # ==================== Writing ====================

    async def _write_all(
        self,
        snapshot: DataSnapshot,
        existing: DataSnapshot,
        reporter: ProgressReporter,
        state: _RunState,
    ) -> bool:
        """Write every entity type in dependency order. False if the run must stop."""
        total = max(snapshot.entity_count(), 1)
        done = 0
        message = self._write_message()

        async def advance(entity_type: str, amount: int) -> None:
            nonlocal done
            done += amount
            await reporter.report(
                self.write_stage,
                done / total,
                message=message,
                current_entity=ENTITY_PROGRESS_LABELS[entity_type],
            )

        simple_types = (
            (ENTITY_PLAYER, snapshot.players, existing.players, self.destination.upsert_player),
            (ENTITY_SEASON, snapshot.seasons, existing.seasons, self.destination.upsert_season),
            (ENTITY_TOURNAMENT, snapshot.tournaments, existing.tournaments, self.destination.upsert_tournament),
            (ENTITY_TEAM, snapshot.teams, existing.teams, self.destination.upsert_team),
        )
        for entity_type, items, current, upsert in simple_types:
            await self._write_documents(entity_type, items, current, upsert, state)
            await advance(entity_type, len(items))

        roster_entries = sum(len(entries) for entries in snapshot.team_rosters.values())
        await self._write_rosters(snapshot.team_rosters, existing.team_rosters, state)
        await advance(ENTITY_TEAM_ROSTER, roster_entries)

        await self._write_documents(
            ENTITY_PERSONNEL,
            snapshot.personnel,
            existing.personnel,
            self.destination.upsert_personnel_member,
            state,
        )
        await advance(ENTITY_PERSONNEL, len(snapshot.personnel))

        # Games
        games = list(snapshot.games.values())
        interval = self.settings.session_check_interval
        for index, game in enumerate(games, start=1):
            self._clear_failed_references(ENTITY_GAME, game, state)
            current = existing.games.get(game["id"])
            if not self._keep_existing(ENTITY_GAME, game, current, state):
                await self._write(
                    ENTITY_GAME, game["id"], self.destination.save_game(game["id"], game), state
                )
            if should_report_game(
                index, len(games), base.GAME_PROGRESS_BATCH_THRESHOLD, base.GAME_PROGRESS_BATCH_SIZE
            ):
                await reporter.report(
                    self.write_stage,
                    (done + index) / total,
                    message=message,
                    current_entity=f"games ({index}/{len(games)})",
                )
            if interval > 0 and index % interval == 0 and index < len(games):
                if not await self._session_still_valid(state):
                    return False
        done += len(games)

        await self._write_documents(
            ENTITY_ADJUSTMENT,
            snapshot.player_adjustments,
            existing.player_adjustments,
            self.destination.upsert_player_adjustment,
            state,
        )
        await advance(ENTITY_ADJUSTMENT, len(snapshot.player_adjustments))

        if snapshot.warmup_plan is not None:
            await self._write_singleton(
                ENTITY_WARMUP_PLAN,
                snapshot.warmup_plan,
                existing.warmup_plan,
                self.destination.save_warmup_plan,
                state,
            )
            await advance(ENTITY_WARMUP_PLAN, 1)
        if snapshot.settings is not None:
            await self._write_singleton(
                ENTITY_SETTINGS,
                snapshot.settings,
                existing.settings,
                self.destination.save_settings,
                state,
            )
            await advance(ENTITY_SETTINGS, 1)
        return True

    async def _write(self, entity_type: str, entity_id: str, operation: Awaitable, state: _RunState) -> bool:
        try:
            await operation
        except DataStoreError as e:
            state.fail(entity_type, entity_id, str(e))
            return False
        state.written_ids[entity_type].add(entity_id)
        increment_count(state.counts, entity_type)
        return True

    async def _write_documents(self, entity_type, items, current_items, upsert, state: _RunState) -> None:
        current = {item.get("id"): item for item in current_items}
        for doc in items:
            self._clear_failed_references(entity_type, doc, state)
            if entity_type == ENTITY_ADJUSTMENT and doc.get("player_id") in state.failed_ids[ENTITY_PLAYER]:
                state.fail(entity_type, doc["id"], f"player {doc['player_id']} failed to migrate")
                continue
            if self._keep_existing(entity_type, doc, current.get(doc["id"]), state):
                continue
            await self._write(entity_type, doc["id"], upsert(doc), state)

    async def _write_rosters(
        self,
        rosters: dict[str, list[Document]],
        current_rosters: dict[str, list[Document]],
        state: _RunState,
    ) -> None:
        failed_players = state.failed_ids[ENTITY_PLAYER]
        for team_id, entries in rosters.items():
            if team_id in state.failed_ids[ENTITY_TEAM]:
                state.fail(ENTITY_TEAM_ROSTER, team_id, "team failed to migrate", amount=len(entries))
                continue
            # Rosters follow their team's freshness decision
            if team_id in state.kept_ids[ENTITY_TEAM] and current_rosters.get(team_id):
                increment_count(state.skipped, ENTITY_TEAM_ROSTER, len(entries))
                state.kept_ids[ENTITY_TEAM_ROSTER].add(team_id)
                continue

            kept = []
            for entry in entries:
                if entry.get("id") in failed_players:
                    state.warnings.append(
                        f"Roster {team_id}: removed player {entry.get('id')} that failed to migrate"
                    )
                    continue
                kept.append(entry)
            try:
                await self.destination.set_team_roster(team_id, kept)
            except DataStoreError as e:
                state.fail(ENTITY_TEAM_ROSTER, team_id, str(e), amount=len(kept))
                continue
            state.written_ids[ENTITY_TEAM_ROSTER].update(f"{team_id}:{entry['id']}" for entry in kept)
            increment_count(state.counts, ENTITY_TEAM_ROSTER, len(kept))

    async def _write_singleton(self, entity_type, doc, current, save, state: _RunState) -> None:
        if self._keep_existing(entity_type, doc, current, state):
            return
        try:
            await save(doc)
        except DataStoreError as e:
            state.fail(entity_type, entity_type, str(e))
            return
        increment_count(state.counts, entity_type)

    def _keep_existing(self, entity_type: str, doc: Document, current: Document | None, state: _RunState) -> bool:
        """True when the destination copy wins the freshness comparison."""
        if should_write(doc, current, self.conflict_policy):
            return False
        increment_count(state.skipped, entity_type)
        if doc.get("id"):
            state.kept_ids[entity_type].add(doc["id"])
        return True

    def _clear_failed_references(self, entity_type: str, doc: Document, state: _RunState) -> None:
        """Null out references to entities that failed to reach the destination."""
        references = {
            ENTITY_TEAM: (("bound_season_id", ENTITY_SEASON), ("bound_tournament_id", ENTITY_TOURNAMENT)),
            ENTITY_GAME: (
                ("season_id", ENTITY_SEASON),
                ("tournament_id", ENTITY_TOURNAMENT),
                ("team_id", ENTITY_TEAM),
            ),
            ENTITY_ADJUSTMENT: (("season_id", ENTITY_SEASON), ("tournament_id", ENTITY_TOURNAMENT)),
        }.get(entity_type, ())
        for field_name, target_type in references:
            ref = doc.get(field_name)
            if ref is not None and ref in state.failed_ids[target_type]:
                doc[field_name] = None
                state.warnings.append(
                    f"{ENTITY_LABELS[entity_type]} {doc['id']}: cleared reference to "
                    f"{ENTITY_LABELS[target_type].lower()} {ref} that failed to migrate"
                )

    async def _session_still_valid(self, state: _RunState) -> bool:
        try:
            await self.auth.refresh_session()
        except (SessionExpiredError, ConnectivityError) as e:
            logger.warning(f"Session check failed mid-migration: {e}")
            state.abort(base.MSG_SESSION_EXPIRED)
            return False
        return True

    async def _close_stores(self) -> None:
        for store in (self.source, self.destination):
            try:
                await store.close()
            except (DataStoreError, MigrationError, OSError) as e:
                logger.warning(f"Failed to close {store.backend_name} store: {e}")

    # ==================== Messages ====================

    def _preparing_message(self) -> str:
        if self.is_hydration:
            return base.MSG_HYDRATE_PREPARING
        return base.MSG_PREPARING if self.is_forward else base.MSG_REVERSE_PREPARING

    def _read_message(self) -> str:
        return base.MSG_EXPORTING if self.is_forward else base.MSG_DOWNLOADING

    def _write_message(self) -> str:
        return base.MSG_UPLOADING if self.is_forward else base.MSG_SAVING

    def _verify_message(self) -> str:
        return base.MSG_VERIFYING if self.is_forward else base.MSG_REVERSE_VERIFYING

    def _network_error_message(self) -> str:
        return base.MSG_FORWARD_NETWORK_ERROR if self.is_forward else base.MSG_REVERSE_NETWORK_ERROR

    def _complete_message(self, state: _RunState) -> str:
        if self.is_forward:
            return base.MSG_FORWARD_COMPLETE
        if self.is_hydration:
            return base.MSG_HYDRATE_COMPLETE
        return base.MSG_REVERSE_COMPLETE_DELETED if state.destination_cleaned else base.MSG_REVERSE_COMPLETE
