"""Progress reporting: maps stage-relative fractions onto a 0-100 scale."""
import inspect
import logging
from typing import Any, Callable

from coachsync.schemas.migration import MigrationProgress, MigrationStage

logger = logging.getLogger(__name__)

ProgressSink = Callable[[MigrationProgress], Any]


class ProgressReporter:
    """
    Emits MigrationProgress events to an optional sink.

    Percentages never go backwards. A sink that raises is logged and ignored,
    it can never abort a migration.
    """

    def __init__(self, sink: ProgressSink | None, stage_ranges: dict[MigrationStage, tuple[int, int]]):
        self.sink = sink
        self.stage_ranges = stage_ranges
        self.progress = 0
        self.events: list[MigrationProgress] = []

    def _percent(self, stage: MigrationStage, fraction: float) -> int:
        if stage == MigrationStage.COMPLETE:
            return 100
        if stage not in self.stage_ranges:
            return self.progress
        start, end = self.stage_ranges[stage]
        fraction = min(max(fraction, 0.0), 1.0)
        return int(round(start + (end - start) * fraction))

    async def report(
        self,
        stage: MigrationStage,
        fraction: float = 0.0,
        message: str | None = None,
        current_entity: str | None = None,
        error: str | None = None,
    ) -> MigrationProgress:
        self.progress = max(self.progress, self._percent(stage, fraction))
        event = MigrationProgress(
            stage=stage,
            progress=self.progress,
            current_entity=current_entity,
            message=message,
            error=error,
        )
        self.events.append(event)
        if self.sink is not None:
            try:
                outcome = self.sink(event)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.warning(f"Progress sink failed at {stage.value}: {e}")
        return event

    async def complete(self, message: str) -> MigrationProgress:
        return await self.report(MigrationStage.COMPLETE, 1.0, message=message)

    async def fail(self, message: str, error: str | None = None) -> MigrationProgress:
        return await self.report(MigrationStage.ERROR, message=message, error=error or message)


def should_report_game(index: int, total: int, batch_threshold: int, batch_size: int) -> bool:
    """Report every game for small sets, every `batch_size` games (and the last) otherwise."""
    if total < batch_threshold:
        return True
    return index % batch_size == 0 or index == total
