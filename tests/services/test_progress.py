from unittest.mock import AsyncMock, Mock

import pytest

from coachsync.schemas.migration import MigrationStage
from coachsync.services.migration.base import FORWARD_STAGE_RANGES
from coachsync.services.migration.progress import ProgressReporter, should_report_game


@pytest.mark.asyncio
class TestProgressReporter:
    async def test_maps_fraction_into_stage_range(self):
        reporter = ProgressReporter(None, FORWARD_STAGE_RANGES)

        event = await reporter.report(MigrationStage.UPLOADING, 0.5)

        assert event.progress == 58  # 30 + 55 * 0.5, rounded

    async def test_progress_never_goes_backwards(self):
        reporter = ProgressReporter(None, FORWARD_STAGE_RANGES)

        await reporter.report(MigrationStage.UPLOADING, 1.0)
        event = await reporter.report(MigrationStage.EXPORTING, 0.0)

        assert event.progress == 85

    async def test_complete_is_100(self):
        reporter = ProgressReporter(None, FORWARD_STAGE_RANGES)

        event = await reporter.complete("done")

        assert event.progress == 100
        assert event.stage == MigrationStage.COMPLETE

    async def test_failing_sink_is_ignored(self):
        sink = Mock(side_effect=RuntimeError("ui went away"))
        reporter = ProgressReporter(sink, FORWARD_STAGE_RANGES)

        event = await reporter.report(MigrationStage.PREPARING, 1.0, message="Preparing migration...")

        assert event.progress == 5
        sink.assert_called_once()

    async def test_async_sink_is_awaited(self):
        sink = AsyncMock()
        reporter = ProgressReporter(sink, FORWARD_STAGE_RANGES)

        await reporter.fail("Migration finished with errors.", error="boom")

        sink.assert_awaited_once()
        event = sink.await_args.args[0]
        assert event.stage == MigrationStage.ERROR
        assert event.error == "boom"


class TestGameProgressCadence:
    def test_small_sets_report_every_game(self):
        assert all(should_report_game(i, 9, 10, 10) for i in range(1, 10))

    def test_large_sets_report_every_tenth_and_last(self):
        reported = [i for i in range(1, 26) if should_report_game(i, 25, 10, 10)]

        assert reported == [10, 20, 25]
