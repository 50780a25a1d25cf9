import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from coachsync.api.deps import get_migration_service
from coachsync.exceptions import ConnectivityError, DataStoreError, SessionExpiredError
from coachsync.schemas.migration import (
    HydrationResult,
    MigrationCounts,
    MigrationDirection,
    MigrationMode,
    MigrationProgress,
    MigrationResult,
    SourceDataCheck,
)
from coachsync.services.migration import MigrationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/migration", tags=["migration"])


def log_progress(event: MigrationProgress) -> None:
    """Progress sink for HTTP-triggered runs: events go to the log."""
    logger.info(
        f"[{event.stage.value}] {event.progress}% "
        f"{event.message or ''} {event.current_entity or ''}".rstrip()
    )


def _preflight_http_error(e: Exception) -> HTTPException:
    if isinstance(e, SessionExpiredError):
        return HTTPException(status_code=401, detail=str(e))
    return HTTPException(status_code=503, detail=str(e))


@router.post("/forward", response_model=MigrationResult)
async def migrate_forward(
    mode: MigrationMode = Query(default=MigrationMode.MERGE),
    service: MigrationService = Depends(get_migration_service),
):
    """Copy local data to the cloud (merge or replace)."""
    if mode not in (MigrationMode.MERGE, MigrationMode.REPLACE):
        raise HTTPException(status_code=422, detail=f"Mode '{mode.value}' is not valid for forward migration")
    try:
        return await service.migrate_forward(log_progress, mode)
    except (ConnectivityError, SessionExpiredError) as e:
        raise _preflight_http_error(e)


@router.post("/reverse", response_model=MigrationResult)
async def migrate_reverse(
    mode: MigrationMode = Query(default=MigrationMode.KEEP_SOURCE),
    service: MigrationService = Depends(get_migration_service),
):
    """Copy cloud data to local storage, optionally deleting the cloud copy."""
    if mode not in (MigrationMode.KEEP_SOURCE, MigrationMode.DELETE_SOURCE):
        raise HTTPException(status_code=422, detail=f"Mode '{mode.value}' is not valid for reverse migration")
    try:
        return await service.migrate_reverse(log_progress, mode)
    except (ConnectivityError, SessionExpiredError) as e:
        raise _preflight_http_error(e)


@router.post("/hydrate/{account_id}", response_model=HydrationResult)
async def hydrate(
    account_id: str,
    service: MigrationService = Depends(get_migration_service),
):
    """Pull newer cloud data into local storage."""
    try:
        return await service.hydrate(account_id, log_progress)
    except (ConnectivityError, SessionExpiredError) as e:
        raise _preflight_http_error(e)


@router.get("/source-check", response_model=SourceDataCheck)
async def source_check(
    direction: MigrationDirection = Query(default=MigrationDirection.FORWARD),
    service: MigrationService = Depends(get_migration_service),
):
    """Does the migration source hold any data?"""
    return await service.check_source_has_data(direction)


@router.get("/summary", response_model=MigrationCounts)
async def source_summary(
    direction: MigrationDirection = Query(default=MigrationDirection.FORWARD),
    service: MigrationService = Depends(get_migration_service),
):
    """Per-type counts of what a migration in ``direction`` would move."""
    try:
        return await service.get_source_summary(direction)
    except (ConnectivityError, SessionExpiredError) as e:
        raise _preflight_http_error(e)
    except DataStoreError as e:
        raise HTTPException(status_code=502, detail=f"Could not read source data: {e}")
