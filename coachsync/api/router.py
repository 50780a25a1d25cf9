from fastapi import APIRouter

from coachsync.api.migration import router as migration_router

api_router = APIRouter()

api_router.include_router(migration_router)
