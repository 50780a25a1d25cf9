from functools import lru_cache

from coachsync.config import get_settings
from coachsync.datastore import CloudDataStore, LocalDataStore
from coachsync.services.auth_client import HttpAuthService
from coachsync.services.backend_mode import BackendModeController
from coachsync.services.connectivity import HttpConnectivityChecker
from coachsync.services.migration import MigrationService


@lru_cache
def get_migration_service() -> MigrationService:
    """Process-wide service, so the single-flight guard is shared by all requests."""
    settings = get_settings()
    auth = HttpAuthService()
    return MigrationService(
        local_store_factory=lambda: LocalDataStore(settings.local_database_url),
        cloud_store_factory=lambda: CloudDataStore(auth),
        auth=auth,
        connectivity=HttpConnectivityChecker(),
        mode_controller=BackendModeController(),
        settings=settings,
    )
