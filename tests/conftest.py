from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport

from coachsync.api.deps import get_migration_service
from coachsync.config import Settings
from coachsync.main import app
from coachsync.services.backend_mode import BACKEND_CLOUD, BackendModeController
from coachsync.services.connectivity import StaticConnectivityChecker
from coachsync.services.migration import MigrationService
from tests.helpers import FakeAuthService, FlakyStore, make_seed


# Note: Using pytest-asyncio's built-in event_loop fixture (asyncio_mode = auto)


@pytest.fixture
def seed_data() -> dict:
    return make_seed()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(session_check_interval=25, max_failures_to_report=5)


@pytest.fixture
def local_store(seed_data) -> FlakyStore:
    return FlakyStore(seed_data)


@pytest.fixture
def cloud_store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def auth() -> FakeAuthService:
    return FakeAuthService()


@pytest.fixture
def mode_controller() -> BackendModeController:
    return BackendModeController(mode=BACKEND_CLOUD)


@pytest.fixture
def migration_service(local_store, cloud_store, auth, mode_controller, test_settings) -> MigrationService:
    return MigrationService(
        local_store_factory=lambda: local_store,
        cloud_store_factory=lambda: cloud_store,
        auth=auth,
        connectivity=StaticConnectivityChecker(online=True),
        mode_controller=mode_controller,
        settings=test_settings,
    )


@pytest.fixture(scope="function")
async def client(migration_service) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with the migration service dependency overridden."""
    app.dependency_overrides[get_migration_service] = lambda: migration_service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
