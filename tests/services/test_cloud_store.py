from unittest.mock import AsyncMock, patch

import httpx
import pytest

from coachsync.datastore.cloud import CloudDataStore
from coachsync.exceptions import DataStoreError, SessionExpiredError, StoreNetworkError, StoreValidationError
from tests.helpers import FakeAuthService

BASE_URL = "https://cloud.test/api"


def response(status_code: int, method: str = "GET", path: str = "/", **kwargs) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request(method, f"{BASE_URL}{path}"), **kwargs)


@pytest.fixture
async def store():
    store = CloudDataStore(FakeAuthService(), base_url=BASE_URL)
    await store.initialize()
    yield store
    await store.close()


@pytest.mark.asyncio
class TestCloudDataStore:
    async def test_get_sends_bearer_token_and_no_body(self, store):
        with patch(
            "coachsync.datastore.cloud.httpx.AsyncClient.request",
            new=AsyncMock(return_value=response(200, json=[{"id": "p1", "name": "Alice"}])),
        ) as request_mock:
            players = await store.get_players()

        assert players == [{"id": "p1", "name": "Alice"}]
        args, kwargs = request_mock.call_args
        assert args == ("get", f"{BASE_URL}/players")
        assert kwargs["headers"]["Authorization"] == "Bearer test-token"
        assert "json" not in kwargs

    async def test_put_sends_document(self, store):
        player = {"id": "p1", "name": "Alice"}

        with patch(
            "coachsync.datastore.cloud.httpx.AsyncClient.request",
            new=AsyncMock(return_value=response(204, method="PUT")),
        ) as request_mock:
            saved = await store.upsert_player(player)

        assert saved == player
        _, kwargs = request_mock.call_args
        assert kwargs["json"] == player

    async def test_archived_teams_are_requested_explicitly(self, store):
        with patch(
            "coachsync.datastore.cloud.httpx.AsyncClient.request",
            new=AsyncMock(return_value=response(200, json=[])),
        ) as request_mock:
            await store.get_teams(include_deleted=True)

        _, kwargs = request_mock.call_args
        assert kwargs["params"] == {"include_deleted": "true"}

    async def test_missing_singleton_is_none(self, store):
        with patch(
            "coachsync.datastore.cloud.httpx.AsyncClient.request",
            new=AsyncMock(return_value=response(404)),
        ):
            assert await store.get_warmup_plan() is None

    async def test_games_list_is_keyed_by_id(self, store):
        with patch(
            "coachsync.datastore.cloud.httpx.AsyncClient.request",
            new=AsyncMock(return_value=response(200, json=[{"id": "g1"}, {"id": "g2"}])),
        ):
            games = await store.get_games()

        assert set(games) == {"g1", "g2"}

    async def test_validation_rejection(self, store):
        with patch(
            "coachsync.datastore.cloud.httpx.AsyncClient.request",
            new=AsyncMock(return_value=response(422, method="PUT", text="name required")),
        ):
            with pytest.raises(StoreValidationError):
                await store.upsert_player({"id": "p1"})

    @pytest.mark.parametrize("status_code", [401, 403])
    async def test_rejected_token_means_session_expired(self, store, status_code):
        with patch(
            "coachsync.datastore.cloud.httpx.AsyncClient.request",
            new=AsyncMock(return_value=response(status_code, method="PUT")),
        ):
            with pytest.raises(SessionExpiredError):
                await store.upsert_player({"id": "p1", "name": "Alice"})

    async def test_server_error(self, store):
        with patch(
            "coachsync.datastore.cloud.httpx.AsyncClient.request",
            new=AsyncMock(return_value=response(500)),
        ):
            with pytest.raises(DataStoreError):
                await store.get_seasons()

    async def test_transport_failure_is_retried_then_reported(self, store):
        request_mock = AsyncMock(side_effect=[httpx.ConnectTimeout("timeout"), response(200, json=[])])

        with patch("coachsync.datastore.cloud.httpx.AsyncClient.request", new=request_mock):
            personnel = await store.get_all_personnel()

        assert personnel == []

        assert request_mock.await_count == 2

    async def test_persistent_transport_failure_is_a_network_error(self, store):
        request_mock = AsyncMock(side_effect=httpx.ConnectError("no route"))

        with patch("coachsync.datastore.cloud.httpx.AsyncClient.request", new=request_mock):
            with pytest.raises(StoreNetworkError):
                await store.get_players()

    async def test_uninitialized_store_raises(self):
        store = CloudDataStore(FakeAuthService(), base_url=BASE_URL)

        with pytest.raises(DataStoreError):
            await store.get_players()
