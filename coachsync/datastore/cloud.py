"""
Cloud store adapter over the account's REST API.

Every call carries the bearer token of the current auth session; transient
transport failures are retried with exponential backoff.
"""
import httpx
import logging
from typing import Any

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from coachsync.config import get_settings
from coachsync.datastore.base import DataStore, Document
from coachsync.exceptions import (
    DataStoreError,
    SessionExpiredError,
    StoreNetworkError,
    StoreValidationError,
)
from coachsync.services.auth_client import AuthService

logger = logging.getLogger(__name__)

# Exceptions to retry on
RETRYABLE_EXCEPTIONS = (
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.ConnectError,
    httpx.RemoteProtocolError,
)


class CloudDataStore(DataStore):
    backend_name = "cloud"

    def __init__(self, auth: AuthService, base_url: str | None = None, timeout: float | None = None):
        settings = get_settings()
        self.auth = auth
        self.base_url = (base_url or settings.cloud_api_base_url).rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds
        self._client: httpx.AsyncClient | None = None

    async def initialize(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True, timeout=self.timeout)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _send(self, method: str, path: str, params: dict | None = None, json: Any = None) -> httpx.Response:
        if self._client is None:
            raise DataStoreError("Cloud store is not initialized")
        session = await self.auth.get_session()
        kwargs: dict[str, Any] = {
            "params": params,
            "headers": {"Authorization": f"Bearer {session.access_token}"},
        }
        if method != "get" and json is not None:
            kwargs["json"] = json
        return await self._client.request(method, f"{self.base_url}{path}", **kwargs)

    async def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json: Any = None,
        allow_not_found: bool = False,
    ) -> Any:
        """Send a request and translate transport/HTTP failures into store errors."""
        try:
            response = await self._send(method, path, params=params, json=json)
        except httpx.HTTPError as e:
            raise StoreNetworkError(f"{method.upper()} {path} failed: {e}") from e

        if response.status_code in (401, 403):
            logger.warning(f"{method.upper()} {path} rejected the session: {response.status_code}")
            raise SessionExpiredError("Your session is no longer valid. Please sign in again and retry.")
        if allow_not_found and response.status_code == 404:
            return None
        if response.status_code == 422:
            raise StoreValidationError(f"{method.upper()} {path} rejected: {response.text}")
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DataStoreError(
                f"{method.upper()} {path} failed with status {response.status_code}"
            ) from e

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def _put(self, path: str, doc: Document) -> Document:
        saved = await self._request("put", path, json=doc)
        return saved if isinstance(saved, dict) else doc

    # ==================== Entities ====================

    async def get_players(self) -> list[Document]:
        return await self._request("get", "/players") or []

    async def upsert_player(self, player: Document) -> Document:
        return await self._put(f"/players/{player['id']}", player)

    async def get_teams(self, include_deleted: bool = False) -> list[Document]:
        params = {"include_deleted": "true"} if include_deleted else None
        return await self._request("get", "/teams", params=params) or []

    async def upsert_team(self, team: Document) -> Document:
        return await self._put(f"/teams/{team['id']}", team)

    async def get_team_roster(self, team_id: str) -> list[Document]:
        data = await self._request("get", f"/teams/{team_id}/roster", allow_not_found=True)
        return (data or {}).get("entries", [])

    async def set_team_roster(self, team_id: str, roster: list[Document]) -> None:
        await self._request("put", f"/teams/{team_id}/roster", json={"entries": roster})

    async def get_seasons(self, apply_migrations: bool = False) -> list[Document]:
        return await self._request("get", "/seasons") or []

    async def upsert_season(self, season: Document) -> Document:
        return await self._put(f"/seasons/{season['id']}", season)

    async def get_tournaments(self, apply_migrations: bool = False) -> list[Document]:
        return await self._request("get", "/tournaments") or []

    async def upsert_tournament(self, tournament: Document) -> Document:
        return await self._put(f"/tournaments/{tournament['id']}", tournament)

    async def get_all_personnel(self) -> list[Document]:
        return await self._request("get", "/personnel") or []

    async def upsert_personnel_member(self, member: Document) -> Document:
        return await self._put(f"/personnel/{member['id']}", member)

    async def get_games(self) -> dict[str, Document]:
        data = await self._request("get", "/games") or []
        if isinstance(data, dict):
            return data
        return {game["id"]: game for game in data}

    async def save_game(self, game_id: str, game: Document) -> Document:
        return await self._put(f"/games/{game_id}", game)

    async def get_player_adjustments(self, player_id: str) -> list[Document]:
        return await self._request("get", f"/players/{player_id}/adjustments") or []

    async def get_all_player_adjustments(self) -> dict[str, list[Document]]:
        grouped: dict[str, list[Document]] = {}
        for adjustment in await self._request("get", "/adjustments") or []:
            grouped.setdefault(adjustment.get("player_id"), []).append(adjustment)
        return grouped

    async def upsert_player_adjustment(self, adjustment: Document) -> Document:
        return await self._put(f"/adjustments/{adjustment['id']}", adjustment)

    async def get_warmup_plan(self) -> Document | None:
        return await self._request("get", "/warmup-plan", allow_not_found=True)

    async def save_warmup_plan(self, plan: Document) -> None:
        await self._request("put", "/warmup-plan", json=plan)

    async def get_settings(self) -> Document | None:
        return await self._request("get", "/settings", allow_not_found=True)

    async def save_settings(self, settings: Document) -> None:
        await self._request("put", "/settings", json=settings)

    async def clear_all_user_data(self) -> None:
        await self._request("delete", "/user-data")
        logger.info("Cleared all cloud user data")
