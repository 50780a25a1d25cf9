import httpx
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from coachsync.config import get_settings
from coachsync.exceptions import ConnectivityError, SessionExpiredError
from coachsync.utils.timestamps import utcnow

logger = logging.getLogger(__name__)

# Exceptions to retry on
RETRYABLE_EXCEPTIONS = (
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.ConnectError,
    httpx.RemoteProtocolError,
)


@dataclass
class Session:
    access_token: str
    user_id: str
    refresh_token: str | None = None
    expires_at: datetime | None = None

    def is_expired(self, leeway_seconds: int = 60) -> bool:
        if self.expires_at is None:
            return False
        return utcnow() + timedelta(seconds=leeway_seconds) >= self.expires_at


class AuthService(ABC):
    """Collaborator contract: hand out a valid session or fail definitively."""

    @abstractmethod
    async def refresh_session(self) -> Session:
        """Return a fresh session or raise SessionExpiredError."""

    async def get_session(self) -> Session:
        return await self.refresh_session()


class HttpAuthService(AuthService):
    """Refresh-token based session service for the cloud backend."""

    def __init__(
        self,
        base_url: str | None = None,
        refresh_token: str | None = None,
        timeout: float | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.auth_base_url).rstrip("/")
        self.refresh_token = refresh_token if refresh_token is not None else settings.auth_refresh_token
        self.timeout = timeout or settings.http_timeout_seconds
        self.session: Session | None = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _make_request(self, method: str, url: str, json: dict | None = None) -> httpx.Response:
        """
        Make an HTTP request with automatic retry on transient failures.

        Retries up to 3 times with exponential backoff on connection
        timeouts, read timeouts and connection errors.
        """
        async with httpx.AsyncClient(follow_redirects=True) as client:
            response = await client.request(method, url, json=json, timeout=self.timeout)
            response.raise_for_status()
            return response

    async def refresh_session(self) -> Session:
        """Exchange the refresh token for a new access token."""
        if not self.refresh_token:
            raise SessionExpiredError("No refresh token available. Please sign in again.")

        try:
            response = await self._make_request(
                "post",
                f"{self.base_url}/token?grant_type=refresh_token",
                json={"refresh_token": self.refresh_token},
            )
        except httpx.HTTPStatusError as e:
            logger.warning(f"Session refresh rejected: {e.response.status_code}")
            raise SessionExpiredError(
                "Your session has expired. Please sign in again and retry."
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"Session refresh failed: {e}")
            raise ConnectivityError(f"Could not reach the auth server: {e}") from e

        data = response.json()
        try:
            user_id = data["user"]["id"]
            access_token = data["access_token"]
        except (KeyError, TypeError) as e:
            raise SessionExpiredError("Auth server returned an invalid session.") from e

        self.refresh_token = data.get("refresh_token") or self.refresh_token
        expires_in = data.get("expires_in")
        self.session = Session(
            access_token=access_token,
            user_id=str(user_id),
            refresh_token=self.refresh_token,
            expires_at=utcnow() + timedelta(seconds=int(expires_in)) if expires_in else None,
        )
        logger.info("Auth session refreshed")
        return self.session

    async def get_session(self) -> Session:
        """Return the cached session, refreshing it when missing or about to expire."""
        if self.session is None or self.session.is_expired():
            return await self.refresh_session()
        return self.session
