"""Network reachability probe run before any migration touches a store."""
import httpx
import logging
from abc import ABC, abstractmethod

from coachsync.config import get_settings

logger = logging.getLogger(__name__)


class ConnectivityChecker(ABC):
    @abstractmethod
    async def is_online(self) -> bool:
        ...


class HttpConnectivityChecker(ConnectivityChecker):
    """Online means the cloud health endpoint answers at all (any status code)."""

    def __init__(self, url: str | None = None, timeout: float | None = None):
        settings = get_settings()
        self.url = url or settings.connectivity_check_url
        self.timeout = timeout or settings.connectivity_timeout_seconds

    async def is_online(self) -> bool:
        try:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                await client.request("head", self.url, timeout=self.timeout)
            return True
        except httpx.HTTPError as e:
            logger.warning(f"Connectivity check failed for {self.url}: {e}")
            return False


class StaticConnectivityChecker(ConnectivityChecker):
    """Fixed answer; for wiring without a network and for tests."""

    def __init__(self, online: bool = True):
        self.online = online

    async def is_online(self) -> bool:
        return self.online
