"""
Active backend selection ("local" or "cloud") and cloud account bookkeeping.

The reverse migration switches the app to local mode only after a verified
download, and before any cloud deletion is attempted.
"""
import logging
from dataclasses import dataclass
from datetime import datetime

from coachsync.config import get_settings
from coachsync.utils.timestamps import utcnow

logger = logging.getLogger(__name__)

BACKEND_LOCAL = "local"
BACKEND_CLOUD = "cloud"


@dataclass
class ModeSwitchResult:
    success: bool
    message: str | None = None


@dataclass
class CloudAccountInfo:
    has_cloud_data: bool = False
    last_synced_at: datetime | None = None


class BackendModeController:
    def __init__(self, mode: str | None = None):
        self.mode = mode or get_settings().default_backend_mode
        self.cloud_account: CloudAccountInfo | None = None

    def disable_cloud_mode(self) -> ModeSwitchResult:
        self.mode = BACKEND_LOCAL
        logger.info("Backend mode switched to local")
        return ModeSwitchResult(success=True)

    def update_cloud_account_info(self, has_cloud_data: bool) -> bool:
        self.cloud_account = CloudAccountInfo(
            has_cloud_data=has_cloud_data, last_synced_at=utcnow()
        )
        return True

    def clear_cloud_account_info(self) -> None:
        self.cloud_account = None
