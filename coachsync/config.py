from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Local embedded store
    local_database_url: str = "sqlite+aiosqlite:///./coachsync.db"

    # Cloud store (REST)
    cloud_api_base_url: str = "https://cloud.coachsync.local/api"
    http_timeout_seconds: float = 30.0

    # Auth session
    auth_base_url: str = "https://cloud.coachsync.local/auth/v1"
    auth_refresh_token: str = ""

    # Connectivity probe (HEAD request before any migration)
    connectivity_check_url: str = "https://cloud.coachsync.local/health"
    connectivity_timeout_seconds: float = 5.0

    # Migration tuning
    session_check_interval: int = 25  # re-validate session every N games
    max_failures_to_report: int = 5

    # Backend the app starts in ("local" or "cloud")
    default_backend_mode: str = "local"

    # CORS
    allowed_origins: str = "*"  # Comma-separated origins

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
