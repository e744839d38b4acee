"""Client configuration from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Client settings loaded from ``ERP_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ERP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # App
    APP_NAME: str = "ERP Console"
    DEBUG: bool = False

    # Backend
    API_BASE_URL: str = "http://localhost:5000"
    API_TOKEN: Optional[str] = None
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # Query cache
    QUERY_RETRY_COUNT: int = 3
    QUERY_RETRY_DELAY_SECONDS: float = 1.0
    PROFILE_STALE_SECONDS: float = 60.0

    # Redis (optional, shares the session cache between CLI runs)
    REDIS_URL: Optional[str] = None
    CACHE_NAMESPACE: str = "erp_console"

    # Permissions
    ADMIN_ROLE_NAME: str = "administrator"


settings = Settings()
