from typing import List, Optional
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        frozen=True,
        extra="ignore",
    )

    # Application Settings
    APP_NAME: str = "Metrics Gateway"
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # Compared verbatim against the X-API-Key header
    API_KEY: Optional[str] = None

    # ClickHouse Settings (host is the full HTTP interface URL)
    CLICKHOUSE_HOST: Optional[str] = None
    CLICKHOUSE_USER: Optional[str] = None
    CLICKHOUSE_PASSWORD: Optional[str] = None
    CLICKHOUSE_TIMEOUT_SECONDS: float = 8.0

    # Mock data is only served when both flags agree
    NODE_ENV: str = "production"
    USE_MOCK_DATA: bool = False

    # Fan-out Settings
    MAX_WORKERS: int = 4

    # Comma-separated list of allowed browser origins
    CORS_ORIGINS: str = ""

    @property
    def mock_mode(self) -> bool:
        return self.NODE_ENV == "development" and self.USE_MOCK_DATA

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


@lru_cache()
def get_settings():
    return Settings()
