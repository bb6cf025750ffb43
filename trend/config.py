"""
Application configuration using Pydantic Settings
"""
import logging
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings loaded from environment variables (prefix TREND_) or .env
    """
    # Local persistence
    DATA_DIR: str = "data"

    # Category backend
    API_BASE_URL: str = "http://127.0.0.1:3001/api/v1"
    API_TIMEOUT: float = 10.0

    # Seconds before a stuck loading flag is reset
    LOADING_TIMEOUT: float = 10.0

    # 0 = Monday ... 6 = Sunday
    WEEK_START: int = 0

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="TREND_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance (singleton)
    """
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
