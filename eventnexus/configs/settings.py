"""Centralized settings management for EventNexus."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from eventnexus.ingestion.deduplication import DeduplicationStrategy


class Settings(BaseSettings):
    """
    Application settings powered by pydantic-settings.

    Loads configuration from environment variables and a .env file located
    in the project root. Only the configuration layer reads these; plugins
    receive their values through ``PluginConfig``.
    """

    # -------------------------------------------------------------------------
    # ENVIRONMENT
    # -------------------------------------------------------------------------
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = False

    # -------------------------------------------------------------------------
    # INGESTION
    # -------------------------------------------------------------------------
    CYCLE_TIMEOUT_S: float = Field(default=120.0, gt=0)
    USER_AGENT: str | None = None
    LUMA_READER_URL: str | None = None
    DEDUP_STRATEGY: DeduplicationStrategy = DeduplicationStrategy.EXTERNAL_ID

    # -------------------------------------------------------------------------
    # SOURCE API KEYS
    # -------------------------------------------------------------------------
    EVENTBRITE_API_KEY: SecretStr | None = None
    MEETUP_API_KEY: SecretStr | None = None

    # -------------------------------------------------------------------------
    # PATHS
    # -------------------------------------------------------------------------
    # BASE_DIR points to the eventnexus package
    BASE_DIR: Path = Path(__file__).resolve().parents[1]

    PLUGINS_CONFIG_PATH: Path = BASE_DIR / "configs" / "plugins.yaml"

    # -------------------------------------------------------------------------
    # CONFIGURATION
    # -------------------------------------------------------------------------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        # Allow extra fields in .env but ignore them in the model
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns
    -------
    Settings
        The singleton settings instance.
    """
    return Settings()
