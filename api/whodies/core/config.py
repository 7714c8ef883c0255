"""Application settings parsed from environment variables and defaults."""

import json
from functools import lru_cache
from typing import Annotated, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_QUEUE_NAMES = ["default", "ingestion"]


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    app_name: str = "Who Dies In This Movie API"
    environment: str = "development"
    api_prefix: str = "/api"

    database_url: str = "postgresql+asyncpg://whodies:whodies@db:5432/whodies"
    test_database_url: Optional[str] = None

    tmdb_api_key: Optional[str] = None
    tmdb_api_auth_header: Optional[str] = None
    tmdb_region: str = "US"
    tmdb_language: str = "en-US"
    tmdb_timeout_seconds: float = 15.0
    tmdb_max_attempts: int = 3
    tmdb_backoff_seconds: Annotated[list[float], NoDecode] = Field(default_factory=lambda: [2.0, 4.0, 8.0])

    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    llm_extraction_timeout_seconds: float = 30.0
    llm_validation_timeout_seconds: float = 5.0
    llm_max_attempts: int = 5
    llm_backoff_seconds: Annotated[list[float], NoDecode] = Field(default_factory=lambda: [2.0, 4.0, 8.0, 16.0, 32.0])

    scrape_timeout_seconds: float = 15.0
    scrape_delay_seconds: float = 0.5
    scraper_user_agent: str = "WDITMBot/1.0 (contact@whodiesinthismovie.com; movie death data research)"
    # Both heuristics were tuned by hand against real pages.
    disambiguation_window_chars: int = 2500
    enrichment_min_ratio: float = 0.8

    failure_reason_max_length: int = 500
    max_query_length: int = 200
    poll_interval_seconds: int = 900
    event_retry_budget: int = 3
    event_retry_backoff_seconds: Annotated[list[float], NoDecode] = Field(default_factory=lambda: [5.0, 15.0, 30.0])
    ingestion_job_timeout_seconds: int = 600
    cron_secret: Optional[str] = None

    log_level: str = "INFO"
    redis_url: str = "redis://redis:6379/0"
    ingestion_queue_name: str = "ingestion"
    worker_queue_names: list[str] | str = Field(default_factory=lambda: DEFAULT_QUEUE_NAMES.copy())

    @field_validator("worker_queue_names", mode="before")
    @classmethod
    def _split_worker_queue_names(cls, value: str | list[str] | None) -> list[str]:
        """Normalize worker queue names from JSON, CSV, or list inputs."""
        if isinstance(value, list):
            cleaned = [item.strip() for item in value if isinstance(item, str) and item.strip()]
            if cleaned:
                return cleaned
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return DEFAULT_QUEUE_NAMES.copy()
            try:
                parsed = json.loads(stripped)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, list):
                cleaned = [str(item).strip() for item in parsed if str(item).strip()]
                if cleaned:
                    return cleaned
            names = [item.strip() for item in stripped.split(",") if item.strip()]
            if names:
                return names
        return DEFAULT_QUEUE_NAMES.copy()

    @field_validator("tmdb_backoff_seconds", "llm_backoff_seconds", "event_retry_backoff_seconds", mode="before")
    @classmethod
    def _split_backoff(cls, value: str | list[float] | None) -> list[float]:
        """Accept backoff schedules as JSON arrays or comma-separated seconds."""
        if isinstance(value, str):
            stripped = value.strip()
            try:
                parsed = json.loads(stripped)
            except json.JSONDecodeError:
                parsed = [item for item in stripped.split(",") if item.strip()]
            if not isinstance(parsed, list):
                parsed = [parsed]
            return [float(item) for item in parsed]
        return value or []

    @property
    def generation_configured(self) -> bool:
        return bool(self.gemini_api_key)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """Return cached settings to avoid re-parsing environment variables."""
    return Settings()


settings = get_settings()
