"""Application settings loaded from environment (and an optional .env file)."""

from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .clients.apify import DEFAULT_BASE_URL
from .orchestrator import MAX_POLL_ATTEMPTS, POLL_INTERVAL_S


class Settings(BaseSettings):
    """Connector settings. Defaults are safe for local development."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    apify_token: Optional[str] = Field(None, alias="APIFY_TOKEN")
    apify_base_url: str = Field(DEFAULT_BASE_URL, alias="APIFY_BASE_URL")
    apify_timeout_s: float = Field(20.0, alias="APIFY_TIMEOUT_S")
    poll_interval_s: float = Field(POLL_INTERVAL_S, alias="POLL_INTERVAL_S")
    max_poll_attempts: int = Field(MAX_POLL_ATTEMPTS, gt=0, alias="MAX_POLL_ATTEMPTS")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")
