"""Application configuration.

Configuration is loaded from environment variables using pydantic-settings.
Credentials must be provided via environment variables (or a local `.env`
file), never committed config files.

## Required Environment Variables

- BMV_USERNAME / BMV_PASSWORD: Basic auth credentials for the BMV data service
- KM_USERNAME / KM_PASSWORD: Konzertmeister login (mail address and password)
- AUTH_TOKEN: Bearer token protecting the `/sync` endpoint

## Optional Environment Variables

- OPENAI_API_KEY: Enables LLM category classification (otherwise the first
  category of each list is used)
- KNOWN_LOOKBACK: How far back existing BMV activities are fetched
  (default: 365 days, ISO 8601 duration such as `P365D`)
- SYNC_DEBUG_LIMIT: Cap the number of new appointments per HTTP-triggered run
- LOG_LEVEL: Root log level for the CLI (default: INFO)

## Example .env file

```
BMV_USERNAME=verein-user
BMV_PASSWORD=secret
KM_USERNAME=kapellmeister@example.com
KM_PASSWORD=secret
AUTH_TOKEN=a-long-random-token
OPENAI_API_KEY=sk-...
```
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Instances are frozen: build once at process start and pass the object
    to the collaborators that need it.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Application
    app_name: str = "Konzertmeister to BMV Sync"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    auth_token: str = Field(
        ...,
        min_length=8,
        description="Bearer token required by the /sync endpoint",
    )

    # BMV data service
    bmv_base_url: str = "https://api.vbv-blasmusik.at/api/"
    bmv_username: str = Field(..., min_length=1)
    bmv_password: str = Field(..., min_length=1)
    bmv_timeout_seconds: float = Field(default=60.0, gt=0)

    # Konzertmeister
    km_base_url: str = "https://rest.konzertmeister.app/"
    km_username: str = Field(..., min_length=1, description="Login mail address")
    km_password: str = Field(..., min_length=1)
    km_locale: str = "de_US"
    km_timezone_id: str = "Europe/Vienna"
    km_timeout_seconds: float = Field(default=60.0, gt=0)
    km_max_pages: int = Field(default=200, ge=1)

    # Category classification
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1/"
    openai_model: str = "gpt-4o-mini"
    classifier_timeout_seconds: float = Field(default=30.0, gt=0)
    classifier_max_concurrency: int = Field(default=4, ge=1, le=64)

    # Record defaults for new BMV activities
    organization_id: int = 236
    rehearsal_group_id: str = "620C0A8B-FBAF-4E3F-B622-40501D54732C"
    default_ensemble: str = "alle aktiven Musiker/innen"
    local_timezone: str = "Europe/Vienna"

    # Sync
    known_lookback: timedelta = Field(
        default=timedelta(days=365),
        description="Window of existing BMV activities scanned for KM_ID tags",
    )
    sync_debug_limit: int | None = Field(
        default=None,
        ge=1,
        description="Cap new appointments per HTTP-triggered run (manual verification)",
    )

    @field_validator("bmv_base_url", "km_base_url", "openai_base_url")
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        """Relative request paths are joined onto the base URL."""
        return v if v.endswith("/") else f"{v}/"

    @field_validator("local_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown time zone: {v}") from e
        return v

    @field_validator("known_lookback")
    @classmethod
    def validate_lookback(cls, v: timedelta) -> timedelta:
        if v <= timedelta(0):
            raise ValueError("known_lookback must be positive")
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        """Time zone used for the HH:MM fields of new activities."""
        return ZoneInfo(self.local_timezone)

    @property
    def classifier_configured(self) -> bool:
        """Check if LLM classification is configured."""
        return bool(self.openai_api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are loaded once and cached. To reload, clear the cache:
    ```python
    get_settings.cache_clear()
    ```
    """
    return Settings()
