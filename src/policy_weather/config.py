"""Typed settings loader for the policy weather analyzer."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import AnyUrl, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigError


class Settings(BaseSettings):
    """Application settings loaded from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    app_env: Literal["dev", "staging", "prod"] = Field(default="dev", alias="APP_ENV")

    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY", repr=False)
    openai_base_url: AnyUrl = Field(
        default=AnyUrl("https://api.openai.com/v1"),
        alias="OPENAI_BASE_URL",
    )
    openai_model: str = Field(default="gpt-4o", alias="OPENAI_MODEL")
    openai_timeout_seconds: float = Field(default=30.0, alias="OPENAI_TIMEOUT_SECONDS")
    openai_search_temperature: float = Field(default=0.7, alias="OPENAI_SEARCH_TEMPERATURE")
    openai_search_max_tokens: int = Field(default=1000, alias="OPENAI_SEARCH_MAX_TOKENS")
    openai_vision_temperature: float = Field(default=0.1, alias="OPENAI_VISION_TEMPERATURE")
    openai_vision_max_tokens: int = Field(default=1000, alias="OPENAI_VISION_MAX_TOKENS")

    noaa_api_key: str | None = Field(default=None, alias="NOAA_API_KEY", repr=False)
    noaa_storm_events_url: str = Field(
        default="https://www.ncdc.noaa.gov/stormevents/listevents.jsp",
        alias="NOAA_STORM_EVENTS_URL",
    )
    noaa_cdo_url: str = Field(
        default="https://www.ncdc.noaa.gov/cdo-web/api/v2/data",
        alias="NOAA_CDO_URL",
    )
    noaa_timeout_seconds: float = Field(default=15.0, alias="NOAA_TIMEOUT_SECONDS")
    noaa_user_agent: str = Field(
        default="policy-weather/0.1 (contact: claims@example.com)",
        alias="NOAA_USER_AGENT",
    )

    event_source_timeout_seconds: float = Field(
        default=45.0,
        alias="EVENT_SOURCE_TIMEOUT_SECONDS",
    )

    journal_dir: Path = Field(default=Path("./data/journal"), alias="JOURNAL_DIR")
    raw_payload_dir: Path = Field(default=Path("./data/raw"), alias="RAW_PAYLOAD_DIR")
    journal_raw_payloads: bool = Field(default=True, alias="JOURNAL_RAW_PAYLOADS")
    persist_events: bool = Field(default=False, alias="PERSIST_EVENTS")
    events_max_print: int = Field(default=20, alias="EVENTS_MAX_PRINT")

    @field_validator("openai_api_key", "noaa_api_key", mode="before")
    @classmethod
    def empty_string_to_none(cls, value: Any) -> Any:
        """Treat empty env-string values as unset credentials."""
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @model_validator(mode="after")
    def validate_ranges(self) -> Settings:
        """Validate timeouts, model parameters and URLs."""
        if not self.openai_model.strip():
            raise ValueError("OPENAI_MODEL must not be empty.")
        if self.openai_timeout_seconds <= 0:
            raise ValueError("OPENAI_TIMEOUT_SECONDS must be > 0.")
        if not (0 <= self.openai_search_temperature <= 2):
            raise ValueError("OPENAI_SEARCH_TEMPERATURE must be between 0 and 2.")
        if not (0 <= self.openai_vision_temperature <= 2):
            raise ValueError("OPENAI_VISION_TEMPERATURE must be between 0 and 2.")
        if self.openai_search_max_tokens <= 0:
            raise ValueError("OPENAI_SEARCH_MAX_TOKENS must be > 0.")
        if self.openai_vision_max_tokens <= 0:
            raise ValueError("OPENAI_VISION_MAX_TOKENS must be > 0.")
        for name, url in (
            ("NOAA_STORM_EVENTS_URL", self.noaa_storm_events_url),
            ("NOAA_CDO_URL", self.noaa_cdo_url),
        ):
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"{name} must be an http(s) URL.")
        if self.noaa_timeout_seconds <= 0:
            raise ValueError("NOAA_TIMEOUT_SECONDS must be > 0.")
        if not self.noaa_user_agent.strip():
            raise ValueError("NOAA_USER_AGENT must not be empty.")
        if self.event_source_timeout_seconds <= 0:
            raise ValueError("EVENT_SOURCE_TIMEOUT_SECONDS must be > 0.")
        if self.events_max_print <= 0:
            raise ValueError("EVENTS_MAX_PRINT must be > 0.")
        return self

    def safe_summary(self) -> dict[str, Any]:
        """Return config summary safe for journaling (no credentials)."""
        return {
            "app_env": self.app_env,
            "openai_base_url": str(self.openai_base_url),
            "openai_model": self.openai_model,
            "openai_configured": self.openai_api_key is not None,
            "openai_timeout_seconds": self.openai_timeout_seconds,
            "noaa_configured": self.noaa_api_key is not None,
            "noaa_timeout_seconds": self.noaa_timeout_seconds,
            "event_source_timeout_seconds": self.event_source_timeout_seconds,
            "raw_journaling": self.journal_raw_payloads,
            "persist_events": self.persist_events,
        }


def load_settings() -> Settings:
    """Load and validate settings, raising ConfigError on failure."""
    try:
        settings = Settings()
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed reading environment/.env: {exc}") from exc

    settings.journal_dir.mkdir(parents=True, exist_ok=True)
    settings.raw_payload_dir.mkdir(parents=True, exist_ok=True)
    return settings
