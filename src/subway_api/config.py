"""Application configuration via environment variables."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Subway Feed Aggregator API"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"
    log_format: Literal["auto", "console", "json"] = "auto"

    # MTA GTFS-RT feeds
    mta_feed_base_url: str = Field(
        default="https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds",
        validation_alias=AliasChoices("MTA_FEED_BASE_URL", "FEED_BASE_URL"),
    )
    mta_api_key: str = Field(default="")
    enabled_feeds: str = Field(
        default="",
        description="Comma-separated feed ids to register. Empty registers all.",
    )

    # Feed cache / fetch
    feed_cache_ttl_sec: int = Field(
        default=30,
        ge=1,
        validation_alias=AliasChoices("FEED_CACHE_TTL_SEC", "CACHE_TTL_SECONDS"),
    )
    feed_fetch_timeout_sec: float = Field(default=10.0, gt=0)
    feed_fetch_max_retries: int = Field(default=1, ge=1, le=5)
    feed_fetch_backoff_base: float = 2.0
    serve_stale_on_error: bool = False

    # Station resolution
    station_stops_path: Optional[str] = None
    station_short_prefix_fallback: bool = True

    @property
    def enabled_feed_ids(self) -> list[str]:
        """Parse the enabled feed list, ignoring blanks."""
        return [part.strip() for part in self.enabled_feeds.split(",") if part.strip()]

    @property
    def feed_request_headers(self) -> dict[str, str]:
        """Headers sent with every feed request."""
        if not self.mta_api_key:
            return {}
        return {"x-api-key": self.mta_api_key}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
