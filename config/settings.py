"""
Configuration settings for the Super Odds Monitor.
Uses pydantic-settings for validation and environment variable loading.
"""

from enum import Enum

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogFormat(str, Enum):
    """Log output format."""
    JSON = "json"
    CONSOLE = "console"


class SiteSettings(BaseModel):
    """One monitored site."""

    key: str
    name: str
    feed_url: str = ""
    enabled: bool = True


def _default_sites() -> list[SiteSettings]:
    # Sites ship disabled until a feed URL is configured through SITES
    return [
        SiteSettings(key="betesporte", name="BetEsporte", enabled=False),
        SiteSettings(key="br4bet", name="Br4bet", enabled=False),
        SiteSettings(key="lotogreen", name="Lotogreen", enabled=False),
    ]


class AlertSettings(BaseSettings):
    """Alert delivery and escalation settings."""

    model_config = SettingsConfigDict(env_prefix="ALERTS__", extra="ignore")

    webhook_timeout_seconds: float = 10.0
    reconnect_delay_seconds: float = 5.0

    # Odds that meet either threshold also get an individual alert
    escalation_min_odd: float = 3.0
    escalation_min_freebet: float = 50.0


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        populate_by_name=True,
        extra="ignore",
    )

    # Scheduling
    interval_minutes: int = Field(
        default=5,
        ge=1,
        validation_alias=AliasChoices("interval_minutes", "scraping_interval_minutes"),
    )
    max_retries: int = Field(default=3, ge=1, description="Feed request attempts per scrape")
    timeout_ms: int = Field(default=30_000, ge=1)
    source_delay_seconds: float = Field(default=2.0, ge=0.0, description="Pause between sources")
    stats_interval_minutes: int = 30

    # Alert targets (empty disables the channel)
    webhook_url: str = ""
    stream_url: str = Field(
        default="",
        validation_alias=AliasChoices("stream_url", "websocket_url"),
    )
    monitor_name: str = Field(default="superodds-monitor", description="Alert payload source tag")

    # Logging
    log_level: str = "INFO"
    log_format: LogFormat = LogFormat.JSON

    # Sub-settings
    alerts: AlertSettings = Field(default_factory=AlertSettings)
    sites: list[SiteSettings] = Field(default_factory=_default_sites)

    @field_validator("sites")
    @classmethod
    def _unique_site_keys(cls, sites: list[SiteSettings]) -> list[SiteSettings]:
        keys = [site.key for site in sites]
        if len(keys) != len(set(keys)):
            raise ValueError("site keys must be unique")
        return sites


# Global settings instance
settings = Settings()
