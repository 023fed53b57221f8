"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env file.
"""
from datetime import time
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SleeperSettings(BaseSettings):
    """Settings for the Sleeper fantasy API."""

    model_config = SettingsConfigDict(env_prefix="SLEEPER_")

    base_url: str = Field(
        default="https://api.sleeper.app/v1",
        description="Base URL for the Sleeper read-only API",
    )
    default_league_id: str = Field(
        default="1180507846524702720",
        description="League served when the request names no league",
    )
    cache_ttl_seconds: int = Field(
        default=60,
        description="How long Sleeper responses are reused before refetching",
    )
    timeout_seconds: float = Field(default=10.0)
    max_attempts: int = Field(default=3)


class BettingSettings(BaseSettings):
    """Settings for wager acceptance and FAAB balances."""

    model_config = SettingsConfigDict(env_prefix="BETTING_")

    timezone: str = Field(
        default="America/New_York",
        description="Reference time zone for the weekly lock window",
    )
    lock_weekday: int = Field(
        default=3,
        description="Weekday lines lock (Monday=0, Thursday=3)",
    )
    lock_time: time = Field(
        default=time(20, 20),
        description="Local time lines lock on lock_weekday",
    )
    reopen_weekday: int = Field(
        default=0,
        description="Weekday lines reopen at midnight",
    )
    default_balance: float = Field(
        default=100.0,
        description="FAAB balance granted to newly synced users",
    )
    max_bets_per_batch: int = Field(default=20)
    admin_token: Optional[str] = Field(
        default=None,
        description="Bearer token for settlement and export endpoints",
    )

    @field_validator("lock_weekday", "reopen_weekday")
    @classmethod
    def validate_weekday(cls, v: int) -> int:
        if not 0 <= v <= 6:
            raise ValueError("weekday must be between 0 (Monday) and 6 (Sunday)")
        return v


class MarketSettings(BaseSettings):
    """Settings for the betting line generator."""

    model_config = SettingsConfigDict(env_prefix="MARKET_")

    baseline_points: float = Field(
        default=95.0,
        description="League-average points per game used when no history exists",
    )
    record_weight: float = Field(
        default=10.0,
        description="Rating points per unit of win percentage above .500",
    )
    differential_weight: float = Field(
        default=0.25,
        description="Rating points per point of average scoring margin",
    )
    early_season_weeks: int = Field(default=4)
    early_season_regression: float = Field(
        default=0.15,
        description="Share of a rating pulled toward the league average early on",
    )
    logistic_scale: float = Field(
        default=10.0,
        description="Spread points per logistic unit when pricing moneylines",
    )
    hold: float = Field(
        default=0.0476,
        description="Bookmaker margin added across both sides of a moneyline",
    )
    max_spread: float = Field(default=45.0)
    max_favorite_probability: float = Field(default=0.97)


class SchedulerSettings(BaseSettings):
    """Settings for job scheduler."""

    model_config = SettingsConfigDict(env_prefix="")

    scheduler_enabled: bool = Field(default=True)
    settlement_weekday: str = Field(
        default="tue",
        description="Day the previous week's bets are settled",
    )
    settlement_hour: int = Field(
        default=4,
        description="Hour to run settlement (24-hour format, Eastern)",
    )
    cache_warm_interval_minutes: int = Field(
        default=10,
        description="Minutes between Sleeper cache refreshes",
    )
    health_check_interval_minutes: int = Field(
        default=5,
        description="Minutes between Sleeper health probes",
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///tavern.db",
        description="Database connection URL",
    )

    # Multi-tenant routing
    base_domain: str = Field(
        default="fantasytavern.com",
        description="Apex domain; league sites live on its subdomains",
    )

    # Logging
    log_level: str = Field(default="INFO")
    debug: bool = Field(default=False)

    # Sub-settings
    sleeper: SleeperSettings = Field(default_factory=SleeperSettings)
    betting: BettingSettings = Field(default_factory=BettingSettings)
    market: MarketSettings = Field(default_factory=MarketSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()

    @property
    def project_root(self) -> Path:
        """Get project root directory."""
        return Path(__file__).parent.parent.parent


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
