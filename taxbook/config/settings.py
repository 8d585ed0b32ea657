"""
Configuration Management for Taxbook

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The reconciliation engine itself never reads settings; the review workflow
turns them into MatchingRules and passes those in. This keeps the engine a
pure function of its arguments.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReconciliationSettings(BaseSettings):
    """Duplicate-detection thresholds."""

    model_config = SettingsConfigDict(
        env_prefix="RECONCILIATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    likely_threshold: float = Field(
        default=0.80,
        gt=0.0,
        lt=1.0,
        description="Minimum description similarity for a LIKELY match"
    )
    tolerance_rate: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        le=1,
        description="Relative amount tolerance for a POSSIBLE match (0.01 = 1%)"
    )
    tolerance_floor: Decimal = Field(
        default=Decimal("1.00"),
        ge=0,
        description="Absolute amount tolerance floor in currency units"
    )
    dedupe_against_resolved: bool = Field(
        default=True,
        description="Skip pairs that already have a confirmed or dismissed match"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for local structured logs"
    )

    # Desktop app: single local user unless told otherwise
    default_resolver: str = Field(
        default="local-user",
        min_length=1,
        description="Identity recorded when a resolution names no resolver"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Unsupported log level: {v}. Allowed: {sorted(allowed)}")
        return v.upper()


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def app(self) -> AppSettings:
        return AppSettings()

    @property
    def reconciliation(self) -> ReconciliationSettings:
        return ReconciliationSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, Any]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries for sections that failed to load.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("app", "reconciliation"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
