"""
Configuration Management for CashFlow Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The remote endpoint URL may also arrive later from the config endpoint,
so nothing in here is strictly required to start a session.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Ledger storage and remote sync configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    endpoint_url: Optional[str] = Field(
        default=None,
        description="Spreadsheet webhook URL (overridden by the config endpoint)"
    )
    config_url: Optional[str] = Field(
        default=None,
        description="URL of the config endpoint returning {endpoint_url}"
    )
    data_dir: Path = Field(
        default=Path(".cashflow"),
        description="Directory holding the local persistence slots"
    )

    # Sync timings
    poll_interval_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Background pull period"
    )
    reconcile_delay_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Delay before re-pulling after a push"
    )
    status_display_seconds: float = Field(
        default=3.0,
        ge=0,
        description="How long success/error status stays visible"
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="HTTP request timeout"
    )
    fetch_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per pull before it is reported as failed"
    )

    # Seed parties for a fresh install
    default_parties: str = Field(
        default="Abhishek,Abhinav",
        description="Comma-separated party names created on first start"
    )

    @field_validator("endpoint_url", "config_url")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty env vars as unset."""
        if v is not None and not v.strip():
            return None
        return v

    @property
    def default_parties_list(self) -> list[str]:
        """Get seed party names as a list."""
        return [name.strip() for name in self.default_parties.split(",") if name.strip()]


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Optional: a missing key only disables insights
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "API_KEY"),
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Model temperature"
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


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

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )


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
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with an extra
    "<name>_error" entry for anything that failed.
    """
    results = {}

    settings = get_settings()

    try:
        ledger = settings.ledger
        results["ledger"] = True
        results["remote_sync"] = bool(ledger.endpoint_url or ledger.config_url)
        if not results["remote_sync"]:
            results["remote_sync_error"] = "No endpoint or config URL configured"
    except Exception as e:
        results["ledger"] = False
        results["ledger_error"] = str(e)
        results["remote_sync"] = False

    try:
        gemini = settings.gemini
        results["gemini"] = gemini.is_configured
        if not gemini.is_configured:
            results["gemini_error"] = "GEMINI_API_KEY is missing"
    except Exception as e:
        results["gemini"] = False
        results["gemini_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
