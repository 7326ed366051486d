"""
Configuration Management for Wallet Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WalletSettings(BaseSettings):
    """Wallet account defaults."""

    model_config = SettingsConfigDict(
        env_prefix="WALLET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Unset by default: new wallets get no PIN until the owner sets one.
    default_pin: Optional[SecretStr] = Field(
        default=None,
        description="PIN seeded into newly created wallets (opt-in)"
    )
    min_pin_length: int = Field(
        default=4,
        ge=4,
        le=32,
        description="Minimum wallet PIN length"
    )
    recent_transactions_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="How many transactions the wallet view includes"
    )
    default_card_color: int = Field(
        default=0xFF3551A2,
        ge=0,
        description="ARGB color tag for cards added without one"
    )


class ForecastSettings(BaseSettings):
    """Forecasting and goal projection parameters."""

    model_config = SettingsConfigDict(
        env_prefix="FORECAST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    lookback_months: int = Field(
        default=12,
        ge=1,
        le=60,
        description="History window used to build monthly series"
    )
    min_transactions: int = Field(
        default=3,
        ge=1,
        description="Minimum qualifying transactions before predicting"
    )
    window_size: int = Field(
        default=3,
        ge=1,
        le=12,
        description="Number of trailing months in the moving average"
    )
    variation_low: float = Field(
        default=0.9,
        gt=0.0,
        description="Lower bound of the per-month variation factor"
    )
    variation_high: float = Field(
        default=1.1,
        gt=0.0,
        description="Upper bound of the per-month variation factor"
    )
    max_months: int = Field(
        default=12,
        ge=1,
        le=36,
        description="Largest forecast horizon a caller may ask for"
    )
    insights_lookback_months: int = Field(
        default=6,
        ge=1,
        le=24,
        description="History window for the financial insights summary"
    )

    @model_validator(mode='after')
    def validate_variation_bounds(self) -> 'ForecastSettings':
        """Variation bounds must form a non-empty interval."""
        if self.variation_low > self.variation_high:
            raise ValueError("variation_low cannot exceed variation_high")
        return self


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet for the transaction ledger"
    )
    wallets_sheet_name: str = Field(
        default="Wallets",
        description="Name of the sheet for wallet accounts"
    )
    goals_sheet_name: str = Field(
        default="SavingsGoals",
        description="Name of the sheet for savings goals"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


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
        description="Minimum level for structured logs"
    )

    storage_backend: Literal["memory", "google_sheets"] = Field(
        default="memory",
        description="Which storage implementation to wire up"
    )

    max_conflict_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a wallet mutation that hits a version conflict"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def wallet(self) -> WalletSettings:
        return WalletSettings()

    @property
    def forecast(self) -> ForecastSettings:
        return ForecastSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    groups = {
        "wallet": lambda: settings.wallet,
        "forecast": lambda: settings.forecast,
        "app": lambda: settings.app,
    }

    for name, load in groups.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    # Sheets credentials are only required when that backend is selected
    if results["app"] and settings.app.storage_backend == "google_sheets":
        try:
            _ = settings.google_sheets
            results["google_sheets"] = True
        except Exception as e:
            results["google_sheets"] = False
            results["google_sheets_error"] = str(e)

    return results
