"""Configuration package."""

from wallet_ledger.config.settings import (
    AppSettings,
    ForecastSettings,
    GoogleSheetsSettings,
    Settings,
    WalletSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ForecastSettings",
    "GoogleSheetsSettings",
    "Settings",
    "WalletSettings",
    "get_settings",
    "validate_all_settings",
]
