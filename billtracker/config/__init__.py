"""Configuration package."""

from billtracker.config.settings import (
    AuthSettings,
    BillsSettings,
    DatabaseSettings,
    LoggingSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AuthSettings",
    "BillsSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
