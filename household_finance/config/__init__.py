"""Configuration package."""

from household_finance.config.settings import (
    SUPPORTED_LOCALES,
    AppSettings,
    GoogleSheetsSettings,
    Settings,
    WorkspaceSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "SUPPORTED_LOCALES",
    "AppSettings",
    "GoogleSheetsSettings",
    "Settings",
    "WorkspaceSettings",
    "get_settings",
    "validate_all_settings",
]
