"""Configuration package."""

from expenseai.config.settings import (
    AppSettings,
    AuthSettings,
    GeminiSettings,
    MongoSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "AuthSettings",
    "GeminiSettings",
    "MongoSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
