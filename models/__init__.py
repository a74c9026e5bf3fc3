"""models/__init__.py"""
from models.settings import (
    DEFAULT_CONNECTION_NAME,
    ConnectionSettings,
    SettingsFile,
    load_settings_from_file,
)

__all__ = [
    "DEFAULT_CONNECTION_NAME",
    "ConnectionSettings",
    "SettingsFile",
    "load_settings_from_file",
]
