"""
config.py
---------
Centralised configuration management for the schema migrator.

Loads settings from environment variables (with .env file support via
python-dotenv). Provides typed settings as frozen dataclasses so
configuration is immutable at runtime.

Environment::

    DB_DRIVER, DB_HOST, DB_PORT, DB_USER, DB_PASSWORD, DB_NAME, DB_PATH,
    DB_CHARSET, DB_CONNECT_TIMEOUT   → the "Default" connection
    DB_SETTINGS_FILE                 → extra connections + table mapping (JSON)
    SCHEMA_FILES                     → os.pathsep separated declaration files
    LOG_LEVEL, LOG_FILE              → logging
    API_HOST, API_PORT               → admin API

Design Decisions:
    * Using a dataclass with class-level defaults means the tool works
      "out of the box" without any .env file, while still allowing
      environment-based overrides for production deployments.
    * ``CONFIG`` is read by entry points only (CLI, API, logger).  Core
      classes receive connection settings and the table mapping explicitly.
    * An unreadable or malformed settings file is logged and ignored; the
      tool then runs with the Default connection only.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from models.settings import (
    DEFAULT_CONNECTION_NAME,
    ConnectionSettings,
    SettingsFile,
    load_settings_from_file,
)

_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(dotenv_path=_env_path)


def _default_connection() -> ConnectionSettings:
    port = os.getenv("DB_PORT")
    return ConnectionSettings(
        name=DEFAULT_CONNECTION_NAME,
        driver=os.getenv("DB_DRIVER", "mysql"),
        host=os.getenv("DB_HOST", "localhost"),
        port=int(port) if port else None,
        user=os.getenv("DB_USER", ""),
        password=os.getenv("DB_PASSWORD", ""),
        database=os.getenv("DB_NAME", ""),
        path=os.getenv("DB_PATH", ""),
        charset=os.getenv("DB_CHARSET", "utf8mb4"),
        connect_timeout=int(os.getenv("DB_CONNECT_TIMEOUT", "10")),
    )


def _settings_file() -> SettingsFile:
    path = os.getenv("DB_SETTINGS_FILE")
    try:
        return load_settings_from_file(Path(path) if path else None)
    except (OSError, ValueError) as exc:
        # Runs while CONFIG is built, before logger.py has set up its handlers
        logging.getLogger("schema_migrator.config").warning(
            "Ignoring settings file: %s", exc,
        )
        return SettingsFile()


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Connection registry and table mapping.

    The ``Default`` connection always comes from the ``DB_*`` variables; a
    ``Default`` entry in the settings file is ignored.
    """
    default: ConnectionSettings = field(default_factory=_default_connection)
    settings_file: SettingsFile = field(default_factory=_settings_file)

    @property
    def connections(self) -> dict[str, ConnectionSettings]:
        extra = {
            name: settings
            for name, settings in self.settings_file.connections.items()
            if name != DEFAULT_CONNECTION_NAME
        }
        return {DEFAULT_CONNECTION_NAME: self.default, **extra}

    @property
    def table_mapping(self):
        return self.settings_file.table_mapping


@dataclass(frozen=True)
class MigrationConfig:
    """Schema migration settings."""
    schema_files: tuple[Path, ...] = field(
        default_factory=lambda: tuple(
            Path(p) for p in os.getenv("SCHEMA_FILES", "").split(os.pathsep) if p.strip()
        )
    )
    log_level: str = field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper()
    )
    log_file: str | None = field(
        default_factory=lambda: os.getenv("LOG_FILE")  # None → log to stderr only
    )


@dataclass(frozen=True)
class ApiConfig:
    """Admin API settings."""
    host: str = field(default_factory=lambda: os.getenv("API_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("API_PORT", "8000")))


@dataclass(frozen=True)
class AppConfig:
    """Root application configuration."""
    db: DatabaseConfig = field(default_factory=DatabaseConfig)
    migration: MigrationConfig = field(default_factory=MigrationConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    app_name: str = "Schema Migrator"
    app_version: str = "1.0.0"


def load_config() -> AppConfig:
    """
    Build and return the application configuration.

    Returns:
        AppConfig: Fully populated (and frozen) configuration object.

    Example::

        cfg = load_config()
        print(cfg.db.connections["Default"].host)   # "localhost"
        print(cfg.db.table_mapping)                  # {"tx_ext_log": "Logging"}
    """
    return AppConfig()


# Module-level singleton used by the entry points
CONFIG: AppConfig = load_config()


def get_log_level() -> int:
    """Convert string log level from config to logging module constant."""
    level = getattr(logging, CONFIG.migration.log_level, None)
    if not isinstance(level, int):
        return logging.INFO
    return level
