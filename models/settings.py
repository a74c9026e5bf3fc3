"""
models/settings.py
------------------
Typed data models for connection settings and the table → connection mapping.

Settings file format (JSON)::

    {
        "connections": {
            "Logging": {"driver": "mysql", "host": "db2", "port": 3306,
                        "user": "app", "password": "...", "database": "logs"}
        },
        "table_mapping": {"tx_ext_log": "Logging"}
    }

Design Decision:
    Using ``@dataclass`` instead of plain dicts gives a single source of truth
    for valid settings keys, with explicit to_dict / from_dict methods.
    ``to_dict`` never includes the password, so settings can be logged or
    returned from the API safely.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_CONNECTION_NAME = "Default"

_DEFAULT_PORTS = {"mysql": 3306, "mariadb": 3306, "postgresql": 5432, "postgres": 5432, "pgsql": 5432}


@dataclass(frozen=True)
class ConnectionSettings:
    """
    Settings of one logical database connection.

    Attributes:
        name:     Logical connection name (``Default``, ``Logging``, ...).
        driver:   Platform / driver name resolved by ``core.platform``.
        database: Database (schema) name; unused for SQLite.
        path:     Database file for SQLite.
    """
    name: str
    driver: str = "mysql"
    host: str = "localhost"
    port: int | None = None
    user: str = ""
    password: str = field(default="", repr=False)
    database: str = ""
    path: str = ""
    charset: str = "utf8mb4"
    connect_timeout: int = 10

    @property
    def effective_port(self) -> int | None:
        return self.port or _DEFAULT_PORTS.get(self.driver.lower())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (without password)."""
        return {
            "name": self.name,
            "driver": self.driver,
            "host": self.host,
            "port": self.effective_port,
            "user": self.user,
            "database": self.database,
            "path": self.path,
            "charset": self.charset,
            "connect_timeout": self.connect_timeout,
        }

    @staticmethod
    def from_dict(name: str, data: dict[str, Any]) -> "ConnectionSettings":
        port = data.get("port")
        return ConnectionSettings(
            name=name,
            driver=str(data.get("driver", "mysql")),
            host=str(data.get("host", "localhost")),
            port=int(port) if port not in (None, "") else None,
            user=str(data.get("user", "")),
            password=str(data.get("password", "")),
            database=str(data.get("database", data.get("dbname", ""))),
            path=str(data.get("path", "")),
            charset=str(data.get("charset", "utf8mb4")),
            connect_timeout=int(data.get("connect_timeout", 10)),
        )


@dataclass(frozen=True)
class SettingsFile:
    """Parsed content of the JSON settings file."""
    connections: dict[str, ConnectionSettings] = field(default_factory=dict)
    table_mapping: Any = field(default_factory=dict)


def load_settings_from_file(path: Path | None) -> SettingsFile:
    """
    Load additional connections and the table mapping from a JSON file.

    The table mapping is returned as found; validating it is the router's
    job, which falls back to the default connection instead of failing.

    Args:
        path: Path to the JSON settings file, or None.

    Returns:
        A :class:`SettingsFile`.  Empty if *path* is None or absent.

    Raises:
        ValueError: If the file contains invalid JSON or is not an object.
    """
    if path is None or not path.exists():
        return SettingsFile()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in settings file '{path}': {exc}") from exc
    if not isinstance(raw, dict):
        raise ValueError(f"Settings file '{path}' must contain a JSON object.")

    connections = {
        name: ConnectionSettings.from_dict(name, data)
        for name, data in (raw.get("connections") or {}).items()
        if isinstance(data, dict)
    }
    return SettingsFile(connections=connections, table_mapping=raw.get("table_mapping", {}))
