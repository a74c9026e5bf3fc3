"""
core/connection_pool.py
-----------------------
Registry of the configured logical connections.

Design Decisions:
    * Connections are opened lazily on first use and reused afterwards; the
      caller that owns the pool closes everything with ``close_all()``.
    * The pool is built from explicit settings and an explicit table mapping.
      It never reads the global configuration itself.
    * Asking for a connection that is not configured is a
      ``ConfigurationError``.  Resolving a *table* to a connection never
      fails, because the router falls back to the default connection.
"""
from __future__ import annotations

from typing import Any, Callable

from core.database import DatabaseManager, create_database_manager
from core.errors import ConfigurationError
from core.router import ConnectionRouter
from logger import get_logger
from models.settings import DEFAULT_CONNECTION_NAME, ConnectionSettings

log = get_logger(__name__)


class ConnectionPool:
    """
    By-name access to :class:`DatabaseManager` instances.

    Args:
        connections:   ``{name: ConnectionSettings}``; must include the default.
        table_mapping: ``{table: connection name}`` as configured.
        factory:       Builds a manager from settings (injectable for tests).

    Example::

        pool = ConnectionPool(CONFIG.db.connections, CONFIG.db.table_mapping)
        db = pool.get_connection_for_table("tx_ext_log")
        ...
        pool.close_all()
    """

    def __init__(
        self,
        connections: dict[str, ConnectionSettings],
        table_mapping: Any = None,
        factory: Callable[[ConnectionSettings], DatabaseManager] = create_database_manager,
        default_connection_name: str = DEFAULT_CONNECTION_NAME,
    ) -> None:
        if default_connection_name not in connections:
            raise ConfigurationError(
                f"The default connection '{default_connection_name}' is not configured."
            )
        self._settings = dict(connections)
        self._factory = factory
        self._connections: dict[str, DatabaseManager] = {}
        self.default_connection_name = default_connection_name
        self.router = ConnectionRouter(table_mapping, self._settings, default_connection_name)

    @property
    def connection_names(self) -> list[str]:
        return list(self._settings)

    def get_settings(self, name: str) -> ConnectionSettings:
        try:
            return self._settings[name]
        except KeyError:
            raise ConfigurationError(
                f"Connection '{name}' is not configured. "
                f"Known connections: {', '.join(self._settings)}."
            ) from None

    def get_connection_by_name(self, name: str) -> DatabaseManager:
        """
        Return the (connected) manager for *name*, opening it on first use.

        Raises:
            ConfigurationError: If *name* is not configured.
            DatabaseError: If the connection cannot be opened.
        """
        if name in self._connections:
            return self._connections[name]
        manager = self._factory(self.get_settings(name))
        manager.connect()
        self._connections[name] = manager
        return manager

    def get_connection_for_table(self, table_name: str) -> DatabaseManager:
        return self.get_connection_by_name(self.router.connection_for(table_name))

    def close_all(self) -> None:
        for name, manager in self._connections.items():
            log.debug("Closing connection '%s'.", name)
            manager.close()
        self._connections.clear()
