"""
core/router.py
--------------
Resolves which logical connection is responsible for a table.

Design Decisions:
    * The router is built from an explicitly injected table mapping and the
      set of configured connection names; it never reads global config.
    * Configuration problems never raise.  A malformed mapping, a table
      mapped to an unknown connection, or an unmapped table all resolve to the
      default connection, and malformed input is logged as a warning.
"""
from __future__ import annotations

from typing import Any, Iterable

from logger import get_logger

log = get_logger(__name__)


class ConnectionRouter:
    """
    ``table name → connection name`` lookup.

    Args:
        table_mapping:      ``{"tx_ext_log": "Logging", ...}`` as configured.
        connection_names:   Names of all configured connections.
        default_connection: Connection that owns every unmapped table.

    Example::

        router = ConnectionRouter({"onlyTable": "extra"}, ["Default", "extra"])
        router.connection_for("onlyTable")   # "extra"
        router.connection_for("pages")       # "Default"
    """

    def __init__(
        self,
        table_mapping: Any,
        connection_names: Iterable[str],
        default_connection: str = "Default",
    ) -> None:
        self.default_connection = default_connection
        self.connection_names = set(connection_names) | {default_connection}
        self._mapping = self._validated(table_mapping)

    def _validated(self, table_mapping: Any) -> dict[str, str]:
        if table_mapping is None:
            return {}
        if not isinstance(table_mapping, dict):
            log.warning(
                "Ignoring table mapping of type %s; expected a table → connection mapping.",
                type(table_mapping).__name__,
            )
            return {}

        mapping: dict[str, str] = {}
        for table, connection in table_mapping.items():
            if not isinstance(table, str) or not isinstance(connection, str):
                log.warning("Ignoring malformed table mapping entry %r → %r.", table, connection)
                continue
            if connection not in self.connection_names:
                log.warning(
                    "Table '%s' is mapped to unknown connection '%s'; using '%s'.",
                    table, connection, self.default_connection,
                )
                continue
            mapping[table] = connection
        return mapping

    @property
    def has_mapping(self) -> bool:
        """True when at least one table is explicitly routed."""
        return bool(self._mapping)

    @property
    def table_mapping(self) -> dict[str, str]:
        return dict(self._mapping)

    def connection_for(self, table_name: str) -> str:
        return self._mapping.get(table_name, self.default_connection)

    def tables_for(self, connection_name: str) -> list[str]:
        """Tables explicitly mapped to *connection_name*, in configuration order."""
        return [t for t, c in self._mapping.items() if c == connection_name]

    def is_default(self, connection_name: str) -> bool:
        return connection_name == self.default_connection
