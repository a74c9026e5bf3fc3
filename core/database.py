"""
core/database.py
----------------
Database connection management and query execution, one manager per driver.

    MySQLDatabaseManager       mysql-connector-python   (MySQL, MariaDB)
    PostgreSQLDatabaseManager  psycopg2
    SQLiteDatabaseManager      sqlite3

Design Decisions:
    * ``DatabaseManager`` is a context manager so callers can use it with
      ``with`` statements and be guaranteed the connection is closed on exit.
    * Retry logic is implemented for transient connection errors using
      linear back-off (configurable via ``max_retries`` / ``retry_delay``).
    * Driver exceptions never leak: they are wrapped in ``DatabaseError``
      carrying the driver's message, which the installer records next to
      the failing statement.
    * Identifiers are quoted by the connection's platform; data values are
      always passed as parameters (``placeholder`` differs per driver).
"""
from __future__ import annotations

import sqlite3
import time
from typing import Any

import mysql.connector
import psycopg2

from core.errors import ConnectionLostError, DatabaseError, UnsupportedPlatformError
from core.platform import Platform, get_platform
from core.schema import Schema
from logger import get_logger
from models.settings import ConnectionSettings

log = get_logger(__name__)


class DatabaseManager:
    """
    Driver-neutral connection wrapper.

    Provides:
        * Lazy connect with retry back-off.
        * Context-manager support (``with manager as db``).
        * Statement execution with driver errors wrapped in ``DatabaseError``.
        * Schema introspection, table options and row counts for the migrator.

    Subclasses supply ``_open()``, ``driver_errors``, ``placeholder`` and
    ``_query_server_version()``.
    """

    platform_name = ""
    placeholder = "%s"
    driver_errors: tuple[type[BaseException], ...] = ()

    def __init__(
        self,
        settings: ConnectionSettings,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        self.settings = settings
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._conn: Any = None
        self._cursor: Any = None
        self._server_version: str | None = None
        self._platform: Platform | None = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.settings.name}>"

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> "DatabaseManager":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            log.warning("Unhandled exception in DatabaseManager context: %s", exc_val)
            self._safe_rollback()
        self.close()
        return False  # Never suppress exceptions

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def _open(self) -> Any:
        raise NotImplementedError

    def _alive(self) -> bool:
        return self._conn is not None

    def connect(self) -> None:
        """
        Open the connection with back-off retries.

        Raises:
            DatabaseError: If connection fails after all retries.
        """
        last_error: BaseException | None = None
        for attempt in range(1, self._max_retries + 1):
            try:
                log.info(
                    "Connecting '%s' (%s) (attempt %d/%d)",
                    self.settings.name, self.platform_name, attempt, self._max_retries,
                )
                self._conn = self._open()
                self._cursor = self._conn.cursor()
                log.info("Connected '%s' successfully.", self.settings.name)
                return
            except self.driver_errors as exc:
                last_error = exc
                log.warning("Connection attempt %d failed: %s", attempt, exc)
                if attempt < self._max_retries:
                    time.sleep(self._retry_delay * attempt)
        raise DatabaseError(
            f"Could not connect '{self.settings.name}' after {self._max_retries} attempts: {last_error}"
        )

    def close(self) -> None:
        """Close cursor and connection; cleanup errors are logged, not raised."""
        for resource in (self._cursor, self._conn):
            if resource is None:
                continue
            try:
                resource.close()
            except self.driver_errors as exc:
                log.debug("Error while closing '%s': %s", self.settings.name, exc)
        if self._conn is not None:
            log.info("Connection '%s' closed.", self.settings.name)
        self._cursor = None
        self._conn = None

    @property
    def is_connected(self) -> bool:
        return self._alive()

    def _ensure_connected(self) -> None:
        if not self.is_connected:
            raise ConnectionLostError(
                f"Connection '{self.settings.name}' is not open. Call connect() first."
            )

    def _safe_rollback(self) -> None:
        try:
            if self.is_connected:
                self._conn.rollback()
                log.debug("Transaction rolled back.")
        except self.driver_errors as exc:
            log.warning("Rollback failed: %s", exc)

    # ------------------------------------------------------------------
    # Public query helpers
    # ------------------------------------------------------------------

    def execute(self, sql: str, params: tuple | None = None) -> Any:
        """
        Execute a SQL statement and return the cursor.

        Raises:
            ConnectionLostError: If not connected.
            DatabaseError: On driver execution errors.
        """
        self._ensure_connected()
        try:
            if params is None:
                self._cursor.execute(sql)
            else:
                self._cursor.execute(sql, params)
            return self._cursor
        except self.driver_errors as exc:
            log.debug("SQL execution error: %s | SQL: %.500s", exc, sql)
            raise DatabaseError(str(exc)) from exc

    def fetchall(self) -> list[tuple]:
        """Fetch all rows from the last execute."""
        return list(self._cursor.fetchall() or [])

    def fetchone(self) -> tuple | None:
        """Fetch one row from the last execute."""
        return self._cursor.fetchone()

    def query(self, sql: str, params: tuple | None = None) -> list[tuple]:
        self.execute(sql, params)
        return self.fetchall()

    def commit(self) -> None:
        self._ensure_connected()
        self._conn.commit()

    def rollback(self) -> None:
        self._safe_rollback()

    def execute_statement(self, sql: str) -> None:
        """
        Execute and commit a single DDL statement.

        A failing statement is rolled back before the error propagates, so
        the connection stays usable for the next statement.

        Raises:
            DatabaseError: With the driver's message.
        """
        try:
            self.execute(sql)
            self.commit()
        except DatabaseError:
            self._safe_rollback()
            raise

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @property
    def database(self) -> str:
        return self.settings.database

    @property
    def platform(self) -> Platform:
        if self._platform is None:
            self._platform = get_platform(self.platform_name)
        return self._platform

    def _query_server_version(self) -> str:
        raise NotImplementedError

    @property
    def server_version(self) -> str:
        """``"<Family> <version>"``, e.g. ``"MySQL 8.0.36"``."""
        if self._server_version is None:
            self._server_version = self._query_server_version()
        return self._server_version

    def count_rows(self, table_name: str) -> int:
        """Return the row count for *table_name*, or 0 if it cannot be counted."""
        try:
            self.execute(f"SELECT COUNT(*) FROM {self.platform.quote_identifier(table_name)}")
            row = self.fetchone()
            return int(row[0]) if row else 0
        except DatabaseError as exc:
            log.warning("Could not count rows of '%s': %s", table_name, exc)
            return 0

    def introspect_schema(self) -> Schema:
        """Read the live schema of this connection."""
        from core.introspection import introspect_schema

        return introspect_schema(self)

    def fetch_table_options(self) -> dict[str, dict[str, str]]:
        """Live table options keyed by table name (MySQL family only)."""
        return {}


class MySQLDatabaseManager(DatabaseManager):
    """MySQL / MariaDB through mysql-connector-python."""

    platform_name = "mysql"
    driver_errors = (mysql.connector.Error,)

    def _open(self) -> Any:
        return mysql.connector.connect(
            host=self.settings.host,
            port=self.settings.effective_port,
            user=self.settings.user,
            password=self.settings.password,
            database=self.settings.database or None,
            charset=self.settings.charset,
            connect_timeout=self.settings.connect_timeout,
            get_warnings=True,
            raise_on_warnings=False,
        )

    def _alive(self) -> bool:
        return bool(self._conn and self._conn.is_connected())

    def _query_server_version(self) -> str:
        self.execute("SELECT VERSION()")
        row = self.fetchone()
        # MariaDB reports e.g. "10.6.12-MariaDB"; both count as the MySQL family
        return f"MySQL {row[0] if row else ''}".strip()

    def fetch_table_options(self) -> dict[str, dict[str, str]]:
        from core.introspection import fetch_mysql_table_options

        return fetch_mysql_table_options(self)


class PostgreSQLDatabaseManager(DatabaseManager):
    """PostgreSQL through psycopg2."""

    platform_name = "postgresql"
    driver_errors = (psycopg2.Error,)

    def _open(self) -> Any:
        return psycopg2.connect(
            host=self.settings.host,
            port=self.settings.effective_port,
            user=self.settings.user,
            password=self.settings.password,
            dbname=self.settings.database,
            connect_timeout=self.settings.connect_timeout,
        )

    def _alive(self) -> bool:
        return bool(self._conn is not None and self._conn.closed == 0)

    def _query_server_version(self) -> str:
        self.execute("SHOW server_version")
        row = self.fetchone()
        return f"PostgreSQL {row[0] if row else ''}".strip()


class SQLiteDatabaseManager(DatabaseManager):
    """SQLite through the standard library driver."""

    platform_name = "sqlite"
    placeholder = "?"
    driver_errors = (sqlite3.Error,)

    def _open(self) -> Any:
        return sqlite3.connect(self.settings.path or ":memory:", timeout=self.settings.connect_timeout)

    @property
    def database(self) -> str:
        return self.settings.path or "main"

    def _query_server_version(self) -> str:
        return f"SQLite {sqlite3.sqlite_version}"

    def execute_statement(self, sql: str) -> None:
        """
        Execute a statement or a ``;``-separated script in one transaction.

        Table rebuilds arrive as scripts.  Any failing step rolls back every
        step before it, so the original table and its rows stay in place.

        Raises:
            DatabaseError: With the driver's message.
        """
        self._ensure_connected()
        try:
            self._conn.executescript(f"BEGIN;\n{sql};\nCOMMIT;")
        except self.driver_errors as exc:
            self._safe_rollback()
            log.debug("SQL execution error: %s | SQL: %.500s", exc, sql)
            raise DatabaseError(str(exc)) from exc


_MANAGERS: dict[str, type[DatabaseManager]] = {
    "mysql": MySQLDatabaseManager,
    "postgresql": PostgreSQLDatabaseManager,
    "sqlite": SQLiteDatabaseManager,
}


def create_database_manager(settings: ConnectionSettings) -> DatabaseManager:
    """
    Build the manager registered for ``settings.driver``.

    Raises:
        UnsupportedPlatformError: If the driver has no registered manager.
    """
    platform = get_platform(settings.driver)
    try:
        manager_class = _MANAGERS[platform.name]
    except KeyError:
        raise UnsupportedPlatformError(f"No database manager for driver '{settings.driver}'.") from None
    return manager_class(settings)
