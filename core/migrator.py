"""
core/migrator.py
----------------
Connection-scoped schema migration: diff, suggestions and unattended install
for one logical connection.

Pipeline::

    declared tables ─► merge (this connection only) ─► platform normalisation ─┐
    live schema + live table options ─────────────────────────────────────────┴─► compare
        ─► split column renames ─► [stage removed tables / columns] ─► restrict to connection

Design Decisions:
    * The migrator is a plain class with injected dependencies (connection
      name, declared tables, connection pool).  No global state.
    * Every call rebuilds both schemas; nothing is cached between calls, so
      repeated calls against an unchanged database give identical results.
    * ``install`` never aborts on a failing statement.  Each driver error is
      recorded next to its statement and execution continues.
"""
from __future__ import annotations

from typing import Iterable

from core.comparator import Comparator
from core.connection_pool import ConnectionPool
from core.diff import SchemaDiff
from core.errors import DatabaseError
from core.merger import merge_table_definitions
from core.mitigation import (
    installable,
    restrict_to_connection,
    split_column_renames,
    stage_removed_columns,
    stage_removed_tables,
)
from core.platform import Platform, transform_tables_for_platform
from core.schema import Schema, Table
from core.suggestions import SuggestionExtractor
from logger import get_logger

log = get_logger(__name__)


class ConnectionMigrator:
    """
    Schema migrator for one logical connection.

    Example::

        migrator = ConnectionMigrator.create("Default", parse_schema_files(paths), pool)
        suggestions = migrator.get_update_suggestions()
        for digest, sql in suggestions["create_table"].items():
            print(digest, sql)
    """

    def __init__(self, connection_name: str, tables: Iterable[Table], pool: ConnectionPool) -> None:
        self.connection_name = connection_name
        self.tables = list(tables)
        self.pool = pool
        self.connection = pool.get_connection_by_name(connection_name)

    @classmethod
    def create(cls, connection_name: str, tables: Iterable[Table], pool: ConnectionPool) -> "ConnectionMigrator":
        return cls(connection_name, tables, pool)

    @property
    def platform(self) -> Platform:
        return self.connection.platform

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_schema_diff(self) -> SchemaDiff:
        """The diff for this connection without deletion staging."""
        return self._build_schema_diff(rename_unused=False)

    def get_update_suggestions(self, remove: bool = False) -> dict[str, dict]:
        """
        Hash-addressed SQL suggestions.

        Args:
            remove: False for additive / change suggestions, True for the
                    rename-to-``zzz_deleted_`` and drop suggestions.
        """
        diff = self._build_schema_diff()
        extractor = SuggestionExtractor(self.platform, self.connection.count_rows)
        return extractor.extract(diff, remove=remove)

    def install(self, create_only: bool = False) -> dict[str, str]:
        """
        Apply the additive part of the diff directly.

        Returns:
            ``{statement: ""}`` for applied statements and
            ``{statement: driver error message}`` for failed ones.
        """
        diff = installable(self._build_schema_diff(rename_unused=False), create_only=create_only)
        statements = diff.to_save_sql(self.platform)
        log.info(
            "Installing %d statements on '%s'%s.",
            len(statements), self.connection_name, " (create only)" if create_only else "",
        )

        result: dict[str, str] = {}
        for statement in statements:
            try:
                self.connection.execute_statement(statement)
                result[statement] = ""
                log.debug("Applied: %s", statement)
            except DatabaseError as exc:
                result[statement] = str(exc)
                log.error("Statement failed on '%s': %s | SQL: %.500s", self.connection_name, exc, statement)
        return result

    # ------------------------------------------------------------------
    # Schema building
    # ------------------------------------------------------------------

    def _build_expected_schema(self) -> Schema:
        merged = merge_table_definitions(self.tables, self.pool.router, self.connection_name)
        tables = transform_tables_for_platform(merged.values(), self.platform)
        return Schema.from_tables(tables, name=self.connection.database)

    def _build_live_schema(self) -> Schema:
        live = self.connection.introspect_schema()
        # Table options are only read from MySQL-family servers
        if not self.connection.server_version.startswith("MySQL"):
            return live
        options = self.connection.fetch_table_options()
        return Schema.from_tables(
            (t.with_options(options[t.name]) if t.name in options else t for t in live.tables),
            name=live.name,
        )

    def _build_schema_diff(self, rename_unused: bool = True) -> SchemaDiff:
        live = self._build_live_schema()
        expected = self._build_expected_schema()

        diff = Comparator(self.platform).compare(live, expected)
        diff = split_column_renames(diff)
        if rename_unused:
            diff = stage_removed_tables(diff, self.platform.max_table_name_length)
            diff = stage_removed_columns(diff, self.platform.max_column_name_length)
        return restrict_to_connection(diff, self.pool.router, self.connection_name)
