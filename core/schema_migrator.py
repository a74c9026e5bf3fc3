"""
core/schema_migrator.py
-----------------------
Runs the connection migrators of every logical connection that manages
declared tables, and applies operator-selected suggestions.

Design Decisions:
    * Suggestions are addressed by the md5 hash of their statement.  An
      operator picks hashes from a suggestion listing; ``migrate`` recomputes
      the suggestions and runs only the statements whose hash was picked, so
      a stale selection can never execute SQL that is no longer suggested.
    * Informational entries (``change_currentValue``, ``tables_count``) are
      never executed.
    * As with ``install``, a failing statement is recorded and the run
      continues with the next one.
"""
from __future__ import annotations

from typing import Iterable

from core.connection_pool import ConnectionPool
from core.diff import SchemaDiff
from core.errors import DatabaseError
from core.migrator import ConnectionMigrator
from core.schema import Table
from core.suggestions import INFORMATIONAL_TYPES, SuggestionType
from logger import get_logger

log = get_logger(__name__)

# Execution order of the suggestion classes picked by ``migrate``
_EXECUTION_ORDER = tuple(t for t in SuggestionType if t not in INFORMATIONAL_TYPES)


class SchemaMigrator:
    """
    Multi-connection front end over :class:`ConnectionMigrator`.

    Args:
        pool:   Connection registry (with its table mapping).
        tables: Every declared (partial) table, in declaration order.

    Example::

        migrator = SchemaMigrator(pool, parse_schema_files(CONFIG.migration.schema_files))
        suggestions = migrator.get_update_suggestions()
        errors = migrator.migrate({"3f2a...", "9bc1..."})
    """

    def __init__(self, pool: ConnectionPool, tables: Iterable[Table]) -> None:
        self.pool = pool
        self.tables = list(tables)

    @property
    def connection_names(self) -> list[str]:
        """The default connection plus every connection with mapped tables."""
        router = self.pool.router
        return [
            name for name in self.pool.connection_names
            if router.is_default(name) or router.tables_for(name)
        ]

    def _migrator(self, connection_name: str) -> ConnectionMigrator:
        return ConnectionMigrator.create(connection_name, self.tables, self.pool)

    def get_schema_diffs(self) -> dict[str, SchemaDiff]:
        return {name: self._migrator(name).get_schema_diff() for name in self.connection_names}

    def get_update_suggestions(self, remove: bool = False) -> dict[str, dict[str, dict]]:
        """``{connection name: suggestions}``; see :mod:`core.suggestions` for the shape."""
        return {
            name: self._migrator(name).get_update_suggestions(remove=remove)
            for name in self.connection_names
        }

    def install(self, create_only: bool = False) -> dict[str, dict[str, str]]:
        """
        Run the installer on every connection.

        Returns:
            ``{connection name: {statement: error message or ""}}``.  Results
            stay per connection because the same statement may run on more
            than one of them.
        """
        return {
            name: self._migrator(name).install(create_only=create_only)
            for name in self.connection_names
        }

    def migrate(self, selected_hashes: Iterable[str]) -> dict[str, str]:
        """
        Execute the suggested statements whose hash is in *selected_hashes*.

        Returns:
            ``{hash: driver error message}`` for every statement that failed.
            Successful statements are not listed.
        """
        selected = set(selected_hashes)
        errors: dict[str, str] = {}

        for name in self.connection_names:
            migrator = self._migrator(name)
            statements = _executable_statements(
                migrator.get_update_suggestions(),
                migrator.get_update_suggestions(remove=True),
            )
            to_execute = {h: s for h, s in statements.items() if h in selected}
            if not to_execute:
                continue

            log.info("Executing %d selected statements on '%s'.", len(to_execute), name)
            for digest, statement in to_execute.items():
                try:
                    migrator.connection.execute_statement(statement)
                except DatabaseError as exc:
                    errors[digest] = str(exc)
                    log.error("Statement %s failed on '%s': %s", digest, name, exc)
        return errors


def _executable_statements(*suggestion_sets: dict[str, dict]) -> dict[str, str]:
    """Flatten suggestion sets into ``{hash: statement}`` in execution order."""
    statements: dict[str, str] = {}
    for suggestion_type in _EXECUTION_ORDER:
        for suggestions in suggestion_sets:
            statements.update(suggestions.get(suggestion_type.value, {}))
    return statements
