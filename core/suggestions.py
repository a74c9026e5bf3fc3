"""
core/suggestions.py
-------------------
Decomposes a mitigated schema diff into fine-grained, hash-addressed SQL
update suggestions.

Result shape (``remove=False``)::

    {
        "add":                 {md5(sql): sql, ...},
        "create_table":        {md5(sql): sql, ...},
        "change":              {md5(sql): sql, ...},
        "change_currentValue": {md5(sql): current column declaration, ...},
    }

Result shape (``remove=True``)::

    {
        "change":       {md5(sql): sql, ...},   # columns → zzz_deleted_*
        "change_table": {md5(sql): sql, ...},   # tables  → zzz_deleted_*
        "drop":         {md5(sql): sql, ...},
        "drop_table":   {md5(sql): sql, ...},
        "tables_count": {md5(first sql of table): row count, ...},
    }

Design Decisions:
    * Every column, index and foreign key is rendered from its own
      single-change TableDiff, so each statement touches exactly one schema
      object and can be applied or skipped on its own.  The exception is a
      platform that rebuilds tables for column changes (SQLite): all changed
      columns of a table share one rebuild script under one hash, and
      ``change_currentValue`` lists every current declaration it replaces.
    * Statements are keyed by the md5 hex digest of their literal text.  The
      same diff always yields the same keys, and identical statements
      collapse into one entry.
"""
from __future__ import annotations

import hashlib
from enum import Enum
from typing import Callable, Iterable

from core.diff import SchemaDiff, TableDiff
from core.platform import Platform
from core.schema import is_staged_for_deletion
from logger import get_logger

log = get_logger(__name__)


class SuggestionType(str, Enum):
    ADD = "add"
    CREATE_TABLE = "create_table"
    CHANGE = "change"
    CHANGE_CURRENT_VALUE = "change_currentValue"
    CHANGE_TABLE = "change_table"
    DROP = "drop"
    DROP_TABLE = "drop_table"
    TABLES_COUNT = "tables_count"


ADDITIVE_TYPES = (
    SuggestionType.ADD,
    SuggestionType.CREATE_TABLE,
    SuggestionType.CHANGE,
    SuggestionType.CHANGE_CURRENT_VALUE,
)
DESTRUCTIVE_TYPES = (
    SuggestionType.CHANGE,
    SuggestionType.CHANGE_TABLE,
    SuggestionType.DROP,
    SuggestionType.DROP_TABLE,
    SuggestionType.TABLES_COUNT,
)

# Informational entries that are never executed.
INFORMATIONAL_TYPES = (SuggestionType.CHANGE_CURRENT_VALUE, SuggestionType.TABLES_COUNT)


def statement_hash(statement: str) -> str:
    """Content address of a SQL statement (md5 hex digest of its text)."""
    return hashlib.md5(statement.encode("utf-8")).hexdigest()


def hash_statements(statements: Iterable[str]) -> dict[str, str]:
    return {statement_hash(s): s for s in statements}


class SuggestionExtractor:
    """
    Turns a :class:`SchemaDiff` into update suggestions for one connection.

    Args:
        platform:   Renders the isolated diffs into SQL.
        count_rows: ``table name → row count``; used for ``tables_count``.
    """

    def __init__(self, platform: Platform, count_rows: Callable[[str], int]) -> None:
        self.platform = platform
        self.count_rows = count_rows

    def extract(self, diff: SchemaDiff, remove: bool = False) -> dict[str, dict]:
        if remove:
            suggestions = {t.value: {} for t in DESTRUCTIVE_TYPES}
            parts = (
                self._unused_column_suggestions(diff),
                self._unused_table_suggestions(diff),
                self._drop_table_suggestions(diff),
                self._drop_column_suggestions(diff),
            )
        else:
            suggestions = {t.value: {} for t in ADDITIVE_TYPES}
            parts = (
                self._new_column_suggestions(diff),
                self._new_table_suggestions(diff),
                self._changed_column_suggestions(diff),
                self._changed_table_option_suggestions(diff),
            )
        for part in parts:
            for key, entries in part.items():
                suggestions[key].update(entries)

        log.debug(
            "Extracted %s suggestions: %s",
            "destructive" if remove else "additive",
            {k: len(v) for k, v in suggestions.items()},
        )
        return suggestions

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _render(self, diff: SchemaDiff, isolated: dict[str, TableDiff]) -> list[str]:
        return diff.only(changed_tables=isolated).to_sql(self.platform)

    def _render_one(self, diff: SchemaDiff, table_diff: TableDiff) -> list[str]:
        return self._render(diff, {table_diff.name.lower(): table_diff})

    @staticmethod
    def _from_table(diff: SchemaDiff, table_diff: TableDiff):
        return diff.from_schema.get_table(table_diff.name) or table_diff.from_table

    def _current_declaration(self, from_table, column_diff) -> str:
        live = column_diff.from_column
        if live is None and from_table is not None:
            live = from_table.get_column(column_diff.old_column_name)
        return self.platform.column_declaration(live) if live is not None else ""

    # ------------------------------------------------------------------
    # Additive
    # ------------------------------------------------------------------

    def _new_table_suggestions(self, diff: SchemaDiff) -> dict[str, dict]:
        statements = diff.only(new_tables=diff.new_tables).to_sql(self.platform)
        return {SuggestionType.CREATE_TABLE.value: hash_statements(statements)}

    def _new_column_suggestions(self, diff: SchemaDiff) -> dict[str, dict]:
        isolated: dict[str, TableDiff] = {}
        for key, table_diff in diff.changed_tables.items():
            base = TableDiff(name=table_diff.name, from_table=self._from_table(diff, table_diff))
            for column in table_diff.added_columns.values():
                isolated[f"{key}:tbl_{column.name}"] = base.isolate(
                    added_columns={column.name.lower(): column},
                )
            for index in table_diff.added_indexes.values():
                isolated[f"{key}:idx_{index.name}"] = base.isolate(
                    added_indexes={index.name.lower(): index},
                )
            for fk in table_diff.added_foreign_keys.values():
                isolated[f"{key}:fk_{fk.name}"] = base.isolate(
                    added_foreign_keys={fk.name.lower(): fk},
                )
        return {SuggestionType.ADD.value: hash_statements(self._render(diff, isolated))}

    def _changed_column_suggestions(self, diff: SchemaDiff) -> dict[str, dict]:
        change: dict[str, str] = {}
        current: dict[str, str] = {}

        for table_diff in diff.changed_tables.values():
            from_table = self._from_table(diff, table_diff)
            base = TableDiff(name=table_diff.name, from_table=from_table)

            # Renames are handled on the removal path
            changed = {k: cd for k, cd in table_diff.changed_columns.items() if not cd.is_rename}
            if self.platform.rebuilds_changed_columns:
                # One rebuild per table carries every changed column.  Added
                # columns ride along so a rebuild never removes a column that
                # an ``add`` suggestion created before it.
                groups = [changed] if changed else []
                added = dict(table_diff.added_columns)
            else:
                groups = [{k: cd} for k, cd in changed.items()]
                added = {}

            for group in groups:
                declaration = ", ".join(
                    self._current_declaration(from_table, column_diff) for column_diff in group.values()
                )
                single = base.isolate(changed_columns=group, added_columns=added)
                for statement in self._render_one(diff, single):
                    digest = statement_hash(statement)
                    change[digest] = statement
                    current[digest] = declaration

            isolated = [
                base.isolate(changed_indexes={k: i}) for k, i in table_diff.changed_indexes.items()
            ]
            isolated += [
                base.isolate(renamed_indexes={old: i}) for old, i in table_diff.renamed_indexes.items()
            ]
            isolated += [
                base.isolate(changed_foreign_keys={k: fk})
                for k, fk in table_diff.changed_foreign_keys.items()
            ]
            for single in isolated:
                change.update(hash_statements(self._render_one(diff, single)))

        return {
            SuggestionType.CHANGE.value: change,
            SuggestionType.CHANGE_CURRENT_VALUE.value: current,
        }

    def _changed_table_option_suggestions(self, diff: SchemaDiff) -> dict[str, dict]:
        change: dict[str, str] = {}
        for table_diff in diff.changed_tables.values():
            if not table_diff.table_options:
                continue
            single = table_diff.isolate(table_options=dict(table_diff.table_options))
            statements = diff.only(changed_tables={table_diff.name.lower(): single}).to_save_sql(self.platform)
            change.update(hash_statements(statements))
        return {SuggestionType.CHANGE.value: change}

    # ------------------------------------------------------------------
    # Destructive
    # ------------------------------------------------------------------

    def _unused_column_suggestions(self, diff: SchemaDiff) -> dict[str, dict]:
        isolated: dict[str, TableDiff] = {}
        for key, table_diff in diff.changed_tables.items():
            base = TableDiff(name=table_diff.name, from_table=self._from_table(diff, table_diff))
            for column_key, column_diff in table_diff.changed_columns.items():
                if not column_diff.is_rename:
                    continue
                isolated[f"{key}:{column_diff.column.name}"] = base.isolate(
                    changed_columns={column_key: column_diff},
                )
        return {SuggestionType.CHANGE.value: hash_statements(self._render(diff, isolated))}

    def _unused_table_suggestions(self, diff: SchemaDiff) -> dict[str, dict]:
        change_table: dict[str, str] = {}
        tables_count: dict[str, int] = {}
        for table_diff in diff.changed_tables.values():
            if not table_diff.new_name or not is_staged_for_deletion(table_diff.new_name):
                continue
            statements = self._render_one(diff, table_diff)
            if not statements:
                continue
            change_table.update(hash_statements(statements))
            tables_count[statement_hash(statements[0])] = self.count_rows(table_diff.name)
        return {
            SuggestionType.CHANGE_TABLE.value: change_table,
            SuggestionType.TABLES_COUNT.value: tables_count,
        }

    def _drop_table_suggestions(self, diff: SchemaDiff) -> dict[str, dict]:
        drop_table: dict[str, str] = {}
        tables_count: dict[str, int] = {}
        for key, table in diff.removed_tables.items():
            statements = diff.only(removed_tables={key: table}).to_sql(self.platform)
            if not statements:
                continue
            drop_table.update(hash_statements(statements))
            # The first statement is the DROP TABLE itself
            tables_count[statement_hash(statements[0])] = self.count_rows(table.name)
        return {
            SuggestionType.DROP_TABLE.value: drop_table,
            SuggestionType.TABLES_COUNT.value: tables_count,
        }

    def _drop_column_suggestions(self, diff: SchemaDiff) -> dict[str, dict]:
        isolated: dict[str, TableDiff] = {}
        for key, table_diff in diff.changed_tables.items():
            base = TableDiff(name=table_diff.name, from_table=self._from_table(diff, table_diff))
            for column_key, column in table_diff.removed_columns.items():
                isolated[f"{key}:tbl_{column.name}"] = base.isolate(
                    removed_columns={column_key: column},
                )
            for index_key, index in table_diff.removed_indexes.items():
                isolated[f"{key}:idx_{index.name}"] = base.isolate(
                    removed_indexes={index_key: index},
                )
            for fk_key, fk in table_diff.removed_foreign_keys.items():
                isolated[f"{key}:fk_{fk.name}"] = base.isolate(
                    removed_foreign_keys={fk_key: fk},
                )
        return {SuggestionType.DROP.value: hash_statements(self._render(diff, isolated))}
