"""
core/comparator.py
------------------
Structural comparison of a live ("from") schema against an expected ("to")
schema.

The comparator produces the *raw* diff: detected column renames are kept as
renames and removed tables are plain removals.  Making the diff safe to apply
is the job of the mitigation stages in ``core/mitigation.py``.

Design Decisions:
    * Column equality is judged on what the platform would actually render
      (its type declaration and normalised default), so two spellings of the
      same type (``int(11)`` / ``INT``) never produce a change.
    * A rename is only assumed when exactly one removed column (or index) is
      identical in shape to an added one; ambiguous candidates stay as
      add + remove.
"""
from __future__ import annotations

from core.diff import ColumnDiff, SchemaDiff, TableDiff
from core.platform import Platform
from core.schema import Column, ForeignKey, Index, Schema, Table
from logger import get_logger

log = get_logger(__name__)

# Table options the comparator looks at; only those the live side reports.
COMPARABLE_TABLE_OPTIONS = ("engine", "collate", "row_format", "comment", "charset")
_CASE_SENSITIVE_OPTIONS = frozenset({"comment"})


class Comparator:
    """Compute :class:`SchemaDiff` objects for one platform."""

    def __init__(self, platform: Platform) -> None:
        self.platform = platform

    # ------------------------------------------------------------------
    # Schema level
    # ------------------------------------------------------------------

    def compare(self, from_schema: Schema, to_schema: Schema) -> SchemaDiff:
        new_tables: dict[str, Table] = {}
        changed_tables: dict[str, TableDiff] = {}
        removed_tables: dict[str, Table] = {}

        for table in to_schema.tables:
            live = from_schema.get_table(table.name)
            if live is None:
                new_tables[table.name.lower()] = table
                continue
            table_diff = self.diff_table(live, table)
            if not table_diff.is_empty:
                changed_tables[table.name.lower()] = table_diff

        for table in from_schema.tables:
            if not to_schema.has_table(table.name):
                removed_tables[table.name.lower()] = table

        log.debug(
            "Compared schemas: %d new, %d changed, %d removed tables.",
            len(new_tables), len(changed_tables), len(removed_tables),
        )
        return SchemaDiff(
            new_tables=new_tables,
            changed_tables=changed_tables,
            removed_tables=removed_tables,
            from_schema=from_schema,
        )

    # ------------------------------------------------------------------
    # Table level
    # ------------------------------------------------------------------

    def diff_table(self, from_table: Table, to_table: Table) -> TableDiff:
        added_columns: dict[str, Column] = {}
        changed_columns: dict[str, ColumnDiff] = {}
        removed_columns: dict[str, Column] = {}

        for column in to_table.columns:
            live = from_table.get_column(column.name)
            if live is None:
                added_columns[column.name.lower()] = column
                continue
            changed = self.diff_column(live, column)
            if changed:
                changed_columns[live.name.lower()] = ColumnDiff(
                    old_column_name=live.name,
                    column=column,
                    changed_properties=changed,
                    from_column=live,
                )

        for column in from_table.columns:
            if not to_table.has_column(column.name):
                removed_columns[column.name.lower()] = column

        renamed_columns = self._detect_column_renames(added_columns, removed_columns)

        added_indexes, changed_indexes, removed_indexes = self._diff_indexes(from_table, to_table)
        renamed_indexes = self._detect_index_renames(added_indexes, removed_indexes)

        added_fks, changed_fks, removed_fks = self._diff_foreign_keys(from_table, to_table)

        return TableDiff(
            name=from_table.name,
            from_table=from_table,
            added_columns=added_columns,
            changed_columns=changed_columns,
            removed_columns=removed_columns,
            renamed_columns=renamed_columns,
            added_indexes=added_indexes,
            changed_indexes=changed_indexes,
            removed_indexes=removed_indexes,
            renamed_indexes=renamed_indexes,
            added_foreign_keys=added_fks,
            changed_foreign_keys=changed_fks,
            removed_foreign_keys=removed_fks,
            table_options=self.diff_table_options(from_table, to_table),
        )

    def diff_table_options(self, from_table: Table, to_table: Table) -> dict[str, str]:
        """Options of *to_table* whose value differs from the one reported live."""
        changed = {}
        for key in COMPARABLE_TABLE_OPTIONS:
            if key not in to_table.options or key not in from_table.options:
                continue
            expected = str(to_table.options[key] or "")
            live = str(from_table.options[key] or "")
            if key not in _CASE_SENSITIVE_OPTIONS:
                expected, live = expected.lower(), live.lower()
            if expected != live:
                changed[key] = to_table.options[key]
        return changed

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def diff_column(self, from_column: Column, to_column: Column) -> tuple[str, ...]:
        """Names of the properties that differ between two columns."""
        p = self.platform
        changed = []
        if p.type_declaration(from_column) != p.type_declaration(to_column):
            changed.append("type")
        if from_column.notnull != to_column.notnull:
            changed.append("notnull")
        if p.comparable_default(from_column) != p.comparable_default(to_column):
            changed.append("default")
        if from_column.autoincrement != to_column.autoincrement:
            changed.append("autoincrement")
        if p.supports_comments and (from_column.comment or "") != (to_column.comment or ""):
            changed.append("comment")
        for option in ("charset", "collation"):
            live = from_column.platform_options.get(option)
            expected = to_column.platform_options.get(option)
            if live and expected and live.lower() != expected.lower():
                changed.append(option)
        return tuple(changed)

    def _detect_column_renames(
        self,
        added: dict[str, Column],
        removed: dict[str, Column],
    ) -> dict[str, Column]:
        candidates: dict[str, list[tuple[str, str]]] = {}
        for added_key, added_column in added.items():
            for removed_key, removed_column in removed.items():
                if not self.diff_column(removed_column, added_column):
                    candidates.setdefault(added_key, []).append((removed_key, removed_column.name))

        renamed: dict[str, Column] = {}
        for added_key, matches in candidates.items():
            if len(matches) != 1:
                continue
            removed_key, old_name = matches[0]
            if removed_key not in removed:
                continue
            renamed[old_name] = added.pop(added_key)
            del removed[removed_key]
        return renamed

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    @staticmethod
    def _diff_indexes(from_table: Table, to_table: Table):
        added: dict[str, Index] = {}
        changed: dict[str, Index] = {}
        removed: dict[str, Index] = {}

        for index in to_table.indexes:
            live = from_table.primary_key if index.primary else from_table.get_index(index.name)
            if live is None:
                added[index.name.lower()] = index
            elif not live.is_equivalent(index):
                changed[index.name.lower()] = index

        for index in from_table.indexes:
            expected = to_table.primary_key if index.primary else to_table.get_index(index.name)
            if expected is None:
                removed[index.name.lower()] = index
        return added, changed, removed

    @staticmethod
    def _detect_index_renames(added: dict[str, Index], removed: dict[str, Index]) -> dict[str, Index]:
        renamed: dict[str, Index] = {}
        for added_key, index in list(added.items()):
            if index.primary:
                continue
            matches = [
                key for key, live in removed.items()
                if not live.primary and live.is_equivalent(index)
            ]
            if len(matches) != 1:
                continue
            old = removed.pop(matches[0])
            renamed[old.name] = added.pop(added_key)
        return renamed

    # ------------------------------------------------------------------
    # Foreign keys
    # ------------------------------------------------------------------

    @staticmethod
    def _diff_foreign_keys(from_table: Table, to_table: Table):
        live_fks: list[ForeignKey] = list(from_table.foreign_keys)
        expected_fks: list[ForeignKey] = list(to_table.foreign_keys)

        for live in list(live_fks):
            for expected in expected_fks:
                if live.is_equivalent(expected):
                    live_fks.remove(live)
                    expected_fks.remove(expected)
                    break

        added: dict[str, ForeignKey] = {}
        changed: dict[str, ForeignKey] = {}
        removed: dict[str, ForeignKey] = {}
        expected_by_name = {fk.name.lower(): fk for fk in expected_fks}
        for live in live_fks:
            replacement = expected_by_name.pop(live.name.lower(), None)
            if replacement is None:
                removed[live.name.lower()] = live
            else:
                changed[live.name.lower()] = replacement
        added.update(expected_by_name)
        return added, changed, removed
