"""
core/diff.py
------------
Immutable diff objects produced by the comparator and consumed by the
suggestion extractor and the installer.

Design Decisions:
    * Diffs are frozen dataclasses.  Mitigation stages and the extractor never
      mutate a diff; they build a new one with :func:`dataclasses.replace`.
    * Collections are dicts keyed by the lower-cased object name (or by a
      synthetic key when the extractor isolates single changes), preserving
      insertion order so emitted SQL is deterministic.
    * SQL rendering is delegated to the platform; a diff only knows *what*
      changed.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from core.schema import Column, ForeignKey, Index, Schema, Table

if TYPE_CHECKING:
    from core.platform import Platform


@dataclass(frozen=True)
class ColumnDiff:
    """A changed column; a rename when ``old_column_name`` differs from ``column.name``."""
    old_column_name: str
    column: Column
    changed_properties: tuple[str, ...] = ()
    from_column: Column | None = None

    @property
    def is_rename(self) -> bool:
        return self.old_column_name.lower() != self.column.name.lower()

    def has_changed(self, prop: str) -> bool:
        return prop in self.changed_properties


@dataclass(frozen=True)
class TableDiff:
    name: str
    from_table: Table | None = None
    added_columns: dict[str, Column] = field(default_factory=dict)
    changed_columns: dict[str, ColumnDiff] = field(default_factory=dict)
    removed_columns: dict[str, Column] = field(default_factory=dict)
    renamed_columns: dict[str, Column] = field(default_factory=dict)
    added_indexes: dict[str, Index] = field(default_factory=dict)
    changed_indexes: dict[str, Index] = field(default_factory=dict)
    removed_indexes: dict[str, Index] = field(default_factory=dict)
    renamed_indexes: dict[str, Index] = field(default_factory=dict)
    added_foreign_keys: dict[str, ForeignKey] = field(default_factory=dict)
    changed_foreign_keys: dict[str, ForeignKey] = field(default_factory=dict)
    removed_foreign_keys: dict[str, ForeignKey] = field(default_factory=dict)
    new_name: str | None = None
    table_options: dict[str, str] = field(default_factory=dict)

    def isolate(self, **changes) -> "TableDiff":
        """
        Return an otherwise empty diff for the same table carrying only *changes*.

        Used to render the SQL of exactly one schema object::

            diff.isolate(added_columns={"title": column})
        """
        return TableDiff(name=self.name, from_table=self.from_table, **changes)

    @property
    def is_empty(self) -> bool:
        return not any((
            self.added_columns, self.changed_columns, self.removed_columns,
            self.renamed_columns, self.added_indexes, self.changed_indexes,
            self.removed_indexes, self.renamed_indexes, self.added_foreign_keys,
            self.changed_foreign_keys, self.removed_foreign_keys, self.new_name,
            self.table_options,
        ))


@dataclass(frozen=True)
class SchemaDiff:
    """Structural difference between the live ("from") and expected schema."""
    new_tables: dict[str, Table] = field(default_factory=dict)
    changed_tables: dict[str, TableDiff] = field(default_factory=dict)
    removed_tables: dict[str, Table] = field(default_factory=dict)
    from_schema: Schema = field(default_factory=Schema)

    def to_sql(self, platform: "Platform") -> list[str]:
        """All statements, including table drops."""
        return platform.get_schema_diff_sql(self, save_mode=False)

    def to_save_sql(self, platform: "Platform") -> list[str]:
        """Statements without table drops."""
        return platform.get_schema_diff_sql(self, save_mode=True)

    def only(self, **changes) -> "SchemaDiff":
        """Return an otherwise empty diff against the same live schema."""
        return SchemaDiff(from_schema=self.from_schema, **changes)

    @property
    def is_empty(self) -> bool:
        return not (self.new_tables or self.changed_tables or self.removed_tables)


def apply_table_diff(table: Table, diff: TableDiff) -> Table:
    """
    Return *table* with the column and index changes of *diff* applied.

    Only what a rebuild needs is applied: column additions, changes, renames
    and removals plus index additions and removals.
    """
    removed = {name.lower() for name in diff.removed_columns}
    changed = {cd.old_column_name.lower(): cd.column for cd in diff.changed_columns.values()}
    renamed = {old.lower(): col for old, col in diff.renamed_columns.items()}

    columns: list[Column] = []
    for column in table.columns:
        key = column.name.lower()
        if key in removed:
            continue
        columns.append(changed.get(key) or renamed.get(key) or column)
    columns.extend(diff.added_columns.values())

    dropped_indexes = {
        i.name.lower()
        for i in [*diff.removed_indexes.values(), *diff.changed_indexes.values()]
    } | {old.lower() for old in diff.renamed_indexes}
    indexes = [i for i in table.indexes if i.name.lower() not in dropped_indexes]
    indexes.extend(diff.changed_indexes.values())
    indexes.extend(diff.renamed_indexes.values())
    indexes.extend(diff.added_indexes.values())

    return replace(
        table,
        name=diff.new_name or table.name,
        columns=tuple(columns),
        indexes=tuple(indexes),
        options={**table.options, **diff.table_options},
    )
