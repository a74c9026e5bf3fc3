"""
core/mitigation.py
------------------
Stages that turn a raw structural diff into a safe one.

Each stage is a pure function ``SchemaDiff → SchemaDiff``; the input diff is
never modified.  The connection migrator chains them::

    diff = split_column_renames(raw)
    diff = stage_removed_tables(diff, max_table_length)
    diff = stage_removed_columns(diff, max_column_length)
    diff = restrict_to_connection(diff, router, connection_name)

Design Decisions:
    * Removing a table or column is a two-pass operation.  The first pass
      renames the object to ``zzz_deleted_<name>``; only objects that already
      carry the prefix are left on the removal path and become real drops.
    * The prefixed name is cut to the platform's identifier limit, so a
      staged name can never be rejected by the database for its length.
"""
from __future__ import annotations

from dataclasses import replace

from core.diff import ColumnDiff, SchemaDiff, TableDiff
from core.router import ConnectionRouter
from core.schema import DELETED_PREFIX, is_staged_for_deletion
from logger import get_logger

log = get_logger(__name__)


def deletion_name(name: str, max_length: int) -> str:
    """
    Return *name* with the deletion prefix, cut to *max_length* characters.

    Examples::

        deletion_name("old_field", 64)   → "zzz_deleted_old_field"
        deletion_name("a" * 61, 64)      → "zzz_deleted_" + "a" * 52
    """
    return (DELETED_PREFIX + name)[:max_length]


def split_column_renames(diff: SchemaDiff) -> SchemaDiff:
    """
    Turn every detected column rename into an explicit add + remove pair.

    Declarations are often partial and applied incrementally, so a column
    that looks renamed is usually two unrelated columns.
    """
    changed_tables = {}
    for key, table_diff in diff.changed_tables.items():
        if not table_diff.renamed_columns:
            changed_tables[key] = table_diff
            continue

        added = dict(table_diff.added_columns)
        removed = dict(table_diff.removed_columns)
        for old_name, column in table_diff.renamed_columns.items():
            added[column.name.lower()] = column
            removed[old_name.lower()] = column.renamed(old_name)
        changed_tables[key] = replace(
            table_diff, added_columns=added, removed_columns=removed, renamed_columns={},
        )
    return replace(diff, changed_tables=changed_tables)


def stage_removed_tables(diff: SchemaDiff, max_table_name_length: int) -> SchemaDiff:
    """Replace removals of unprefixed tables by renames to their deletion name."""
    changed_tables = dict(diff.changed_tables)
    removed_tables = {}
    for key, table in diff.removed_tables.items():
        if is_staged_for_deletion(table.name):
            removed_tables[key] = table
            continue
        changed_tables[key] = TableDiff(
            name=table.name,
            from_table=table,
            new_name=deletion_name(table.name, max_table_name_length),
        )
    return replace(diff, changed_tables=changed_tables, removed_tables=removed_tables)


def stage_removed_columns(diff: SchemaDiff, max_column_name_length: int) -> SchemaDiff:
    """Replace removals of unprefixed columns by renames to their deletion name."""
    changed_tables = {}
    for key, table_diff in diff.changed_tables.items():
        if not table_diff.removed_columns:
            changed_tables[key] = table_diff
            continue

        changed_columns = dict(table_diff.changed_columns)
        removed_columns = {}
        for column_key, column in table_diff.removed_columns.items():
            if is_staged_for_deletion(column.name):
                removed_columns[column_key] = column
                continue
            changed_columns[column_key] = ColumnDiff(
                old_column_name=column.name,
                column=column.renamed(deletion_name(column.name, max_column_name_length)),
                from_column=column,
            )
        changed_tables[key] = replace(
            table_diff, changed_columns=changed_columns, removed_columns=removed_columns,
        )
    return replace(diff, changed_tables=changed_tables)


def _owned_by(table_name: str, valid_names: set[str]) -> bool:
    if is_staged_for_deletion(table_name):
        table_name = table_name[len(DELETED_PREFIX):]
    return table_name in valid_names or DELETED_PREFIX + table_name in valid_names


def restrict_to_connection(
    diff: SchemaDiff,
    router: ConnectionRouter,
    connection_name: str,
) -> SchemaDiff:
    """
    Keep only the tables *connection_name* is responsible for.

    The default connection owns every unmapped table and is returned as is.
    Any other connection without a table mapping manages nothing and gets an
    empty diff.  Staged tables are matched on their name without the
    deletion prefix, so they stay visible to the connection that owns them.
    """
    if router.is_default(connection_name):
        return diff
    if not router.has_mapping:
        log.debug("No table mapping configured; connection '%s' manages no tables.", connection_name)
        return diff.only()

    valid_names = set(router.tables_for(connection_name))
    return replace(
        diff,
        new_tables={k: t for k, t in diff.new_tables.items() if _owned_by(t.name, valid_names)},
        changed_tables={
            k: td for k, td in diff.changed_tables.items()
            if _owned_by(td.new_name or td.name, valid_names)
        },
        removed_tables={k: t for k, t in diff.removed_tables.items() if _owned_by(t.name, valid_names)},
    )


def installable(diff: SchemaDiff, create_only: bool = False) -> SchemaDiff:
    """
    Reduce *diff* to what the unattended installer may apply.

    Removals of tables, columns, indexes and foreign keys are dropped, and
    column renames become plain additions of the new column.  With
    *create_only* only table creation and new columns, indexes and foreign
    keys survive.
    """
    changed_tables = {}
    for key, table_diff in diff.changed_tables.items():
        added = dict(table_diff.added_columns)
        for column in table_diff.renamed_columns.values():
            added[column.name.lower()] = column
        changed_columns = {
            k: cd for k, cd in table_diff.changed_columns.items() if not cd.is_rename
        }
        for column_diff in table_diff.changed_columns.values():
            if column_diff.is_rename:
                added[column_diff.column.name.lower()] = column_diff.column

        changes = dict(
            added_columns=added,
            changed_columns=changed_columns,
            removed_columns={},
            renamed_columns={},
            removed_indexes={},
            removed_foreign_keys={},
        )
        if create_only:
            changes.update(
                changed_columns={},
                changed_indexes={},
                renamed_indexes={},
                changed_foreign_keys={},
                table_options={},
            )
        changed_tables[key] = replace(table_diff, **changes)
    return replace(diff, changed_tables=changed_tables, removed_tables={})
