"""
core/platform.py
----------------
Database platform adapter: identifier limits, table normalisation and SQL
dialect rendering for schema diffs.

Supported dialects::

    mysql       MySQL / MariaDB   (aliases: mariadb, mysqli, pdo_mysql, ...)
    postgresql  PostgreSQL        (aliases: postgres, pgsql, pdo_pgsql)
    sqlite      SQLite            (aliases: sqlite3, pdo_sqlite)

Design Decisions:
    * Platforms are registered once in ``_PLATFORMS`` and resolved by name
      through ``_ALIASES``; nothing is instantiated from arbitrary strings.
    * Identifiers are quoted only when they have to be (reserved words or
      characters outside ``[A-Za-z0-9_]``), so generated statements read like
      hand-written DDL and hash identically across runs.
    * Capability gaps (table options outside MySQL, foreign key changes on
      SQLite, ...) are adapted silently: nothing is emitted and a debug line is
      logged.  Nothing here raises for a capability mismatch.
"""
from __future__ import annotations

import re
import zlib
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Iterable, NamedTuple

from core.errors import SchemaError, UnsupportedPlatformError
from core.schema import Column, ForeignKey, Index, Table, strip_length_suffix
from core.types import (
    INTEGER_TYPES,
    MEDIUM_LENGTH,
    TEXT_LENGTH,
    TINY_LENGTH,
    ColumnType,
)
from logger import get_logger

if TYPE_CHECKING:
    from core.diff import ColumnDiff, SchemaDiff, TableDiff

log = get_logger(__name__)


# ---------------------------------------------------------------------------
# Identifier length limits
# ---------------------------------------------------------------------------

class NameLengths(NamedTuple):
    tables: int
    columns: int


# A string value is an alias that resolves to another entry.
_MAX_NAME_LENGTHS: dict[str, NameLengths | str] = {
    "default": NameLengths(tables=30, columns=30),
    "mysql": NameLengths(tables=64, columns=64),
    "drizzle_pdo_mysql": "mysql",
    "mysqli": "mysql",
    "pdo_mysql": "mysql",
    "pdo_sqlite": "mysql",
    # "sqlite" (the sqlite3 driver name) shares the pdo_sqlite limits instead of
    # falling back to the 30/30 default.
    "sqlite": "mysql",
    "postgresql": NameLengths(tables=63, columns=63),
    "sqlserver": NameLengths(tables=128, columns=128),
    "pdo_sqlsrv": "sqlserver",
    "sqlsrv": "sqlserver",
    "ibm": NameLengths(tables=30, columns=30),
    "ibm_db2": "ibm",
    "pdo_ibm": "ibm",
    "oci8": NameLengths(tables=30, columns=30),
    "sqlanywhere": NameLengths(tables=128, columns=128),
}


def max_name_lengths(platform_name: str = "") -> NameLengths:
    """
    Return the table / column name length limits for *platform_name*.

    Unknown platforms fall back to the conservative ``default`` entry.

    Examples::

        max_name_lengths("pdo_mysql")   → NameLengths(tables=64, columns=64)
        max_name_lengths("oracle-ish")  → NameLengths(tables=30, columns=30)
    """
    entry = _MAX_NAME_LENGTHS.get(platform_name.lower(), _MAX_NAME_LENGTHS["default"])
    if isinstance(entry, str):
        return max_name_lengths(entry)
    return entry


def max_table_name_length(platform_name: str = "") -> int:
    return max_name_lengths(platform_name).tables


def max_column_name_length(platform_name: str = "") -> int:
    return max_name_lengths(platform_name).columns


# ---------------------------------------------------------------------------
# Platform base
# ---------------------------------------------------------------------------

_PLAIN_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_INDEX_COLUMN_RE = re.compile(r"^(?P<name>.*?)(?P<length>\(\d+\))?$")

_RESERVED_WORDS = frozenset({
    "add", "all", "alter", "and", "as", "asc", "between", "by", "case", "check",
    "column", "constraint", "create", "cross", "current_date", "current_time",
    "current_timestamp", "default", "delete", "desc", "distinct", "drop", "else",
    "exists", "false", "for", "foreign", "from", "full", "grant", "group",
    "having", "in", "index", "inner", "insert", "interval", "into", "is", "join",
    "key", "keys", "left", "like", "limit", "natural", "not", "null", "on", "or",
    "order", "outer", "primary", "references", "right", "select", "set", "table",
    "then", "to", "true", "union", "unique", "update", "user", "using", "values",
    "when", "where", "with",
})

_CURRENT_KEYWORDS = frozenset({"CURRENT_TIMESTAMP", "CURRENT_DATE", "CURRENT_TIME"})


class Platform:
    """Common SQL rendering; dialects override the parts that differ."""

    name = ""
    quote_open = '"'
    quote_close = '"'
    requires_unique_index_names = False
    supports_index_length = False
    supports_comments = False
    supports_alter_foreign_keys = True
    rebuilds_changed_columns = False
    reserved_words = _RESERVED_WORDS

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

    # ------------------------------------------------------------------
    # Limits
    # ------------------------------------------------------------------

    @property
    def max_table_name_length(self) -> int:
        return max_table_name_length(self.name)

    @property
    def max_column_name_length(self) -> int:
        return max_column_name_length(self.name)

    # ------------------------------------------------------------------
    # Quoting
    # ------------------------------------------------------------------

    def quote_single_identifier(self, name: str) -> str:
        escaped = name.replace(self.quote_close, self.quote_close * 2)
        return f"{self.quote_open}{escaped}{self.quote_close}"

    def quote_identifier(self, name: str) -> str:
        """Quote *name* only if it is a reserved word or not a plain identifier."""
        if _PLAIN_IDENTIFIER_RE.match(name) and name.lower() not in self.reserved_words:
            return name
        return self.quote_single_identifier(name)

    def quote_string_literal(self, value: str) -> str:
        return "'" + value.replace("'", "''") + "'"

    # ------------------------------------------------------------------
    # Column declarations
    # ------------------------------------------------------------------

    def type_declaration(self, column: Column) -> str:
        raise NotImplementedError

    def supports_default(self, column: Column) -> bool:
        return not column.autoincrement

    def boolean_literal(self, value: str) -> str:
        return "true" if _truthy(value) else "false"

    def default_literal(self, column: Column) -> str:
        default = column.default or ""
        if column.type == ColumnType.BOOLEAN:
            return self.boolean_literal(default)
        if column.type in INTEGER_TYPES | {ColumnType.DECIMAL, ColumnType.FLOAT} and _is_number(default):
            return default
        if column.type in (ColumnType.DATE, ColumnType.DATETIME, ColumnType.TIME) \
                and default.upper() in _CURRENT_KEYWORDS:
            return default.upper()
        return self.quote_string_literal(default)

    def default_clause(self, column: Column) -> str:
        if not self.supports_default(column):
            return ""
        if column.default is None:
            return "" if column.notnull else " DEFAULT NULL"
        return f" DEFAULT {self.default_literal(column)}"

    def comparable_default(self, column: Column) -> str | None:
        """The default as the comparator should see it on this platform."""
        if column.default is None or not self.supports_default(column):
            return None
        if column.type == ColumnType.BOOLEAN:
            return "1" if _truthy(column.default) else "0"
        if column.type in INTEGER_TYPES | {ColumnType.DECIMAL, ColumnType.FLOAT}:
            try:
                return str(Decimal(column.default).normalize())
            except InvalidOperation:
                return column.default
        return column.default

    def column_declaration(self, column: Column) -> str:
        notnull = " NOT NULL" if column.notnull else ""
        return (
            f"{self.quote_identifier(column.name)} {self.type_declaration(column)}"
            f"{self.default_clause(column)}{notnull}"
        )

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def index_columns_sql(self, index: Index) -> str:
        parts = []
        for reference in index.unquoted_columns:
            match = _INDEX_COLUMN_RE.match(reference)
            parts.append(self.quote_identifier(match.group("name")) + (match.group("length") or ""))
        return ", ".join(parts)

    def foreign_key_declaration(self, fk: ForeignKey) -> str:
        local = ", ".join(self.quote_identifier(c) for c in fk.local_columns)
        foreign = ", ".join(self.quote_identifier(c) for c in fk.foreign_columns)
        sql = (
            f"CONSTRAINT {self.quote_identifier(fk.name)} FOREIGN KEY ({local}) "
            f"REFERENCES {self.quote_identifier(fk.foreign_table)} ({foreign})"
        )
        if fk.on_update:
            sql += f" ON UPDATE {fk.on_update.upper()}"
        if fk.on_delete:
            sql += f" ON DELETE {fk.on_delete.upper()}"
        return sql

    def _column_and_key_parts(self, table: Table) -> list[str]:
        parts = [self.column_declaration(c) for c in table.columns]
        pk = table.primary_key
        if pk is not None:
            parts.append(f"PRIMARY KEY({self.index_columns_sql(pk)})")
        return parts

    def create_table_sql(self, table: Table) -> list[str]:
        """``CREATE TABLE`` plus separate ``CREATE INDEX`` statements."""
        parts = self._column_and_key_parts(table)
        sql = [f"CREATE TABLE {self.quote_identifier(table.name)} ({', '.join(parts)})"]
        sql.extend(
            self.create_index_sql(index, table.name)
            for index in table.indexes if not index.primary
        )
        return sql

    def drop_table_sql(self, table_name: str) -> str:
        return f"DROP TABLE {self.quote_identifier(table_name)}"

    def rename_table_sql(self, table_name: str, new_name: str) -> str:
        return (
            f"ALTER TABLE {self.quote_identifier(table_name)} "
            f"RENAME TO {self.quote_identifier(new_name)}"
        )

    # ------------------------------------------------------------------
    # Indexes & foreign keys
    # ------------------------------------------------------------------

    def create_index_sql(self, index: Index, table_name: str) -> str:
        table = self.quote_identifier(table_name)
        if index.primary:
            return f"ALTER TABLE {table} ADD PRIMARY KEY ({self.index_columns_sql(index)})"
        unique = "UNIQUE " if index.unique else ""
        return (
            f"CREATE {unique}INDEX {self.quote_identifier(index.name)} "
            f"ON {table} ({self.index_columns_sql(index)})"
        )

    def drop_index_sql(self, index: Index, table_name: str) -> str:
        return f"DROP INDEX {self.quote_identifier(index.name)}"

    def rename_index_sql(self, old_name: str, index: Index, table_name: str) -> list[str]:
        return [
            self.drop_index_sql(replace(index, name=old_name), table_name),
            self.create_index_sql(index, table_name),
        ]

    def create_foreign_key_sql(self, fk: ForeignKey, table_name: str) -> str:
        return f"ALTER TABLE {self.quote_identifier(table_name)} ADD {self.foreign_key_declaration(fk)}"

    def drop_foreign_key_sql(self, fk: ForeignKey, table_name: str) -> str:
        return (
            f"ALTER TABLE {self.quote_identifier(table_name)} "
            f"DROP CONSTRAINT {self.quote_identifier(fk.name)}"
        )

    def table_options_sql(self, table_name: str, options: dict[str, str]) -> list[str]:
        if options:
            log.debug("Table options of '%s' are not supported on %s; skipped.", table_name, self.name)
        return []

    # ------------------------------------------------------------------
    # ALTER TABLE
    # ------------------------------------------------------------------

    def _pre_alter_sql(self, diff: "TableDiff") -> list[str]:
        sql = []
        for fk in [*diff.removed_foreign_keys.values(), *diff.changed_foreign_keys.values()]:
            sql.append(self.drop_foreign_key_sql(fk, diff.name))
        for index in diff.removed_indexes.values():
            sql.append(self.drop_index_sql(index, diff.name))
        for index in diff.changed_indexes.values():
            sql.append(self.drop_index_sql(index, diff.name))
        return sql

    def _post_alter_sql(self, diff: "TableDiff") -> list[str]:
        sql = []
        for index in [*diff.added_indexes.values(), *diff.changed_indexes.values()]:
            sql.append(self.create_index_sql(index, diff.name))
        for old_name, index in diff.renamed_indexes.items():
            sql.extend(self.rename_index_sql(old_name, index, diff.name))
        for fk in [*diff.added_foreign_keys.values(), *diff.changed_foreign_keys.values()]:
            sql.append(self.create_foreign_key_sql(fk, diff.name))
        return sql

    def changed_column_sql(self, table_name: str, column_diff: "ColumnDiff") -> list[str]:
        raise NotImplementedError

    def alter_table_sql(self, diff: "TableDiff") -> list[str]:
        """One statement per column operation, then index / key / rename statements."""
        table = self.quote_identifier(diff.name)
        sql = self._pre_alter_sql(diff)
        for column in diff.added_columns.values():
            sql.append(f"ALTER TABLE {table} ADD {self.column_declaration(column)}")
        for column in diff.removed_columns.values():
            sql.append(f"ALTER TABLE {table} DROP {self.quote_identifier(column.name)}")
        for column_diff in diff.changed_columns.values():
            sql.extend(self.changed_column_sql(diff.name, column_diff))
        for old_name, column in diff.renamed_columns.items():
            sql.append(
                f"ALTER TABLE {table} RENAME COLUMN {self.quote_identifier(old_name)} "
                f"TO {self.quote_identifier(column.name)}"
            )
        sql.extend(self._post_alter_sql(diff))
        sql.extend(self.table_options_sql(diff.name, diff.table_options))
        if diff.new_name:
            sql.append(self.rename_table_sql(diff.name, diff.new_name))
        return sql

    # ------------------------------------------------------------------
    # Schema diff
    # ------------------------------------------------------------------

    def get_schema_diff_sql(self, schema_diff: "SchemaDiff", save_mode: bool = False) -> list[str]:
        """
        Render *schema_diff* as an ordered statement list.

        Order: new tables, foreign keys of new tables, dropped tables (not in
        save mode), then altered tables.
        """
        sql: list[str] = []
        foreign_key_sql: list[str] = []
        for table in schema_diff.new_tables.values():
            sql.extend(self.create_table_sql(table))
            if self.supports_alter_foreign_keys:
                foreign_key_sql.extend(
                    self.create_foreign_key_sql(fk, table.name) for fk in table.foreign_keys
                )
        sql.extend(foreign_key_sql)

        if not save_mode:
            sql.extend(self.drop_table_sql(t.name) for t in schema_diff.removed_tables.values())

        for table_diff in schema_diff.changed_tables.values():
            sql.extend(self.alter_table_sql(table_diff))
        return sql


# ---------------------------------------------------------------------------
# MySQL / MariaDB
# ---------------------------------------------------------------------------

class MySQLPlatform(Platform):
    name = "mysql"
    quote_open = "`"
    quote_close = "`"
    supports_index_length = True
    supports_comments = True
    reserved_words = _RESERVED_WORDS | {"range", "read", "rows", "status", "condition", "option"}

    _SIMPLE_TYPES = {
        ColumnType.SMALLINT: "SMALLINT",
        ColumnType.INTEGER: "INT",
        ColumnType.BIGINT: "BIGINT",
        ColumnType.BOOLEAN: "TINYINT(1)",
        ColumnType.FLOAT: "DOUBLE PRECISION",
        ColumnType.DATE: "DATE",
        ColumnType.DATETIME: "DATETIME",
        ColumnType.TIME: "TIME",
        ColumnType.JSON: "JSON",
        ColumnType.GUID: "CHAR(36)",
    }
    _TABLE_OPTIONS = (
        ("charset", "DEFAULT CHARACTER SET"),
        ("collate", "COLLATE"),
        ("engine", "ENGINE ="),
        ("row_format", "ROW_FORMAT ="),
    )

    def quote_string_literal(self, value: str) -> str:
        return "'" + value.replace("\\", "\\\\").replace("'", "''") + "'"

    def boolean_literal(self, value: str) -> str:
        return "1" if _truthy(value) else "0"

    def type_declaration(self, column: Column) -> str:
        t = column.type
        unsigned = " UNSIGNED" if column.unsigned else ""
        if t in INTEGER_TYPES:
            auto = " AUTO_INCREMENT" if column.autoincrement else ""
            return f"{self._SIMPLE_TYPES[t]}{unsigned}{auto}"
        if t == ColumnType.DECIMAL:
            return f"NUMERIC({column.precision or 10}, {column.scale or 0}){unsigned}"
        if t == ColumnType.STRING:
            return f"{'CHAR' if column.fixed else 'VARCHAR'}({column.length or TINY_LENGTH})"
        if t == ColumnType.BINARY:
            return f"{'BINARY' if column.fixed else 'VARBINARY'}({column.length or TINY_LENGTH})"
        if t in (ColumnType.TEXT, ColumnType.BLOB):
            return _sized_lob(t.name, column.length)
        return self._SIMPLE_TYPES[t]

    def supports_default(self, column: Column) -> bool:
        return super().supports_default(column) and column.type not in (
            ColumnType.TEXT, ColumnType.BLOB, ColumnType.JSON,
        )

    def column_declaration(self, column: Column) -> str:
        options = column.platform_options
        charset = f" CHARACTER SET {options['charset']}" if options.get("charset") else ""
        collate = f" COLLATE `{options['collation']}`" if options.get("collation") else ""
        comment = f" COMMENT {self.quote_string_literal(column.comment)}" if column.comment else ""
        notnull = " NOT NULL" if column.notnull else ""
        return (
            f"{self.quote_identifier(column.name)} {self.type_declaration(column)}{charset}"
            f"{self.default_clause(column)}{notnull}{collate}{comment}"
        )

    @staticmethod
    def _index_kind(index: Index) -> str:
        if index.has_flag("fulltext"):
            return "FULLTEXT "
        if index.has_flag("spatial"):
            return "SPATIAL "
        return "UNIQUE " if index.unique else ""

    def _index_declaration(self, index: Index) -> str:
        return (
            f"{self._index_kind(index)}INDEX {self.quote_identifier(index.name)} "
            f"({self.index_columns_sql(index)})"
        )

    def _table_options_clause(self, options: dict[str, str]) -> str:
        parts = []
        merged = {"engine": "InnoDB", **options}
        for key, keyword in self._TABLE_OPTIONS:
            if merged.get(key):
                parts.append(f"{keyword} {merged[key]}")
        if merged.get("comment"):
            parts.append(f"COMMENT = {self.quote_string_literal(merged['comment'])}")
        return " ".join(parts)

    def create_table_sql(self, table: Table) -> list[str]:
        parts = [self.column_declaration(c) for c in table.columns]
        parts.extend(self._index_declaration(i) for i in table.indexes if not i.primary)
        pk = table.primary_key
        if pk is not None:
            parts.append(f"PRIMARY KEY({self.index_columns_sql(pk)})")
        return [
            f"CREATE TABLE {self.quote_identifier(table.name)} ({', '.join(parts)}) "
            f"{self._table_options_clause(table.options)}"
        ]

    def create_index_sql(self, index: Index, table_name: str) -> str:
        if index.primary:
            return super().create_index_sql(index, table_name)
        return (
            f"CREATE {self._index_kind(index)}INDEX {self.quote_identifier(index.name)} "
            f"ON {self.quote_identifier(table_name)} ({self.index_columns_sql(index)})"
        )

    def drop_index_sql(self, index: Index, table_name: str) -> str:
        table = self.quote_identifier(table_name)
        if index.primary:
            return f"ALTER TABLE {table} DROP PRIMARY KEY"
        return f"DROP INDEX {self.quote_identifier(index.name)} ON {table}"

    def rename_index_sql(self, old_name: str, index: Index, table_name: str) -> list[str]:
        return [
            f"ALTER TABLE {self.quote_identifier(table_name)} RENAME INDEX "
            f"{self.quote_identifier(old_name)} TO {self.quote_identifier(index.name)}"
        ]

    def drop_foreign_key_sql(self, fk: ForeignKey, table_name: str) -> str:
        return (
            f"ALTER TABLE {self.quote_identifier(table_name)} "
            f"DROP FOREIGN KEY {self.quote_identifier(fk.name)}"
        )

    def _table_option_parts(self, options: dict[str, str]) -> list[str]:
        parts = []
        for key, keyword in self._TABLE_OPTIONS:
            if options.get(key):
                parts.append(f"{keyword} {options[key]}")
        if "comment" in options:
            parts.append(f"COMMENT = {self.quote_string_literal(options['comment'] or '')}")
        return parts

    def table_options_sql(self, table_name: str, options: dict[str, str]) -> list[str]:
        parts = self._table_option_parts(options)
        if not parts:
            return []
        return [f"ALTER TABLE {self.quote_identifier(table_name)} {', '.join(parts)}"]

    def alter_table_sql(self, diff: "TableDiff") -> list[str]:
        """A single ``ALTER TABLE`` for column changes, wrapped by index / key statements."""
        parts = []
        if diff.new_name:
            parts.append(f"RENAME TO {self.quote_identifier(diff.new_name)}")
        parts.extend(f"ADD {self.column_declaration(c)}" for c in diff.added_columns.values())
        parts.extend(f"DROP {self.quote_identifier(c.name)}" for c in diff.removed_columns.values())
        for column_diff in diff.changed_columns.values():
            parts.append(
                f"CHANGE {self.quote_identifier(column_diff.old_column_name)} "
                f"{self.column_declaration(column_diff.column)}"
            )
        for old_name, column in diff.renamed_columns.items():
            parts.append(f"CHANGE {self.quote_identifier(old_name)} {self.column_declaration(column)}")
        parts.extend(self._table_option_parts(diff.table_options))

        sql = self._pre_alter_sql(diff)
        if parts:
            sql.append(f"ALTER TABLE {self.quote_identifier(diff.name)} {', '.join(parts)}")
        target = replace(diff, name=diff.new_name) if diff.new_name else diff
        sql.extend(self._post_alter_sql(target))
        return sql


# ---------------------------------------------------------------------------
# PostgreSQL
# ---------------------------------------------------------------------------

class PostgreSQLPlatform(Platform):
    name = "postgresql"
    requires_unique_index_names = True
    supports_comments = True

    _SIMPLE_TYPES = {
        ColumnType.SMALLINT: "SMALLINT",
        ColumnType.INTEGER: "INT",
        ColumnType.BIGINT: "BIGINT",
        ColumnType.BOOLEAN: "BOOLEAN",
        ColumnType.FLOAT: "DOUBLE PRECISION",
        ColumnType.TEXT: "TEXT",
        ColumnType.BINARY: "BYTEA",
        ColumnType.BLOB: "BYTEA",
        ColumnType.DATE: "DATE",
        ColumnType.DATETIME: "TIMESTAMP(0) WITHOUT TIME ZONE",
        ColumnType.TIME: "TIME(0) WITHOUT TIME ZONE",
        ColumnType.JSON: "JSON",
        ColumnType.GUID: "UUID",
    }
    _SERIAL_TYPES = {
        ColumnType.SMALLINT: "SMALLSERIAL",
        ColumnType.INTEGER: "SERIAL",
        ColumnType.BIGINT: "BIGSERIAL",
    }

    def type_declaration(self, column: Column) -> str:
        t = column.type
        if t in INTEGER_TYPES and column.autoincrement:
            return self._SERIAL_TYPES[t]
        if t == ColumnType.DECIMAL:
            return f"NUMERIC({column.precision or 10}, {column.scale or 0})"
        if t == ColumnType.STRING:
            return f"{'CHAR' if column.fixed else 'VARCHAR'}({column.length or TINY_LENGTH})"
        return self._SIMPLE_TYPES[t]

    def create_table_sql(self, table: Table) -> list[str]:
        sql = super().create_table_sql(table)
        for column in table.columns:
            if column.comment:
                sql.append(self._comment_sql(table.name, column))
        return sql

    def _comment_sql(self, table_name: str, column: Column) -> str:
        comment = self.quote_string_literal(column.comment) if column.comment else "NULL"
        return (
            f"COMMENT ON COLUMN {self.quote_identifier(table_name)}."
            f"{self.quote_identifier(column.name)} IS {comment}"
        )

    def drop_index_sql(self, index: Index, table_name: str) -> str:
        if index.primary:
            return (
                f"ALTER TABLE {self.quote_identifier(table_name)} "
                f"DROP CONSTRAINT {self.quote_identifier(table_name + '_pkey')}"
            )
        return super().drop_index_sql(index, table_name)

    def rename_index_sql(self, old_name: str, index: Index, table_name: str) -> list[str]:
        return [
            f"ALTER INDEX {self.quote_identifier(old_name)} "
            f"RENAME TO {self.quote_identifier(index.name)}"
        ]

    def changed_column_sql(self, table_name: str, column_diff: "ColumnDiff") -> list[str]:
        table = self.quote_identifier(table_name)
        column = column_diff.column
        name = self.quote_identifier(column.name)
        sql = []
        if column_diff.is_rename:
            sql.append(
                f"ALTER TABLE {table} RENAME COLUMN "
                f"{self.quote_identifier(column_diff.old_column_name)} TO {name}"
            )
        if column_diff.has_changed("type"):
            plain = replace(column, autoincrement=False)
            sql.append(f"ALTER TABLE {table} ALTER {name} TYPE {self.type_declaration(plain)}")
        if column_diff.has_changed("autoincrement"):
            log.debug("Autoincrement change of %s.%s is not rendered on PostgreSQL.", table_name, column.name)
        if column_diff.has_changed("default"):
            if column.default is None or not self.supports_default(column):
                sql.append(f"ALTER TABLE {table} ALTER {name} DROP DEFAULT")
            else:
                sql.append(f"ALTER TABLE {table} ALTER {name} SET DEFAULT {self.default_literal(column)}")
        if column_diff.has_changed("notnull"):
            action = "SET" if column.notnull else "DROP"
            sql.append(f"ALTER TABLE {table} ALTER {name} {action} NOT NULL")
        if column_diff.has_changed("comment"):
            sql.append(self._comment_sql(table_name, column))
        return sql


# ---------------------------------------------------------------------------
# SQLite
# ---------------------------------------------------------------------------

class SQLitePlatform(Platform):
    name = "sqlite"
    requires_unique_index_names = True
    supports_alter_foreign_keys = False
    rebuilds_changed_columns = True

    _SIMPLE_TYPES = {
        ColumnType.SMALLINT: "SMALLINT",
        ColumnType.INTEGER: "INTEGER",
        ColumnType.BIGINT: "BIGINT",
        ColumnType.BOOLEAN: "BOOLEAN",
        ColumnType.FLOAT: "DOUBLE PRECISION",
        ColumnType.TEXT: "CLOB",
        ColumnType.BINARY: "BLOB",
        ColumnType.BLOB: "BLOB",
        ColumnType.DATE: "DATE",
        ColumnType.DATETIME: "DATETIME",
        ColumnType.TIME: "TIME",
        ColumnType.JSON: "CLOB",
        ColumnType.GUID: "CHAR(36)",
    }

    def type_declaration(self, column: Column) -> str:
        t = column.type
        if t in INTEGER_TYPES and column.autoincrement:
            return "INTEGER"
        if t == ColumnType.DECIMAL:
            return f"NUMERIC({column.precision or 10}, {column.scale or 0})"
        if t == ColumnType.STRING:
            return f"{'CHAR' if column.fixed else 'VARCHAR'}({column.length or TINY_LENGTH})"
        return self._SIMPLE_TYPES[t]

    def column_declaration(self, column: Column) -> str:
        if column.autoincrement:
            notnull = " NOT NULL" if column.notnull else ""
            return f"{self.quote_identifier(column.name)} INTEGER PRIMARY KEY AUTOINCREMENT{notnull}"
        return super().column_declaration(column)

    def create_table_sql(self, table: Table) -> list[str]:
        parts = [self.column_declaration(c) for c in table.columns]
        pk = table.primary_key
        if pk is not None and not any(c.autoincrement for c in table.columns):
            parts.append(f"PRIMARY KEY({self.index_columns_sql(pk)})")
        parts.extend(self.foreign_key_declaration(fk) for fk in table.foreign_keys)
        sql = [f"CREATE TABLE {self.quote_identifier(table.name)} ({', '.join(parts)})"]
        sql.extend(
            self.create_index_sql(index, table.name)
            for index in table.indexes if not index.primary
        )
        return sql

    def create_index_sql(self, index: Index, table_name: str) -> str:
        if index.primary:
            log.debug("Adding a primary key to existing table '%s' is not supported on SQLite.", table_name)
            return ""
        return super().create_index_sql(index, table_name)

    def drop_index_sql(self, index: Index, table_name: str) -> str:
        if index.primary:
            log.debug("Dropping the primary key of '%s' is not supported on SQLite.", table_name)
            return ""
        return super().drop_index_sql(index, table_name)

    def create_foreign_key_sql(self, fk: ForeignKey, table_name: str) -> str:
        log.debug("Foreign key '%s' on '%s' can only be created with the table on SQLite.", fk.name, table_name)
        return ""

    def drop_foreign_key_sql(self, fk: ForeignKey, table_name: str) -> str:
        log.debug("Foreign key '%s' on '%s' cannot be dropped on SQLite.", fk.name, table_name)
        return ""

    def changed_column_sql(self, table_name: str, column_diff: "ColumnDiff") -> list[str]:
        # Only plain renames reach this point; property changes need a rebuild.
        return [
            f"ALTER TABLE {self.quote_identifier(table_name)} RENAME COLUMN "
            f"{self.quote_identifier(column_diff.old_column_name)} "
            f"TO {self.quote_identifier(column_diff.column.name)}"
        ]

    def alter_table_sql(self, diff: "TableDiff") -> list[str]:
        if any(cd.changed_properties for cd in diff.changed_columns.values()):
            return self._rebuild_table_sql(diff)

        table = self.quote_identifier(diff.name)
        sql = self._pre_alter_sql(diff)
        for column in diff.added_columns.values():
            sql.append(f"ALTER TABLE {table} ADD COLUMN {self.column_declaration(column)}")
        for column in diff.removed_columns.values():
            sql.append(f"ALTER TABLE {table} DROP COLUMN {self.quote_identifier(column.name)}")
        for column_diff in diff.changed_columns.values():
            sql.extend(self.changed_column_sql(diff.name, column_diff))
        for old_name, column in diff.renamed_columns.items():
            sql.append(
                f"ALTER TABLE {table} RENAME COLUMN {self.quote_identifier(old_name)} "
                f"TO {self.quote_identifier(column.name)}"
            )
        sql.extend(self._post_alter_sql(diff))
        if diff.new_name:
            sql.append(self.rename_table_sql(diff.name, diff.new_name))
        return [s for s in sql if s]

    def _rebuild_table_sql(self, diff: "TableDiff") -> list[str]:
        """
        Copy the table aside, recreate it with the new shape, copy the rows back.

        The steps are returned as one ``;``-separated script.  It must run as
        a single transaction (see ``SQLiteDatabaseManager.execute_statement``):
        the live table is dropped half-way through, so a failing copy-back has
        to roll back the drop as well.
        """
        from core.diff import apply_table_diff

        if diff.from_table is None:
            raise SchemaError(f"Cannot rebuild table '{diff.name}' without its current definition.")

        new_table = apply_table_diff(diff.from_table, diff)
        renames = {cd.old_column_name.lower(): cd.column.name for cd in diff.changed_columns.values()}
        renames.update({old.lower(): c.name for old, c in diff.renamed_columns.items()})
        removed = {name.lower() for name in diff.removed_columns}

        old_columns, new_columns = [], []
        for column in diff.from_table.columns:
            if column.name.lower() in removed:
                continue
            old_columns.append(self.quote_identifier(column.name))
            new_columns.append(self.quote_identifier(renames.get(column.name.lower(), column.name)))

        temp = self.quote_identifier(f"__temp__{diff.from_table.name}")
        table = self.quote_identifier(diff.from_table.name)
        sql = [
            f"CREATE TEMPORARY TABLE {temp} AS SELECT {', '.join(old_columns)} FROM {table}",
            f"DROP TABLE {table}",
        ]
        sql.extend(self.create_table_sql(new_table))
        sql.append(
            f"INSERT INTO {self.quote_identifier(new_table.name)} ({', '.join(new_columns)}) "
            f"SELECT {', '.join(old_columns)} FROM {temp}"
        )
        sql.append(f"DROP TABLE {temp}")
        return [";\n".join(sql)]


# ---------------------------------------------------------------------------
# Registry & table normalisation
# ---------------------------------------------------------------------------

_PLATFORMS: dict[str, type[Platform]] = {
    "mysql": MySQLPlatform,
    "postgresql": PostgreSQLPlatform,
    "sqlite": SQLitePlatform,
}

_ALIASES = {
    "mariadb": "mysql",
    "mysqli": "mysql",
    "pdo_mysql": "mysql",
    "drizzle_pdo_mysql": "mysql",
    "postgres": "postgresql",
    "pgsql": "postgresql",
    "pdo_pgsql": "postgresql",
    "sqlite3": "sqlite",
    "pdo_sqlite": "sqlite",
}


def get_platform(name: str) -> Platform:
    """
    Resolve a platform or driver name to a :class:`Platform` instance.

    Raises:
        UnsupportedPlatformError: If no dialect is registered for *name*.
    """
    key = name.lower()
    key = _ALIASES.get(key, key)
    try:
        return _PLATFORMS[key]()
    except KeyError:
        raise UnsupportedPlatformError(
            f"No SQL dialect registered for platform '{name}'. "
            f"Supported: {', '.join(sorted(_PLATFORMS))}."
        ) from None


def transform_tables_for_platform(tables: Iterable[Table], platform: Platform) -> list[Table]:
    """
    Normalise index definitions of *tables* for *platform*.

    * Platforms with schema-wide index names get ``_<crc32b(table_index)>``
      appended to every non-primary index name.
    * Platforms without substring indexes lose the ``(N)`` length suffix of
      index column references; the MySQL family keeps them untouched.
    """
    result = []
    for table in tables:
        indexes = []
        for index in table.indexes:
            name = index.name
            if platform.requires_unique_index_names and not index.primary:
                name = f"{name}_{crc32b(f'{table.name}_{name}')}"
            columns = index.columns
            if not platform.supports_index_length:
                columns = tuple(strip_length_suffix(c) for c in index.unquoted_columns)
            indexes.append(replace(index, name=name, columns=columns))
        result.append(replace(table, indexes=tuple(indexes)))
    return result


def crc32b(value: str) -> str:
    return format(zlib.crc32(value.encode("utf-8")) & 0xFFFFFFFF, "08x")


def _sized_lob(kind: str, length: int | None) -> str:
    if length is None or length > MEDIUM_LENGTH:
        return f"LONG{kind}"
    if length > TEXT_LENGTH:
        return f"MEDIUM{kind}"
    if length > TINY_LENGTH:
        return kind
    return f"TINY{kind}"


def _truthy(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "t", "yes", "y", "on")


def _is_number(value: str) -> bool:
    try:
        Decimal(value)
    except InvalidOperation:
        return False
    return True
