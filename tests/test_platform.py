"""
tests/test_platform.py
----------------------
Unit tests for core/platform.py.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import pytest

from core.diff import ColumnDiff, TableDiff
from core.errors import SchemaError, UnsupportedPlatformError
from core.platform import (
    MySQLPlatform,
    NameLengths,
    PostgreSQLPlatform,
    SQLitePlatform,
    crc32b,
    get_platform,
    max_name_lengths,
    transform_tables_for_platform,
)
from core.schema import Column, Index
from core.types import MEDIUM_LENGTH, ColumnType
from tests.conftest import make_table, primary_key, uid_column, varchar_column


# ---------------------------------------------------------------------------
# Registry & limits
# ---------------------------------------------------------------------------

class TestMaxNameLengths:
    @pytest.mark.parametrize("name, expected", [
        ("mysql", NameLengths(64, 64)),
        ("pdo_mysql", NameLengths(64, 64)),
        ("sqlite", NameLengths(64, 64)),
        ("postgresql", NameLengths(63, 63)),
        ("pdo_sqlsrv", NameLengths(128, 128)),
        ("oci8", NameLengths(30, 30)),
        ("something-else", NameLengths(30, 30)),
        ("", NameLengths(30, 30)),
    ])
    def test_lengths(self, name: str, expected: NameLengths) -> None:
        assert max_name_lengths(name) == expected

    def test_platform_properties(self, mysql) -> None:
        assert mysql.max_table_name_length == 64
        assert PostgreSQLPlatform().max_column_name_length == 63


class TestGetPlatform:
    @pytest.mark.parametrize("name, cls", [
        ("mysql", MySQLPlatform),
        ("MariaDB", MySQLPlatform),
        ("pdo_pgsql", PostgreSQLPlatform),
        ("sqlite3", SQLitePlatform),
    ])
    def test_aliases(self, name: str, cls) -> None:
        assert isinstance(get_platform(name), cls)

    def test_unknown_platform_raises(self) -> None:
        with pytest.raises(UnsupportedPlatformError, match="oracle"):
            get_platform("oracle")


# ---------------------------------------------------------------------------
# MySQL
# ---------------------------------------------------------------------------

class TestMySQLPlatform:
    def test_column_declarations(self, mysql) -> None:
        assert mysql.column_declaration(uid_column()) == "uid INT UNSIGNED AUTO_INCREMENT NOT NULL"
        assert mysql.column_declaration(varchar_column("title")) == "title VARCHAR(255) DEFAULT '' NOT NULL"

    def test_text_has_no_default(self, mysql) -> None:
        column = Column("bodytext", ColumnType.TEXT, length=MEDIUM_LENGTH, default="")
        assert mysql.column_declaration(column) == "bodytext MEDIUMTEXT"

    def test_reserved_word_is_quoted(self, mysql) -> None:
        column = Column("key", ColumnType.STRING, length=10)
        assert mysql.column_declaration(column) == "`key` VARCHAR(10) DEFAULT NULL"

    def test_boolean_default(self, mysql) -> None:
        column = Column("hidden", ColumnType.BOOLEAN, notnull=True, default="0")
        assert mysql.column_declaration(column) == "hidden TINYINT(1) DEFAULT 0 NOT NULL"

    def test_create_table_is_one_statement(self, mysql, items_table) -> None:
        assert mysql.create_table_sql(items_table) == [
            "CREATE TABLE tx_ext_items (uid INT UNSIGNED AUTO_INCREMENT NOT NULL, "
            "pid INT DEFAULT 0 NOT NULL, title VARCHAR(255) DEFAULT '' NOT NULL, "
            "INDEX parent (pid), PRIMARY KEY(uid)) ENGINE = InnoDB"
        ]

    def test_create_table_with_options(self, mysql) -> None:
        table = make_table("pages", uid_column(), options={"engine": "MyISAM", "comment": "Pages"})
        (sql,) = mysql.create_table_sql(table)
        assert sql.endswith("ENGINE = MyISAM COMMENT = 'Pages'")

    def test_change_column(self, mysql) -> None:
        diff = TableDiff(
            name="tx_ext_items",
            changed_columns={"title": ColumnDiff("title", varchar_column("title", 100), ("type",))},
        )
        assert mysql.alter_table_sql(diff) == [
            "ALTER TABLE tx_ext_items CHANGE title title VARCHAR(100) DEFAULT '' NOT NULL"
        ]

    def test_rename_table(self, mysql) -> None:
        diff = TableDiff(name="pages", new_name="zzz_deleted_pages")
        assert mysql.alter_table_sql(diff) == ["ALTER TABLE pages RENAME TO zzz_deleted_pages"]

    def test_drop_and_rename_index(self, mysql) -> None:
        index = Index("parent", ("pid",))
        assert mysql.drop_index_sql(index, "pages") == "DROP INDEX parent ON pages"
        assert mysql.rename_index_sql("pid", index, "pages") == [
            "ALTER TABLE pages RENAME INDEX pid TO parent"
        ]

    def test_table_options(self, mysql) -> None:
        assert mysql.table_options_sql("pages", {"engine": "MyISAM"}) == ["ALTER TABLE pages ENGINE = MyISAM"]
        assert mysql.table_options_sql("pages", {}) == []


# ---------------------------------------------------------------------------
# PostgreSQL
# ---------------------------------------------------------------------------

class TestPostgreSQLPlatform:
    def test_autoincrement_is_serial(self) -> None:
        assert PostgreSQLPlatform().column_declaration(uid_column()) == "uid SERIAL NOT NULL"

    def test_notnull_change(self) -> None:
        column = Column("title", ColumnType.STRING, notnull=True, length=255, default="")
        diff = ColumnDiff("title", column, ("notnull",))
        assert PostgreSQLPlatform().changed_column_sql("pages", diff) == [
            "ALTER TABLE pages ALTER title SET NOT NULL"
        ]

    def test_table_options_ignored(self) -> None:
        assert PostgreSQLPlatform().table_options_sql("pages", {"engine": "InnoDB"}) == []


# ---------------------------------------------------------------------------
# SQLite
# ---------------------------------------------------------------------------

class TestSQLitePlatform:
    def test_create_table(self, sqlite, items_table) -> None:
        assert sqlite.create_table_sql(items_table) == [
            "CREATE TABLE tx_ext_items (uid INTEGER PRIMARY KEY AUTOINCREMENT NOT NULL, "
            "pid INTEGER DEFAULT 0 NOT NULL, title VARCHAR(255) DEFAULT '' NOT NULL)",
            "CREATE INDEX parent ON tx_ext_items (pid)",
        ]

    def test_composite_primary_key_without_autoincrement(self, sqlite) -> None:
        table = make_table(
            "mm", Column("a", ColumnType.INTEGER, notnull=True), Column("b", ColumnType.INTEGER, notnull=True),
            indexes=[primary_key("a", "b")],
        )
        assert sqlite.create_table_sql(table) == [
            "CREATE TABLE mm (a INTEGER NOT NULL, b INTEGER NOT NULL, PRIMARY KEY(a, b))"
        ]

    def test_nullable_text(self, sqlite) -> None:
        column = Column("note", ColumnType.TEXT, length=65535)
        assert sqlite.column_declaration(column) == "note CLOB DEFAULT NULL"

    def test_plain_rename_uses_rename_column(self, sqlite, items_table) -> None:
        title = items_table.get_column("title")
        diff = TableDiff(
            name="tx_ext_items",
            from_table=items_table,
            changed_columns={"title": ColumnDiff("title", title.renamed("zzz_deleted_title"), from_column=title)},
        )
        assert sqlite.alter_table_sql(diff) == [
            "ALTER TABLE tx_ext_items RENAME COLUMN title TO zzz_deleted_title"
        ]

    def test_property_change_rebuilds_table(self, sqlite, items_table) -> None:
        diff = TableDiff(
            name="tx_ext_items",
            from_table=items_table,
            changed_columns={"title": ColumnDiff("title", varchar_column("title", 100), ("type",))},
        )
        (script,) = sqlite.alter_table_sql(diff)
        steps = script.split(";\n")
        assert steps[0] == "CREATE TEMPORARY TABLE __temp__tx_ext_items AS SELECT uid, pid, title FROM tx_ext_items"
        assert steps[1] == "DROP TABLE tx_ext_items"
        assert "title VARCHAR(100) DEFAULT '' NOT NULL" in steps[2]
        assert steps[-2] == (
            "INSERT INTO tx_ext_items (uid, pid, title) SELECT uid, pid, title FROM __temp__tx_ext_items"
        )
        assert steps[-1] == "DROP TABLE __temp__tx_ext_items"

    def test_rebuild_needs_current_table(self, sqlite) -> None:
        diff = TableDiff(
            name="tx_ext_items",
            changed_columns={"title": ColumnDiff("title", varchar_column("title", 100), ("type",))},
        )
        with pytest.raises(SchemaError, match="without its current definition"):
            sqlite.alter_table_sql(diff)

    def test_foreign_key_changes_skipped(self, sqlite) -> None:
        from core.schema import ForeignKey
        fk = ForeignKey("fk_parent", ("pid",), "pages", ("uid",))
        diff = TableDiff(name="tx_ext_items", added_foreign_keys={"fk_parent": fk})
        assert sqlite.alter_table_sql(diff) == []


# ---------------------------------------------------------------------------
# transform_tables_for_platform
# ---------------------------------------------------------------------------

class TestTransformTables:
    def test_sqlite_index_names_get_crc_suffix(self, sqlite, items_table) -> None:
        (table,) = transform_tables_for_platform([items_table], sqlite)
        names = [i.name for i in table.indexes]
        assert names == ["primary", f"parent_{crc32b('tx_ext_items_parent')}"]

    def test_mysql_keeps_names_and_lengths(self, mysql) -> None:
        table = make_table("t", varchar_column("title"), indexes=[Index("title", ("title(20)",))])
        (result,) = transform_tables_for_platform([table], mysql)
        assert result.indexes[0].name == "title"
        assert result.indexes[0].columns == ("title(20)",)

    def test_length_suffix_stripped_elsewhere(self, sqlite) -> None:
        table = make_table("t", varchar_column("title"), indexes=[Index("title", ("title(20)",))])
        (result,) = transform_tables_for_platform([table], sqlite)
        assert result.indexes[0].columns == ("title",)

    def test_crc32b_is_hex(self) -> None:
        digest = crc32b("tx_ext_items_parent")
        assert len(digest) == 8
        int(digest, 16)
