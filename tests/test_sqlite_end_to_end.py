"""
tests/test_sqlite_end_to_end.py
-------------------------------
End-to-end runs against a real SQLite database file: install, suggestions,
the rename-then-drop cycle and selective execution by hash.
Run with: python -m pytest tests/
"""
from __future__ import annotations

from pathlib import Path

import pytest

from core.connection_pool import ConnectionPool
from core.schema_migrator import SchemaMigrator
from core.schema_parser import parse_schema_text
from core.suggestions import statement_hash
from models.settings import ConnectionSettings

ITEMS_SQL = """
CREATE TABLE tx_ext_items (
    uid int(11) unsigned NOT NULL auto_increment,
    pid int(11) DEFAULT '0' NOT NULL,
    title varchar(255) DEFAULT '' NOT NULL,

    PRIMARY KEY (uid),
    KEY parent (pid)
);
"""


@pytest.fixture
def pool(tmp_path: Path):
    settings = ConnectionSettings(name="Default", driver="sqlite", path=str(tmp_path / "app.sqlite"))
    pool = ConnectionPool({"Default": settings})
    yield pool
    pool.close_all()


@pytest.fixture
def db(pool):
    return pool.get_connection_by_name("Default")


def _migrator(pool, sql: str = ITEMS_SQL) -> SchemaMigrator:
    return SchemaMigrator(pool, parse_schema_text(sql))


def _is_empty(suggestions: dict) -> bool:
    return all(not entries for entries in suggestions["Default"].values())


def _table_names(db) -> list[str]:
    return [t.name for t in db.introspect_schema().tables]


class TestInstall:
    def test_install_creates_declared_table(self, pool, db) -> None:
        result = _migrator(pool).install()["Default"]

        assert result and set(result.values()) == {""}
        assert _table_names(db) == ["tx_ext_items"]
        assert db.introspect_schema().get_table("tx_ext_items").column_names == ["uid", "pid", "title"]

    def test_installed_schema_is_up_to_date(self, pool) -> None:
        migrator = _migrator(pool)
        migrator.install()

        assert _is_empty(migrator.get_update_suggestions())
        assert _is_empty(migrator.get_update_suggestions(remove=True))
        assert migrator.install() == {"Default": {}}

    def test_install_reports_driver_errors(self, pool, db) -> None:
        declared = "CREATE TABLE tx_bad (uid int(11) NOT NULL, KEY broken (missing));"
        result = _migrator(pool, declared).install()["Default"]

        create, index = result
        assert result[create] == ""
        assert "no such column" in result[index]
        assert _table_names(db) == ["tx_bad"]

    def test_failed_rebuild_keeps_table_and_rows(self, pool, db) -> None:
        nullable_title = ITEMS_SQL.replace("title varchar(255) DEFAULT '' NOT NULL", "title varchar(255)")
        _migrator(pool, nullable_title).install()
        db.execute_statement("INSERT INTO tx_ext_items (pid, title) VALUES (1, NULL)")
        db.execute_statement("INSERT INTO tx_ext_items (pid, title) VALUES (2, 'keep me')")

        result = _migrator(pool).install()["Default"]

        (rebuild,) = result
        assert "NOT NULL constraint failed" in result[rebuild]
        assert _table_names(db) == ["tx_ext_items"]
        assert db.query("SELECT pid, title FROM tx_ext_items ORDER BY pid") == [(1, None), (2, "keep me")]
        assert db.introspect_schema().get_table("tx_ext_items").get_column("title").notnull is False

    def test_create_only_leaves_existing_columns(self, pool, db) -> None:
        db.execute_statement("CREATE TABLE tx_other (uid INTEGER)")
        declared = ITEMS_SQL + "CREATE TABLE tx_other (uid int(11) NOT NULL, label varchar(20) DEFAULT '' NOT NULL);"

        result = _migrator(pool, declared).install(create_only=True)["Default"]

        assert set(result.values()) == {""}
        assert "ALTER TABLE tx_other ADD COLUMN label VARCHAR(20) DEFAULT '' NOT NULL" in result
        uid = db.introspect_schema().get_table("tx_other").get_column("uid")
        assert uid.notnull is False


class TestSuggestionsAndMigrate:
    def test_create_table_suggestion_applied_by_hash(self, pool, db) -> None:
        migrator = _migrator(pool)
        create_table = migrator.get_update_suggestions()["Default"]["create_table"]
        assert [sql.split(" (")[0] for sql in create_table.values()][0] == "CREATE TABLE tx_ext_items"

        assert migrator.migrate(create_table) == {}
        assert _table_names(db) == ["tx_ext_items"]

    def test_unused_column_renamed_then_dropped(self, pool, db) -> None:
        migrator = _migrator(pool)
        migrator.install()
        db.execute_statement("ALTER TABLE tx_ext_items ADD COLUMN old_field VARCHAR(255) DEFAULT '' NOT NULL")

        rename = "ALTER TABLE tx_ext_items RENAME COLUMN old_field TO zzz_deleted_old_field"
        suggestions = migrator.get_update_suggestions(remove=True)["Default"]
        assert suggestions["change"] == {statement_hash(rename): rename}
        assert suggestions["drop"] == {}

        assert migrator.migrate([statement_hash(rename)]) == {}
        columns = db.introspect_schema().get_table("tx_ext_items").column_names
        assert columns == ["uid", "pid", "title", "zzz_deleted_old_field"]

        drop = "ALTER TABLE tx_ext_items DROP COLUMN zzz_deleted_old_field"
        suggestions = migrator.get_update_suggestions(remove=True)["Default"]
        assert suggestions["drop"] == {statement_hash(drop): drop}
        assert suggestions["change"] == {}

    def test_unused_table_renamed_then_dropped(self, pool, db) -> None:
        migrator = _migrator(pool)
        migrator.install()
        db.execute_statement("CREATE TABLE tx_old (uid INTEGER)")
        db.execute_statement("INSERT INTO tx_old (uid) VALUES (1)")
        db.execute_statement("INSERT INTO tx_old (uid) VALUES (2)")

        rename = "ALTER TABLE tx_old RENAME TO zzz_deleted_tx_old"
        suggestions = migrator.get_update_suggestions(remove=True)["Default"]
        assert suggestions["change_table"] == {statement_hash(rename): rename}
        assert suggestions["tables_count"] == {statement_hash(rename): 2}

        assert migrator.migrate([statement_hash(rename)]) == {}
        assert _table_names(db) == ["tx_ext_items", "zzz_deleted_tx_old"]

        drop = "DROP TABLE zzz_deleted_tx_old"
        suggestions = migrator.get_update_suggestions(remove=True)["Default"]
        assert suggestions["drop_table"] == {statement_hash(drop): drop}
        assert suggestions["tables_count"] == {statement_hash(drop): 2}

        assert migrator.migrate([statement_hash(drop)]) == {}
        assert _table_names(db) == ["tx_ext_items"]

    def test_changed_column_rebuilds_table_and_keeps_rows(self, pool, db) -> None:
        _migrator(pool).install()
        db.execute_statement("INSERT INTO tx_ext_items (pid, title) VALUES (1, 'first')")

        migrator = _migrator(pool, ITEMS_SQL.replace("varchar(255)", "varchar(100)"))
        suggestions = migrator.get_update_suggestions()["Default"]
        assert suggestions["change"]
        assert set(suggestions["change_currentValue"]) == set(suggestions["change"])

        assert migrator.migrate(suggestions["change"]) == {}
        assert _is_empty(migrator.get_update_suggestions())
        assert db.query("SELECT pid, title FROM tx_ext_items") == [(1, "first")]

    def test_changed_columns_of_one_table_share_one_rebuild(self, pool, db) -> None:
        _migrator(pool).install()
        db.execute_statement("INSERT INTO tx_ext_items (pid, title) VALUES (1, 'first')")

        declared = ITEMS_SQL.replace("varchar(255)", "varchar(100)").replace("DEFAULT '0'", "DEFAULT '7'")
        migrator = _migrator(pool, declared)
        suggestions = migrator.get_update_suggestions()["Default"]

        (digest,) = suggestions["change"]
        assert not suggestions["change"][digest].startswith("DROP TABLE")
        current = suggestions["change_currentValue"][digest]
        assert "pid INTEGER" in current and "title VARCHAR(255)" in current

        assert migrator.migrate([digest]) == {}
        assert _is_empty(migrator.get_update_suggestions())
        assert db.query("SELECT pid, title FROM tx_ext_items") == [(1, "first")]

    def test_rebuild_keeps_column_added_before_it(self, pool, db) -> None:
        _migrator(pool).install()
        db.execute_statement("INSERT INTO tx_ext_items (pid, title) VALUES (1, 'first')")

        declared = ITEMS_SQL.replace("varchar(255) DEFAULT '' NOT NULL,", (
            "varchar(100) DEFAULT '' NOT NULL,\n    note varchar(20) DEFAULT '' NOT NULL,"
        ))
        migrator = _migrator(pool, declared)
        suggestions = migrator.get_update_suggestions()["Default"]
        assert len(suggestions["add"]) == 1 and len(suggestions["change"]) == 1

        assert migrator.migrate([*suggestions["add"], *suggestions["change"]]) == {}
        assert _is_empty(migrator.get_update_suggestions())
        assert db.introspect_schema().get_table("tx_ext_items").column_names == ["uid", "pid", "title", "note"]
        assert db.query("SELECT pid, title, note FROM tx_ext_items") == [(1, "first", "")]

    def test_failed_statement_reported_by_hash(self, pool, db) -> None:
        migrator = _migrator(pool, "CREATE TABLE tx_bad (uid int(11) NOT NULL, KEY broken (missing));")
        create_table = migrator.get_update_suggestions()["Default"]["create_table"]
        create, index = create_table

        errors = migrator.migrate(create_table)
        assert list(errors) == [index]
        assert "no such column" in errors[index]
        assert _table_names(db) == ["tx_bad"]

    def test_stale_hash_is_not_executed(self, pool, db) -> None:
        migrator = _migrator(pool)
        create, _index = migrator.get_update_suggestions()["Default"]["create_table"]
        # The table appears after the suggestions were listed
        db.execute_statement("CREATE TABLE tx_ext_items (uid INTEGER PRIMARY KEY AUTOINCREMENT NOT NULL)")

        assert migrator.migrate([create]) == {}
        assert db.introspect_schema().get_table("tx_ext_items").column_names == ["uid"]
