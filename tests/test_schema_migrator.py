"""
tests/test_schema_migrator.py
-----------------------------
Unit tests for core/schema_migrator.py.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import pytest

from core.errors import DatabaseError
from core.platform import MySQLPlatform
from core.schema import Schema
from core.schema_migrator import SchemaMigrator
from core.suggestions import statement_hash
from tests.conftest import int_column, make_pool, make_table, mock_connection, primary_key, uid_column

ADD_TITLE = "ALTER TABLE tx_ext_items ADD title VARCHAR(255) DEFAULT '' NOT NULL"
DROP_STAGED = "ALTER TABLE tx_ext_items DROP zzz_deleted_flag"


@pytest.fixture
def connections():
    return {
        "Default": mock_connection(MySQLPlatform()),
        "extra": mock_connection(MySQLPlatform()),
        "idle": mock_connection(MySQLPlatform()),
    }


@pytest.fixture
def only_table():
    return make_table("onlyTable", uid_column(), indexes=[primary_key("uid")])


@pytest.fixture
def outdated(connections, items_table):
    """Default database missing ``title`` and holding a staged ``zzz_deleted_flag``."""
    live = make_table(
        "tx_ext_items", *items_table.columns[:2], int_column("zzz_deleted_flag"), indexes=items_table.indexes,
    )
    connections["Default"].introspect_schema.return_value = Schema.from_tables([live], name="app")
    return SchemaMigrator(make_pool(connections), [items_table])


def _executed(db) -> list[str]:
    return [c.args[0] for c in db.execute_statement.call_args_list]


class TestConnectionSelection:
    def test_default_plus_mapped_connections(self, connections, items_table, only_table) -> None:
        migrator = SchemaMigrator(make_pool(connections, {"onlyTable": "extra"}), [items_table, only_table])
        assert migrator.connection_names == ["Default", "extra"]

    def test_only_default_without_mapping(self, connections, items_table) -> None:
        assert SchemaMigrator(make_pool(connections), [items_table]).connection_names == ["Default"]

    def test_suggestions_per_connection(self, connections, items_table, only_table) -> None:
        migrator = SchemaMigrator(make_pool(connections, {"onlyTable": "extra"}), [items_table, only_table])
        suggestions = migrator.get_update_suggestions()
        assert list(suggestions) == ["Default", "extra"]
        assert len(suggestions["Default"]["create_table"]) == 1
        assert len(suggestions["extra"]["create_table"]) == 1

    def test_schema_diffs(self, connections, items_table) -> None:
        diffs = SchemaMigrator(make_pool(connections), [items_table]).get_schema_diffs()
        assert list(diffs["Default"].new_tables) == ["tx_ext_items"]


class TestMigrate:
    def test_only_selected_statements_run(self, outdated, connections) -> None:
        assert outdated.migrate({statement_hash(ADD_TITLE)}) == {}
        assert _executed(connections["Default"]) == [ADD_TITLE]

    def test_unknown_hash_runs_nothing(self, outdated, connections) -> None:
        assert outdated.migrate({"0" * 32}) == {}
        connections["Default"].execute_statement.assert_not_called()

    def test_additive_before_destructive(self, outdated, connections) -> None:
        outdated.migrate([statement_hash(DROP_STAGED), statement_hash(ADD_TITLE)])
        assert _executed(connections["Default"]) == [ADD_TITLE, DROP_STAGED]

    def test_failures_reported_by_hash(self, outdated, connections) -> None:
        connections["Default"].execute_statement.side_effect = [DatabaseError("Duplicate column name 'title'"), None]
        errors = outdated.migrate([statement_hash(ADD_TITLE), statement_hash(DROP_STAGED)])
        assert errors == {statement_hash(ADD_TITLE): "Duplicate column name 'title'"}
        assert _executed(connections["Default"]) == [ADD_TITLE, DROP_STAGED]

    def test_empty_selection(self, outdated, connections) -> None:
        assert outdated.migrate([]) == {}
        connections["Default"].execute_statement.assert_not_called()


class TestInstall:
    def test_results_of_all_connections(self, connections, items_table, only_table) -> None:
        migrator = SchemaMigrator(make_pool(connections, {"onlyTable": "extra"}), [items_table, only_table])
        result = migrator.install()
        assert list(result) == ["Default", "extra"]
        assert [sql.split(" (")[0] for sql in result["Default"]] == ["CREATE TABLE tx_ext_items"]
        assert [sql.split(" (")[0] for sql in result["extra"]] == ["CREATE TABLE onlyTable"]
        assert set(result["Default"].values()) == set(result["extra"].values()) == {""}
        connections["idle"].execute_statement.assert_not_called()

    def test_outcomes_kept_per_connection(self, connections, items_table, only_table) -> None:
        connections["extra"].execute_statement.side_effect = DatabaseError("Access denied")
        migrator = SchemaMigrator(make_pool(connections, {"onlyTable": "extra"}), [items_table, only_table])

        result = migrator.install()

        assert set(result["Default"].values()) == {""}
        assert set(result["extra"].values()) == {"Access denied"}
