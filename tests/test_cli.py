"""
tests/test_cli.py
-----------------
Tests for the command line interface in main.py.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

import main as cli
from core.errors import DatabaseError, SchemaParseError


@pytest.fixture
def env():
    """Patch the pool, the declaration parser and the migrator used by ``main``."""
    with patch.object(cli, "ConnectionPool") as pool_cls, \
            patch.object(cli, "parse_schema_files", return_value=[]) as parse, \
            patch.object(cli, "SchemaMigrator") as migrator_cls:
        migrator = MagicMock()
        migrator_cls.return_value = migrator
        yield MagicMock(pool=pool_cls.return_value, parse=parse, migrator=migrator)


class TestArguments:
    def test_no_command_prints_help(self, capsys) -> None:
        assert cli.main([]) == 2
        assert "usage" in capsys.readouterr().out

    def test_schema_files_forwarded(self, env) -> None:
        env.migrator.get_update_suggestions.return_value = {}
        cli.main(["-s", "a.sql", "-s", "b.sql", "suggest"])
        env.parse.assert_called_once_with([Path("a.sql"), Path("b.sql")])

    def test_apply_needs_a_hash(self) -> None:
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["apply"])


class TestSuggest:
    def test_listing(self, env, capsys) -> None:
        env.migrator.get_update_suggestions.return_value = {
            "Default": {
                "add": {"a" * 32: "ALTER TABLE pages ADD pid INT DEFAULT 0 NOT NULL"},
                "create_table": {},
                "change": {"b" * 32: "ALTER TABLE pages CHANGE title title VARCHAR(255) DEFAULT '' NOT NULL"},
                "change_currentValue": {"b" * 32: "title VARCHAR(100) DEFAULT '' NOT NULL"},
            },
        }
        assert cli.main(["suggest"]) == 0

        out = capsys.readouterr().out
        assert "-- Connection: Default" in out
        assert f"{'a' * 32}  ALTER TABLE pages ADD pid" in out
        assert "current: title VARCHAR(100)" in out
        assert "[create_table]" not in out
        env.migrator.get_update_suggestions.assert_called_once_with(remove=False)
        env.pool.close_all.assert_called_once()

    def test_remove_shows_row_counts(self, env, capsys) -> None:
        env.migrator.get_update_suggestions.return_value = {
            "Default": {
                "drop_table": {"c" * 32: "DROP TABLE zzz_deleted_tx_old"},
                "tables_count": {"c" * 32: 42},
            },
        }
        cli.main(["suggest", "--remove"])
        assert "rows: 42" in capsys.readouterr().out
        env.migrator.get_update_suggestions.assert_called_once_with(remove=True)

    def test_json(self, env, capsys) -> None:
        suggestions = {"Default": {"add": {}, "create_table": {"d" * 32: "CREATE TABLE t (a INT)"}}}
        env.migrator.get_update_suggestions.return_value = suggestions
        cli.main(["suggest", "--json"])
        assert json.loads(capsys.readouterr().out) == suggestions


class TestInstallAndApply:
    def test_install_ok(self, env, capsys) -> None:
        env.migrator.install.return_value = {"Default": {"CREATE TABLE t (a INT)": ""}}
        assert cli.main(["install", "--create-only"]) == 0
        out = capsys.readouterr().out
        assert "-- Connection: Default" in out
        assert "OK      CREATE TABLE t (a INT)" in out
        env.migrator.install.assert_called_once_with(create_only=True)

    def test_install_failure_exit_code(self, env, capsys) -> None:
        env.migrator.install.return_value = {
            "Default": {"CREATE TABLE t (a INT)": ""},
            "Logging": {"CREATE TABLE t (a INT)": "Table 't' already exists"},
        }
        assert cli.main(["install"]) == 1
        out = capsys.readouterr().out
        assert "FAILED" in out
        assert "Table 't' already exists" in out
        assert "OK      CREATE TABLE t (a INT)" in out
        assert "-- Connection: Logging" in out

    def test_apply(self, env, capsys) -> None:
        env.migrator.migrate.return_value = {}
        assert cli.main(["apply", "abc", "def"]) == 0
        env.migrator.migrate.assert_called_once_with(["abc", "def"])
        assert "0 of 2 selected statements failed." in capsys.readouterr().out

    def test_apply_failure(self, env, capsys) -> None:
        env.migrator.migrate.return_value = {"abc": "Unknown column"}
        assert cli.main(["apply", "abc"]) == 1
        assert "FAILED  abc  Unknown column" in capsys.readouterr().out


class TestErrors:
    def test_parse_error_exit_code(self, env) -> None:
        env.parse.side_effect = SchemaParseError("ext_tables.sql: unknown type")
        assert cli.main(["suggest"]) == 1
        env.pool.close_all.assert_called_once()

    def test_database_error_exit_code(self, env) -> None:
        env.migrator.install.side_effect = DatabaseError("Can't connect")
        assert cli.main(["install"]) == 1
