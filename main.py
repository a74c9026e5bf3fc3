"""
main.py
-------
Command line interface of the schema migrator.

Usage::

    python main.py diff                       # SQL of the raw diff per connection
    python main.py suggest [--remove] [--json]
    python main.py install [--create-only]
    python main.py apply HASH [HASH ...]

Declaration files come from ``--schema-file`` (repeatable) or the
``SCHEMA_FILES`` environment variable; connections and the table mapping come
from the environment (see ``config.py``).
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from config import CONFIG
from core.connection_pool import ConnectionPool
from core.errors import ConfigurationError, DatabaseError, SchemaError
from core.schema_migrator import SchemaMigrator
from core.schema_parser import parse_schema_files
from logger import get_logger, set_level

log = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Connection-scoped database schema migrator")
    parser.add_argument(
        "-s", "--schema-file",
        action="append",
        type=Path,
        dest="schema_files",
        help="CREATE TABLE declaration file (repeatable; default: SCHEMA_FILES)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to the console")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("diff", help="Show the SQL of the raw schema diff per connection")

    suggest_parser = subparsers.add_parser("suggest", help="List hash-addressed update suggestions")
    suggest_parser.add_argument(
        "--remove",
        action="store_true",
        help="List rename-to-deleted and drop suggestions instead of additive ones",
    )
    suggest_parser.add_argument("--json", action="store_true", help="Print the suggestions as JSON")

    install_parser = subparsers.add_parser("install", help="Apply every non-destructive change")
    install_parser.add_argument(
        "--create-only",
        action="store_true",
        help="Only create tables and add columns, indexes and foreign keys",
    )

    apply_parser = subparsers.add_parser("apply", help="Execute suggestions selected by hash")
    apply_parser.add_argument("hashes", nargs="+", help="Suggestion hashes (see 'suggest')")

    return parser


def _print_diff(migrator: SchemaMigrator) -> None:
    for name, diff in migrator.get_schema_diffs().items():
        platform = migrator.pool.get_connection_by_name(name).platform
        statements = diff.to_sql(platform)
        print(f"-- Connection: {name} ({len(statements)} statements)")
        for statement in statements:
            print(f"{statement};")


def _print_suggestions(migrator: SchemaMigrator, remove: bool, as_json: bool) -> None:
    suggestions = migrator.get_update_suggestions(remove=remove)
    if as_json:
        print(json.dumps(suggestions, indent=2))
        return

    for name, groups in suggestions.items():
        print(f"-- Connection: {name}")
        counts = groups.get("tables_count", {})
        current = groups.get("change_currentValue", {})
        for group, entries in groups.items():
            if group in ("tables_count", "change_currentValue") or not entries:
                continue
            print(f"[{group}]")
            for digest, statement in entries.items():
                print(f"  {digest}  {statement}")
                if digest in current:
                    print(f"  {'':32}  current: {current[digest]}")
                if digest in counts:
                    print(f"  {'':32}  rows: {counts[digest]}")


def _run_install(migrator: SchemaMigrator, create_only: bool) -> int:
    results = migrator.install(create_only=create_only)
    failed = False
    for connection_name, statements in results.items():
        print(f"-- Connection: {connection_name}")
        for statement, error in statements.items():
            print(f"{'FAILED' if error else 'OK':6}  {statement}")
            if error:
                print(f"        {error}")
                failed = True
    return 1 if failed else 0


def _run_apply(migrator: SchemaMigrator, hashes: Sequence[str]) -> int:
    errors = migrator.migrate(hashes)
    for digest, error in errors.items():
        print(f"FAILED  {digest}  {error}")
    print(f"{len(errors)} of {len(hashes)} selected statements failed.")
    return 1 if errors else 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 2
    if args.verbose:
        set_level(logging.DEBUG)

    schema_files = args.schema_files or list(CONFIG.migration.schema_files)
    if not schema_files:
        log.warning("No declaration files given; every live table counts as unused.")

    try:
        pool = ConnectionPool(CONFIG.db.connections, CONFIG.db.table_mapping)
        try:
            migrator = SchemaMigrator(pool, parse_schema_files(schema_files))
            if args.command == "diff":
                _print_diff(migrator)
            elif args.command == "suggest":
                _print_suggestions(migrator, args.remove, args.json)
            elif args.command == "install":
                return _run_install(migrator, args.create_only)
            elif args.command == "apply":
                return _run_apply(migrator, args.hashes)
        finally:
            pool.close_all()
    except (ConfigurationError, SchemaError, DatabaseError) as exc:
        log.error("%s failed: %s", args.command, exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
