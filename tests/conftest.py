"""
tests/conftest.py
-----------------
Shared fixtures: platforms, sample tables and MagicMock connections.
"""
from __future__ import annotations

from typing import Iterable
from unittest.mock import MagicMock

import pytest

from core.connection_pool import ConnectionPool
from core.platform import MySQLPlatform, Platform, SQLitePlatform
from core.schema import PRIMARY_INDEX_NAME, Column, ForeignKey, Index, Schema, Table
from core.types import ColumnType
from models.settings import ConnectionSettings


def uid_column() -> Column:
    return Column("uid", ColumnType.INTEGER, notnull=True, unsigned=True, autoincrement=True)


def int_column(name: str, default: str | None = "0") -> Column:
    return Column(name, ColumnType.INTEGER, notnull=True, default=default)


def varchar_column(name: str, length: int = 255, default: str | None = "") -> Column:
    return Column(name, ColumnType.STRING, notnull=True, default=default, length=length)


def primary_key(*columns: str) -> Index:
    return Index(PRIMARY_INDEX_NAME, tuple(columns), unique=True, primary=True)


def make_table(
    name: str,
    *columns: Column,
    indexes: Iterable[Index] = (),
    foreign_keys: Iterable[ForeignKey] = (),
    options=None,
) -> Table:
    return Table(
        name=name,
        columns=tuple(columns),
        indexes=tuple(indexes),
        foreign_keys=tuple(foreign_keys),
        options=dict(options or {}),
    )


def mock_connection(
    platform: Platform,
    live_tables: Iterable[Table] = (),
    server_version: str = "MySQL 8.0.36",
    table_options: dict | None = None,
    row_count: int = 0,
) -> MagicMock:
    """A MagicMock standing in for a connected DatabaseManager."""
    db = MagicMock()
    db.platform = platform
    db.database = "app"
    db.server_version = server_version
    db.introspect_schema.return_value = Schema.from_tables(live_tables, name="app")
    db.fetch_table_options.return_value = table_options or {}
    db.count_rows.return_value = row_count
    return db


def make_pool(connections: dict[str, MagicMock], table_mapping=None) -> ConnectionPool:
    settings = {name: ConnectionSettings(name=name) for name in connections}
    return ConnectionPool(settings, table_mapping, factory=lambda s: connections[s.name])


@pytest.fixture
def mysql() -> MySQLPlatform:
    return MySQLPlatform()


@pytest.fixture
def sqlite() -> SQLitePlatform:
    return SQLitePlatform()


@pytest.fixture
def items_table() -> Table:
    return make_table(
        "tx_ext_items",
        uid_column(),
        int_column("pid"),
        varchar_column("title"),
        indexes=[primary_key("uid"), Index("parent", ("pid",))],
    )
