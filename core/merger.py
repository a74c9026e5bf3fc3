"""
core/merger.py
--------------
Merges partial table declarations contributed by several extensions into one
table per name.

Example::

    ext_a:  CREATE TABLE pages (uid int, title varchar(255));
    ext_b:  CREATE TABLE pages (tx_b_flag tinyint(1), title varchar(100));

    merged: pages(uid int, title varchar(100), tx_b_flag tinyint(1))

Design Decision:
    Merging is forgiving: when two declarations define the same column, index,
    foreign key or option, the later one wins and the first position is kept.
    A conflicting column *type* is not an error, but it is logged as a warning
    naming both declarations so the conflict is visible.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Iterable, TypeVar

from core.router import ConnectionRouter
from core.schema import Table
from logger import get_logger

log = get_logger(__name__)

_T = TypeVar("_T")


def _union(first: Iterable[_T], second: Iterable[_T], key) -> tuple[_T, ...]:
    merged: dict[str, _T] = {}
    for item in (*first, *second):
        merged[key(item).lower()] = item
    return tuple(merged.values())


def _merge_pair(existing: Table, incoming: Table) -> Table:
    for column in incoming.columns:
        previous = existing.get_column(column.name)
        if previous is not None and previous.type != column.type:
            log.warning(
                "Conflicting declarations for %s.%s: %s replaced by %s.",
                existing.name, column.name, previous.type.value, column.type.value,
            )
    return replace(
        existing,
        columns=_union(existing.columns, incoming.columns, lambda c: c.name),
        indexes=_union(existing.indexes, incoming.indexes, lambda i: i.name),
        foreign_keys=_union(existing.foreign_keys, incoming.foreign_keys, lambda fk: fk.name),
        options={**existing.options, **incoming.options},
    )


def merge_table_definitions(
    tables: Iterable[Table],
    router: ConnectionRouter | None = None,
    connection_name: str | None = None,
) -> dict[str, Table]:
    """
    Merge *tables* by name and keep those routed to *connection_name*.

    Args:
        tables:          Partial declarations in extension load order.
        router:          Decides table ownership; without one every table is kept.
        connection_name: Connection being built.

    Returns:
        ``{table name: merged Table}`` in first-declaration order.
    """
    merged: dict[str, Table] = {}
    names: dict[str, str] = {}
    for table in tables:
        key = table.name.lower()
        if key in merged:
            merged[key] = _merge_pair(merged[key], table)
        else:
            merged[key] = table
            names[key] = table.name

    result = {}
    for key, table in merged.items():
        if router is not None and connection_name is not None \
                and router.connection_for(table.name) != connection_name:
            continue
        result[names[key]] = table
    return result
