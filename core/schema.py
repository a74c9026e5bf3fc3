"""
core/schema.py
--------------
Immutable value objects describing a database schema.

Design Decisions:
    * All objects are frozen dataclasses.  Transformations (merging, platform
      normalisation, deletion staging) build new objects with
      ``dataclasses.replace`` instead of mutating shared instances.
    * Names are matched case-insensitively; collections keep declaration order.
    * The primary key is modelled as an :class:`Index` named ``primary``.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Any, Iterable

from core.types import ColumnType

DELETED_PREFIX = "zzz_deleted_"
PRIMARY_INDEX_NAME = "primary"

_LENGTH_SUFFIX_RE = re.compile(r"\(\d+\)$")


def is_staged_for_deletion(name: str) -> bool:
    """Return True if *name* already carries the deletion prefix."""
    return name.lower().startswith(DELETED_PREFIX)


def strip_length_suffix(column_reference: str) -> str:
    """``"title(20)"`` → ``"title"``; other references are returned unchanged."""
    return _LENGTH_SUFFIX_RE.sub("", column_reference)


@dataclass(frozen=True)
class Column:
    name: str
    type: ColumnType
    notnull: bool = False
    default: str | None = None
    length: int | None = None
    precision: int | None = None
    scale: int | None = None
    unsigned: bool = False
    fixed: bool = False
    autoincrement: bool = False
    comment: str | None = None
    platform_options: dict[str, str] = field(default_factory=dict)

    def renamed(self, new_name: str) -> "Column":
        return replace(self, name=new_name)


@dataclass(frozen=True)
class Index:
    name: str
    columns: tuple[str, ...]
    unique: bool = False
    primary: bool = False
    flags: tuple[str, ...] = ()
    options: dict[str, Any] = field(default_factory=dict)

    @property
    def unquoted_columns(self) -> tuple[str, ...]:
        return tuple(c.strip('`"[]') for c in self.columns)

    def has_flag(self, flag: str) -> bool:
        return flag.lower() in (f.lower() for f in self.flags)

    def spans_columns(self, other: "Index") -> bool:
        """True if both indexes cover the same column references in the same order."""
        mine = [c.lower() for c in self.unquoted_columns]
        theirs = [c.lower() for c in other.unquoted_columns]
        return mine == theirs

    def is_equivalent(self, other: "Index") -> bool:
        """Same columns, uniqueness, primary-ness and flags; names are ignored."""
        return (
            self.spans_columns(other)
            and self.unique == other.unique
            and self.primary == other.primary
            and sorted(f.lower() for f in self.flags) == sorted(f.lower() for f in other.flags)
        )


@dataclass(frozen=True)
class ForeignKey:
    name: str
    local_columns: tuple[str, ...]
    foreign_table: str
    foreign_columns: tuple[str, ...]
    on_update: str | None = None
    on_delete: str | None = None

    def is_equivalent(self, other: "ForeignKey") -> bool:
        """Structural equality; the constraint name is ignored."""
        return (
            [c.lower() for c in self.local_columns] == [c.lower() for c in other.local_columns]
            and self.foreign_table.lower() == other.foreign_table.lower()
            and [c.lower() for c in self.foreign_columns] == [c.lower() for c in other.foreign_columns]
            and _action(self.on_update) == _action(other.on_update)
            and _action(self.on_delete) == _action(other.on_delete)
        )


def _action(action: str | None) -> str:
    # NO ACTION and RESTRICT behave identically for immediate constraints
    normalised = (action or "NO ACTION").upper()
    return "NO ACTION" if normalised == "RESTRICT" else normalised


@dataclass(frozen=True)
class Table:
    name: str
    columns: tuple[Column, ...] = ()
    indexes: tuple[Index, ...] = ()
    foreign_keys: tuple[ForeignKey, ...] = ()
    options: dict[str, str] = field(default_factory=dict)

    def get_column(self, name: str) -> Column | None:
        lowered = name.lower()
        return next((c for c in self.columns if c.name.lower() == lowered), None)

    def has_column(self, name: str) -> bool:
        return self.get_column(name) is not None

    def get_index(self, name: str) -> Index | None:
        lowered = name.lower()
        return next((i for i in self.indexes if i.name.lower() == lowered), None)

    def get_foreign_key(self, name: str) -> ForeignKey | None:
        lowered = name.lower()
        return next((fk for fk in self.foreign_keys if fk.name.lower() == lowered), None)

    @property
    def primary_key(self) -> Index | None:
        return next((i for i in self.indexes if i.primary), None)

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def with_options(self, options: dict[str, str]) -> "Table":
        return replace(self, options={**self.options, **options})


@dataclass(frozen=True)
class Schema:
    """The complete set of tables of one connection."""
    tables: tuple[Table, ...] = ()
    name: str | None = None

    @classmethod
    def from_tables(cls, tables: Iterable[Table], name: str | None = None) -> "Schema":
        return cls(tables=tuple(tables), name=name)

    def get_table(self, name: str) -> Table | None:
        lowered = name.lower()
        return next((t for t in self.tables if t.name.lower() == lowered), None)

    def has_table(self, name: str) -> bool:
        return self.get_table(name) is not None

    @property
    def table_names(self) -> list[str]:
        return [t.name for t in self.tables]
