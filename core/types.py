"""
core/types.py
-------------
Logical column types and the mapping from SQL type keywords onto them.

Every column, whether declared in an extension file or read back from a live
database, is reduced to a :class:`ColumnType` plus its length / precision /
scale / unsigned / fixed attributes.  Platforms render the logical type back
into their own declaration (see ``core/platform.py``).

Design Decision:
    The keyword table encodes domain knowledge as data (frozensets + a lookup
    table) rather than a nested if/else tree, and is resolved once at import
    time.  Unknown keywords are a hard error: a declaration we cannot type is
    a declaration we cannot diff.
"""
from __future__ import annotations

import re
from enum import Enum
from typing import NamedTuple

from core.errors import UnknownColumnTypeError


class ColumnType(str, Enum):
    SMALLINT = "smallint"
    INTEGER = "integer"
    BIGINT = "bigint"
    BOOLEAN = "boolean"
    DECIMAL = "decimal"
    FLOAT = "float"
    STRING = "string"
    TEXT = "text"
    BINARY = "binary"
    BLOB = "blob"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    JSON = "json"
    GUID = "guid"


INTEGER_TYPES = frozenset({ColumnType.SMALLINT, ColumnType.INTEGER, ColumnType.BIGINT})
NUMERIC_TYPES = INTEGER_TYPES | {ColumnType.DECIMAL, ColumnType.FLOAT, ColumnType.BOOLEAN}
LENGTH_TYPES = frozenset({ColumnType.STRING, ColumnType.BINARY, ColumnType.TEXT, ColumnType.BLOB})

# Storage sizes of the MySQL text/blob family, used to pick the declaration back.
TINY_LENGTH = 255
TEXT_LENGTH = 65535
MEDIUM_LENGTH = 16777215

_KEYWORDS: dict[str, tuple[ColumnType, int | None]] = {
    "tinyint": (ColumnType.SMALLINT, None),
    "smallint": (ColumnType.SMALLINT, None),
    "int2": (ColumnType.SMALLINT, None),
    "mediumint": (ColumnType.INTEGER, None),
    "int": (ColumnType.INTEGER, None),
    "integer": (ColumnType.INTEGER, None),
    "int4": (ColumnType.INTEGER, None),
    "serial": (ColumnType.INTEGER, None),
    "bigint": (ColumnType.BIGINT, None),
    "int8": (ColumnType.BIGINT, None),
    "bigserial": (ColumnType.BIGINT, None),
    "bool": (ColumnType.BOOLEAN, None),
    "boolean": (ColumnType.BOOLEAN, None),
    "decimal": (ColumnType.DECIMAL, None),
    "numeric": (ColumnType.DECIMAL, None),
    "fixed": (ColumnType.DECIMAL, None),
    "float": (ColumnType.FLOAT, None),
    "double": (ColumnType.FLOAT, None),
    "real": (ColumnType.FLOAT, None),
    "float8": (ColumnType.FLOAT, None),
    "char": (ColumnType.STRING, None),
    "character": (ColumnType.STRING, None),
    "varchar": (ColumnType.STRING, None),
    "tinytext": (ColumnType.TEXT, TINY_LENGTH),
    "text": (ColumnType.TEXT, TEXT_LENGTH),
    "clob": (ColumnType.TEXT, None),
    "mediumtext": (ColumnType.TEXT, MEDIUM_LENGTH),
    "longtext": (ColumnType.TEXT, None),
    "binary": (ColumnType.BINARY, None),
    "varbinary": (ColumnType.BINARY, None),
    "tinyblob": (ColumnType.BLOB, TINY_LENGTH),
    "blob": (ColumnType.BLOB, TEXT_LENGTH),
    "mediumblob": (ColumnType.BLOB, MEDIUM_LENGTH),
    "longblob": (ColumnType.BLOB, None),
    "bytea": (ColumnType.BLOB, None),
    "date": (ColumnType.DATE, None),
    "datetime": (ColumnType.DATETIME, None),
    "timestamp": (ColumnType.DATETIME, None),
    "time": (ColumnType.TIME, None),
    "json": (ColumnType.JSON, None),
    "jsonb": (ColumnType.JSON, None),
    "uuid": (ColumnType.GUID, None),
}

_FIXED_KEYWORDS = frozenset({"char", "character", "binary"})

_TYPE_RE = re.compile(
    r"^(?P<base>[a-z][a-z0-9_]*)\s*(?:\((?P<args>[^)]*)\))?\s*(?P<rest>.*)$"
)

# Multi-word spellings (mostly PostgreSQL catalog output) → single keyword
_PHRASES = (
    ("double precision", "double"),
    ("character varying", "varchar"),
    ("timestamp without time zone", "timestamp"),
    ("timestamp with time zone", "timestamp"),
    ("time without time zone", "time"),
    ("time with time zone", "time"),
)


class ParsedType(NamedTuple):
    """Structured breakdown of a SQL column type string."""
    type: ColumnType
    length: int | None = None
    precision: int | None = None
    scale: int | None = None
    unsigned: bool = False
    fixed: bool = False


def get_base_type(dtype_string: str) -> str:
    """
    Extract the base SQL type keyword from a full type definition string.

    Examples::

        get_base_type("VARCHAR(255) NOT NULL")  →  "varchar"
        get_base_type("INT UNSIGNED")           →  "int"
        get_base_type("")                       →  ""
    """
    if not dtype_string:
        return ""
    return dtype_string.split("(")[0].split()[0].lower()


def parse_sql_type(type_string: str) -> ParsedType:
    """
    Map a SQL type string onto a :class:`ParsedType`.

    Args:
        type_string: e.g. ``"varchar(255)"``, ``"int(11) unsigned"``,
                     ``"decimal(10,2)"``, ``"mediumtext"``.

    Raises:
        UnknownColumnTypeError: If the base keyword is not a known type.

    Examples::

        parse_sql_type("int(11) unsigned")  → ParsedType(INTEGER, unsigned=True)
        parse_sql_type("tinyint(1)")        → ParsedType(BOOLEAN)
        parse_sql_type("char(32)")          → ParsedType(STRING, length=32, fixed=True)
    """
    text = " ".join((type_string or "").lower().split())
    for phrase, keyword in _PHRASES:
        if text.startswith(phrase):
            text = keyword + text[len(phrase):]
            break

    match = _TYPE_RE.match(text)
    if not match:
        raise UnknownColumnTypeError(f"Cannot parse column type {type_string!r}.")

    base = match.group("base")
    args = [a.strip() for a in (match.group("args") or "").split(",") if a.strip()]
    rest = match.group("rest")

    if base not in _KEYWORDS:
        raise UnknownColumnTypeError(f"Unknown column type {type_string!r}.")

    column_type, implied_length = _KEYWORDS[base]
    unsigned = "unsigned" in rest.split()

    if base == "tinyint" and args == ["1"]:
        return ParsedType(ColumnType.BOOLEAN)

    if column_type == ColumnType.DECIMAL:
        precision = int(args[0]) if args else 10
        scale = int(args[1]) if len(args) > 1 else 0
        return ParsedType(column_type, precision=precision, scale=scale, unsigned=unsigned)

    if column_type in (ColumnType.STRING, ColumnType.BINARY):
        length = int(args[0]) if args and args[0].isdigit() else TINY_LENGTH
        return ParsedType(column_type, length=length, fixed=base in _FIXED_KEYWORDS)

    if column_type in (ColumnType.TEXT, ColumnType.BLOB):
        return ParsedType(column_type, length=implied_length)

    return ParsedType(column_type, unsigned=unsigned)
