"""
core/schema_parser.py
---------------------
Parses extension schema declaration files (``ext_tables.sql`` style) into
partial :class:`~core.schema.Table` objects.

File Format (supported)::

    # comments are ignored (lines starting with # or --, and /* ... */)
    CREATE TABLE tx_ext_items (
        uid int(11) unsigned NOT NULL auto_increment,
        title varchar(255) DEFAULT '' NOT NULL,
        bodytext mediumtext,
        parent int(11) DEFAULT '0' NOT NULL COMMENT 'parent record',

        PRIMARY KEY (uid),
        KEY parent (parent),
        UNIQUE KEY title (title(20)),
        FULLTEXT KEY search (bodytext),
        CONSTRAINT fk_parent FOREIGN KEY (parent) REFERENCES tx_ext_items (uid) ON DELETE CASCADE
    ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;

Design Decisions:
    * Only ``CREATE TABLE`` statements are read.  Every other statement is
      skipped with a debug log, so declaration files may carry data inserts.
    * A declaration is partial by nature: it only lists what one extension
      adds to a table.  The merger combines partial declarations later; the
      parser never fills in missing parts.
    * Unknown column types are errors.  They are reported as
      :class:`SchemaParseError` naming the file and table.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, NamedTuple

from core.errors import SchemaError, SchemaParseError
from core.introspection import normalise_default
from core.schema import PRIMARY_INDEX_NAME, Column, ForeignKey, Index, Table
from core.types import parse_sql_type
from logger import get_logger

log = get_logger(__name__)

_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.S)
_LINE_COMMENT_RE = re.compile(r"^\s*(#|--)")

_IDENTIFIER = r"`[^`]+`|\"[^\"]+\"|[\w$]+"

_CREATE_RE = re.compile(
    rf"^CREATE\s+(?:TEMPORARY\s+)?TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?(?P<name>{_IDENTIFIER})\s*\(",
    re.I,
)
_COLUMN_RE = re.compile(
    rf"^(?P<name>{_IDENTIFIER})\s+"
    r"(?P<type>[a-z]\w*(?:\s+(?:precision|varying))?)\s*(?:\((?P<args>[^)]*)\))?"
    r"(?P<rest>.*)$",
    re.I | re.S,
)
_QUOTED = r"'(?:[^'\\]|\\.|'')*'"
_COMMENT_ATTR_RE = re.compile(rf"\bCOMMENT\s+(?P<value>{_QUOTED})", re.I)
_DEFAULT_ATTR_RE = re.compile(
    rf"\bDEFAULT\s+(?P<value>{_QUOTED}|\"[^\"]*\"|[\w.+-]+(?:\(\))?)", re.I,
)
_CHARSET_ATTR_RE = re.compile(r"\b(?:CHARACTER\s+SET|CHARSET)\s+(?P<value>\w+)", re.I)
_COLLATE_ATTR_RE = re.compile(r"\bCOLLATE\s+(?P<value>\w+)", re.I)
_REFERENCES_RE = re.compile(
    rf"REFERENCES\s+(?P<table>{_IDENTIFIER})\s*\((?P<columns>[^)]*)\)(?P<rest>.*)$",
    re.I | re.S,
)
_ACTION_RE = re.compile(
    r"ON\s+(?P<event>DELETE|UPDATE)\s+"
    r"(?P<action>RESTRICT|CASCADE|SET\s+NULL|SET\s+DEFAULT|NO\s+ACTION)",
    re.I,
)
_TABLE_OPTION_RE = re.compile(
    r"(?P<key>ENGINE|(?:DEFAULT\s+)?(?:CHARACTER\s+SET|CHARSET)|(?:DEFAULT\s+)?COLLATE|ROW_FORMAT|COMMENT)"
    rf"\s*=?\s*(?P<value>{_QUOTED}|\w+)",
    re.I,
)
_COLUMN_REF_RE = re.compile(r"^(?P<name>`[^`]+`|\"[^\"]+\"|[\w$]+)\s*(?P<length>\(\d+\))?")
_LEADING_WORD_RE = re.compile(r"\w+")
_CHECK_RE = re.compile(r"^(?:CONSTRAINT\s+\S+\s+)?CHECK\b", re.I)
_FOREIGN_KEY_RE = re.compile(r"^(?:CONSTRAINT\s+\S+\s+)?FOREIGN\s+KEY\b", re.I)

_KEY_KEYWORDS = frozenset({"PRIMARY", "UNIQUE", "FULLTEXT", "SPATIAL", "KEY", "INDEX", "CONSTRAINT", "FOREIGN", "CHECK"})
_INDEX_FLAGS = {"FULLTEXT": "fulltext", "SPATIAL": "spatial"}


class _TableParts(NamedTuple):
    columns: list[Column]
    indexes: list[Index]
    foreign_keys: list[ForeignKey]


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def _unquote(identifier: str) -> str:
    identifier = identifier.strip()
    if len(identifier) >= 2 and identifier[0] == identifier[-1] and identifier[0] in "`\"":
        return identifier[1:-1]
    return identifier


def _unquote_literal(literal: str) -> str:
    inner = literal[1:-1]
    return inner.replace("''", "'").replace("\\'", "'")


def _strip_comments(text: str) -> str:
    text = _BLOCK_COMMENT_RE.sub("", text)
    return "\n".join(line for line in text.splitlines() if not _LINE_COMMENT_RE.match(line))


def _split_top_level(text: str, separator: str) -> list[str]:
    """Split *text* at *separator* outside of parentheses and quotes."""
    parts: list[str] = []
    depth = 0
    quote: str | None = None
    current: list[str] = []
    previous = ""
    for char in text:
        if quote:
            if char == quote and previous != "\\":
                quote = None
        elif char in "'\"`":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif char == separator and depth == 0:
            parts.append("".join(current))
            current = []
            previous = char
            continue
        current.append(char)
        previous = char
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


def _closing_paren(text: str, start: int) -> int:
    """Index of the parenthesis closing the one at *start*; -1 if unbalanced."""
    depth = 0
    quote: str | None = None
    for position in range(start, len(text)):
        char = text[position]
        if quote:
            if char == quote and text[position - 1] != "\\":
                quote = None
        elif char in "'\"`":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return position
    return -1


def _column_references(text: str) -> tuple[str, ...]:
    """``"`title`(20), pid DESC"`` → ``("title(20)", "pid")``."""
    references = []
    for part in _split_top_level(text, ","):
        match = _COLUMN_REF_RE.match(part)
        if match:
            references.append(_unquote(match.group("name")) + (match.group("length") or ""))
    return tuple(references)


# ---------------------------------------------------------------------------
# Table elements
# ---------------------------------------------------------------------------

def parse_column_definition(definition: str) -> tuple[Column, bool, bool]:
    """
    Parse one column line of a CREATE TABLE body.

    Returns:
        ``(column, inline_primary_key, inline_unique)``

    Raises:
        SchemaError: If the line is not a column definition or its type is
                     unknown.

    Example::

        column, primary, unique = parse_column_definition(
            "uid int(11) unsigned NOT NULL auto_increment"
        )
        # column.unsigned is True, column.autoincrement is True
    """
    match = _COLUMN_RE.match(definition.strip())
    if not match:
        raise SchemaError(f"Unrecognised column definition {definition!r}.")

    rest = match.group("rest")
    comment = None
    comment_match = _COMMENT_ATTR_RE.search(rest)
    if comment_match:
        comment = _unquote_literal(comment_match.group("value"))
        rest = rest[:comment_match.start()] + rest[comment_match.end():]

    default = None
    default_match = _DEFAULT_ATTR_RE.search(rest)
    if default_match:
        value = default_match.group("value")
        if value.startswith('"'):
            value = "'" + value[1:-1] + "'"
        default = normalise_default(value)
        rest = rest[:default_match.start()] + rest[default_match.end():]

    words = rest.upper().split()
    flags = " ".join(words)
    type_string = match.group("type")
    if match.group("args") is not None:
        type_string += f"({match.group('args')})"
    if "UNSIGNED" in words:
        type_string += " unsigned"

    parsed = parse_sql_type(type_string)
    autoincrement = "AUTO_INCREMENT" in words or "AUTOINCREMENT" in words
    platform_options = {}
    charset_match = _CHARSET_ATTR_RE.search(rest)
    if charset_match:
        platform_options["charset"] = charset_match.group("value")
    collate_match = _COLLATE_ATTR_RE.search(rest)
    if collate_match:
        platform_options["collation"] = collate_match.group("value")

    column = Column(
        name=_unquote(match.group("name")),
        type=parsed.type,
        notnull="NOT NULL" in flags,
        default=None if autoincrement else default,
        length=parsed.length,
        precision=parsed.precision,
        scale=parsed.scale,
        unsigned=parsed.unsigned,
        fixed=parsed.fixed,
        autoincrement=autoincrement,
        comment=comment or None,
        platform_options=platform_options,
    )
    return column, "PRIMARY KEY" in flags, "UNIQUE" in words


def _parse_foreign_key(table_name: str, definition: str, position: int) -> ForeignKey:
    name = None
    words = definition.split(None, 2)
    if words[0].upper() == "CONSTRAINT":
        if words[1].upper() != "FOREIGN":
            name = _unquote(words[1])
            definition = words[2]
        else:
            definition = definition.split(None, 1)[1]

    start = definition.find("(")
    end = _closing_paren(definition, start) if start >= 0 else -1
    references = _REFERENCES_RE.search(definition[end + 1:]) if end >= 0 else None
    if references is None:
        raise SchemaError(f"Unrecognised foreign key definition {definition!r}.")

    head = definition[:start].split()
    if not name and len(head) > 2:
        name = _unquote(head[2])

    actions = {
        m.group("event").lower(): " ".join(m.group("action").upper().split())
        for m in _ACTION_RE.finditer(references.group("rest"))
    }
    return ForeignKey(
        name=name or f"{table_name}_ibfk_{position}",
        local_columns=_column_references(definition[start + 1:end]),
        foreign_table=_unquote(references.group("table")),
        foreign_columns=_column_references(references.group("columns")),
        on_update=actions.get("update"),
        on_delete=actions.get("delete"),
    )


def _parse_index(definition: str) -> Index:
    start = definition.find("(")
    end = _closing_paren(definition, start) if start >= 0 else -1
    if end < 0:
        raise SchemaError(f"Unrecognised index definition {definition!r}.")

    head = definition[:start].split()
    constraint_name = None
    if head and head[0].upper() == "CONSTRAINT":
        if len(head) > 1 and head[1].upper() not in _KEY_KEYWORDS:
            constraint_name = _unquote(head[1])
            head = head[2:]
        else:
            head = head[1:]
    keywords = {w.upper() for w in head}
    columns = _column_references(definition[start + 1:end])

    if "PRIMARY" in keywords:
        return Index(PRIMARY_INDEX_NAME, columns, unique=True, primary=True)

    names = [_unquote(w) for w in head if w.upper() not in _KEY_KEYWORDS]
    name = names[0] if names else constraint_name or columns[0].split("(")[0]
    return Index(
        name=name,
        columns=columns,
        unique="UNIQUE" in keywords,
        flags=tuple(flag for keyword, flag in _INDEX_FLAGS.items() if keyword in keywords),
    )


def _parse_body(table_name: str, body: str) -> _TableParts:
    parts = _TableParts([], [], [])
    for definition in _split_top_level(body, ","):
        leading = _LEADING_WORD_RE.match(definition)
        keyword = leading.group().upper() if leading else ""

        if _CHECK_RE.match(definition):
            log.debug("Skipping CHECK constraint on '%s': %s", table_name, definition)
            continue
        if _FOREIGN_KEY_RE.match(definition):
            parts.foreign_keys.append(
                _parse_foreign_key(table_name, definition, len(parts.foreign_keys) + 1)
            )
            continue
        if keyword in _KEY_KEYWORDS:
            parts.indexes.append(_parse_index(definition))
            continue

        column, primary, unique = parse_column_definition(definition)
        parts.columns.append(column)
        if primary:
            parts.indexes.append(Index(PRIMARY_INDEX_NAME, (column.name,), unique=True, primary=True))
        elif unique:
            parts.indexes.append(Index(column.name, (column.name,), unique=True))
    return parts


def _parse_table_options(text: str) -> dict[str, str]:
    options: dict[str, str] = {}
    for match in _TABLE_OPTION_RE.finditer(text):
        key = " ".join(match.group("key").lower().split()).replace("default ", "")
        value = match.group("value")
        if value.startswith("'"):
            value = _unquote_literal(value)
        if key in ("character set", "charset"):
            key = "charset"
        options[key] = value
    return options


def parse_create_table(statement: str) -> Table | None:
    """
    Parse a single ``CREATE TABLE`` statement.

    Returns:
        The declared (partial) table, or ``None`` if *statement* is not a
        CREATE TABLE statement.

    Raises:
        SchemaError: On malformed table elements or unknown column types.
    """
    match = _CREATE_RE.match(statement.strip())
    if not match:
        return None

    text = statement.strip()
    open_paren = match.end() - 1
    close_paren = _closing_paren(text, open_paren)
    if close_paren < 0:
        raise SchemaError("Unbalanced parentheses in CREATE TABLE statement.")

    name = _unquote(match.group("name"))
    parts = _parse_body(name, text[open_paren + 1:close_paren])
    return Table(
        name=name,
        columns=tuple(parts.columns),
        indexes=tuple(parts.indexes),
        foreign_keys=tuple(parts.foreign_keys),
        options=_parse_table_options(text[close_paren + 1:]),
    )


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

def parse_schema_text(text: str, source: str = "<string>") -> list[Table]:
    """Parse every CREATE TABLE statement in *text*, in declaration order."""
    tables: list[Table] = []
    for statement in _split_top_level(_strip_comments(text), ";"):
        try:
            table = parse_create_table(statement)
        except SchemaError as exc:
            raise SchemaParseError(f"{source}: {exc}") from exc
        if table is None:
            log.debug("%s: skipping non CREATE TABLE statement: %.80s", source, statement)
            continue
        tables.append(table)
    return tables


def parse_schema_file(file_path: str | Path) -> list[Table]:
    """
    Parse a schema declaration file.

    Args:
        file_path: Path to the ``.sql`` declaration file.

    Returns:
        The declared tables in file order.  Returns an empty list if the file
        does not exist.

    Raises:
        SchemaParseError: If the file cannot be read or contains a malformed
                          CREATE TABLE statement.
    """
    path = Path(file_path)
    if not path.exists():
        log.warning("Schema file not found: %s", path)
        return []

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SchemaParseError(f"Cannot read schema file '{path}': {exc}") from exc

    tables = parse_schema_text(text, source=str(path))
    log.info(
        "Parsed schema file '%s': %d table(s), %d column(s) total.",
        path.name, len(tables), sum(len(t.columns) for t in tables),
    )
    return tables


def parse_schema_files(paths: Iterable[str | Path]) -> list[Table]:
    """Parse several declaration files; tables keep file and declaration order."""
    tables: list[Table] = []
    for path in paths:
        tables.extend(parse_schema_file(path))
    return tables
