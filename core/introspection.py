"""
core/introspection.py
---------------------
Reads the live schema of a connection from the database catalog.

    MySQL family  information_schema.COLUMNS / STATISTICS / KEY_COLUMN_USAGE
    PostgreSQL    information_schema.columns, pg_index, pg_constraint
    SQLite        PRAGMA table_info / index_list / index_info / foreign_key_list

Every reader returns the same :class:`Table` objects the declaration parser
produces, so the comparator never sees driver-specific shapes.  Column types
go through ``core.types.parse_sql_type``; an unknown live type is an error,
since a column that cannot be typed cannot be diffed.
"""
from __future__ import annotations

import re
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Callable

from core.schema import Column, ForeignKey, Index, PRIMARY_INDEX_NAME, Schema, Table
from core.types import parse_sql_type
from logger import get_logger

if TYPE_CHECKING:
    from core.database import DatabaseManager

log = get_logger(__name__)

_CAST_RE = re.compile(r"^\(?(.*?)\)?::[\w\s\[\]\"]+$")
_CURRENT_TIMESTAMP = frozenset({"current_timestamp", "current_timestamp()", "now()"})

_PG_ACTIONS = {
    "a": "NO ACTION",
    "r": "RESTRICT",
    "c": "CASCADE",
    "n": "SET NULL",
    "d": "SET DEFAULT",
}


def _text(value: Any) -> Any:
    # mysql-connector returns bytearray for some information_schema columns
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8")
    return value


def normalise_default(value: Any, strip_cast: bool = False) -> str | None:
    """
    Reduce a catalog default expression to the plain default value.

    Examples::

        normalise_default("'abc'")                       → "abc"
        normalise_default("NULL")                        → None
        normalise_default("'x'::character varying", True) → "x"
        normalise_default("current_timestamp()")         → "CURRENT_TIMESTAMP"
    """
    if value is None:
        return None
    text = str(_text(value)).strip()
    if strip_cast:
        text = _CAST_RE.sub(r"\1", text)
    if text.upper() == "NULL":
        return None
    if text.lower() in _CURRENT_TIMESTAMP:
        return "CURRENT_TIMESTAMP"
    if len(text) >= 2 and text[0] == text[-1] == "'":
        return text[1:-1].replace("''", "'")
    return text


def _column(
    name: str,
    type_string: str,
    nullable: bool,
    default: str | None,
    autoincrement: bool = False,
    comment: str | None = None,
    platform_options: dict[str, str] | None = None,
) -> Column:
    parsed = parse_sql_type(type_string)
    return Column(
        name=name,
        type=parsed.type,
        notnull=not nullable,
        default=None if autoincrement else default,
        length=parsed.length,
        precision=parsed.precision,
        scale=parsed.scale,
        unsigned=parsed.unsigned,
        fixed=parsed.fixed,
        autoincrement=autoincrement,
        comment=comment or None,
        platform_options={k: v for k, v in (platform_options or {}).items() if v},
    )


def _assemble(
    table_names: list[str],
    columns: dict[str, list[Column]],
    indexes: dict[str, list[Index]],
    foreign_keys: dict[str, list[ForeignKey]],
) -> list[Table]:
    return [
        Table(
            name=name,
            columns=tuple(columns.get(name, ())),
            indexes=tuple(indexes.get(name, ())),
            foreign_keys=tuple(foreign_keys.get(name, ())),
        )
        for name in table_names
    ]


# ---------------------------------------------------------------------------
# MySQL / MariaDB
# ---------------------------------------------------------------------------

def _read_mysql(db: "DatabaseManager") -> list[Table]:
    schema = (db.database,)
    table_names = [
        _text(row[0]) for row in db.query(
            "SELECT TABLE_NAME FROM information_schema.TABLES "
            "WHERE TABLE_SCHEMA = %s AND TABLE_TYPE = 'BASE TABLE' ORDER BY TABLE_NAME",
            schema,
        )
    ]

    columns: dict[str, list[Column]] = defaultdict(list)
    for row in db.query(
        "SELECT TABLE_NAME, COLUMN_NAME, COLUMN_TYPE, IS_NULLABLE, COLUMN_DEFAULT, EXTRA, "
        "COLUMN_COMMENT, CHARACTER_SET_NAME, COLLATION_NAME "
        "FROM information_schema.COLUMNS WHERE TABLE_SCHEMA = %s "
        "ORDER BY TABLE_NAME, ORDINAL_POSITION",
        schema,
    ):
        table, name, type_string, nullable, default, extra, comment, charset, collation = map(_text, row)
        columns[table].append(_column(
            name, type_string,
            nullable=nullable == "YES",
            default=normalise_default(default),
            autoincrement="auto_increment" in (extra or "").lower(),
            comment=comment,
            platform_options={"charset": charset, "collation": collation},
        ))

    index_rows: dict[tuple[str, str], list] = defaultdict(list)
    for row in db.query(
        "SELECT TABLE_NAME, INDEX_NAME, COLUMN_NAME, SUB_PART, NON_UNIQUE, INDEX_TYPE "
        "FROM information_schema.STATISTICS WHERE TABLE_SCHEMA = %s "
        "ORDER BY TABLE_NAME, INDEX_NAME, SEQ_IN_INDEX",
        schema,
    ):
        index_rows[(_text(row[0]), _text(row[1]))].append([_text(v) for v in row[2:]])

    indexes: dict[str, list[Index]] = defaultdict(list)
    for (table, name), rows in index_rows.items():
        primary = name.upper() == "PRIMARY"
        index_type = (rows[0][3] or "").lower()
        indexes[table].append(Index(
            name=PRIMARY_INDEX_NAME if primary else name,
            columns=tuple(f"{col}({sub})" if sub else col for col, sub, _, _ in rows),
            unique=primary or int(rows[0][2]) == 0,
            primary=primary,
            flags=(index_type,) if index_type in ("fulltext", "spatial") else (),
        ))

    fk_rows: dict[tuple[str, str], list] = defaultdict(list)
    for row in db.query(
        "SELECT k.TABLE_NAME, k.CONSTRAINT_NAME, k.COLUMN_NAME, k.REFERENCED_TABLE_NAME, "
        "k.REFERENCED_COLUMN_NAME, r.UPDATE_RULE, r.DELETE_RULE "
        "FROM information_schema.KEY_COLUMN_USAGE k "
        "JOIN information_schema.REFERENTIAL_CONSTRAINTS r "
        "ON r.CONSTRAINT_SCHEMA = k.CONSTRAINT_SCHEMA AND r.CONSTRAINT_NAME = k.CONSTRAINT_NAME "
        "AND r.TABLE_NAME = k.TABLE_NAME "
        "WHERE k.TABLE_SCHEMA = %s AND k.REFERENCED_TABLE_NAME IS NOT NULL "
        "ORDER BY k.TABLE_NAME, k.CONSTRAINT_NAME, k.ORDINAL_POSITION",
        schema,
    ):
        fk_rows[(_text(row[0]), _text(row[1]))].append([_text(v) for v in row[2:]])

    return _assemble(table_names, columns, indexes, _foreign_keys(fk_rows))


def fetch_mysql_table_options(db: "DatabaseManager") -> dict[str, dict[str, str]]:
    """Engine, row format, collation and comment of every base table."""
    options = {}
    for row in db.query(
        "SELECT TABLE_NAME, ENGINE, ROW_FORMAT, TABLE_COLLATION, TABLE_COMMENT "
        "FROM information_schema.TABLES WHERE TABLE_TYPE = 'BASE TABLE' AND TABLE_SCHEMA = %s",
        (db.database,),
    ):
        table, engine, row_format, collate, comment = map(_text, row)
        options[table] = {
            "engine": engine,
            "row_format": row_format,
            "collate": collate,
            "comment": comment,
        }
    return options


# ---------------------------------------------------------------------------
# PostgreSQL
# ---------------------------------------------------------------------------

def _pg_type_string(data_type: str, length: Any, precision: Any, scale: Any) -> str:
    if data_type == "character varying":
        return f"varchar({length})" if length else "varchar"
    if data_type == "character":
        return f"char({length})" if length else "char"
    if data_type == "numeric" and precision is not None:
        return f"numeric({precision},{scale or 0})"
    return data_type


def _read_postgresql(db: "DatabaseManager") -> list[Table]:
    table_names = [
        row[0] for row in db.query(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_type = 'BASE TABLE' ORDER BY table_name"
        )
    ]

    columns: dict[str, list[Column]] = defaultdict(list)
    for row in db.query(
        "SELECT c.table_name, c.column_name, c.data_type, c.character_maximum_length, "
        "c.numeric_precision, c.numeric_scale, c.is_nullable, c.column_default, "
        "pg_catalog.col_description(format('%%I.%%I', c.table_schema, c.table_name)::regclass::oid, "
        "c.ordinal_position) "
        "FROM information_schema.columns c WHERE c.table_schema = current_schema() "
        "ORDER BY c.table_name, c.ordinal_position",
        (),
    ):
        table, name, data_type, length, precision, scale, nullable, default, comment = row
        autoincrement = bool(default) and str(default).startswith("nextval(")
        columns[table].append(_column(
            name,
            _pg_type_string(data_type, length, precision, scale),
            nullable=nullable == "YES",
            default=normalise_default(default, strip_cast=True),
            autoincrement=autoincrement,
            comment=comment,
        ))

    index_rows: dict[tuple[str, str], list] = defaultdict(list)
    for table, name, unique, primary, column in db.query(
        "SELECT t.relname, i.relname, ix.indisunique, ix.indisprimary, a.attname "
        "FROM pg_index ix "
        "JOIN pg_class t ON t.oid = ix.indrelid "
        "JOIN pg_class i ON i.oid = ix.indexrelid "
        "JOIN pg_namespace n ON n.oid = t.relnamespace "
        "JOIN LATERAL unnest(ix.indkey) WITH ORDINALITY AS k(attnum, ord) ON true "
        "JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum "
        "WHERE n.nspname = current_schema() "
        "ORDER BY t.relname, i.relname, k.ord"
    ):
        index_rows[(table, name)].append((column, unique, primary))

    indexes: dict[str, list[Index]] = defaultdict(list)
    for (table, name), rows in index_rows.items():
        primary = bool(rows[0][2])
        indexes[table].append(Index(
            name=PRIMARY_INDEX_NAME if primary else name,
            columns=tuple(r[0] for r in rows),
            unique=bool(rows[0][1]),
            primary=primary,
        ))

    fk_rows: dict[tuple[str, str], list] = defaultdict(list)
    for table, name, column, foreign_table, foreign_column, on_update, on_delete in db.query(
        "SELECT cl.relname, c.conname, a.attname, fcl.relname, fa.attname, "
        "c.confupdtype, c.confdeltype "
        "FROM pg_constraint c "
        "JOIN pg_class cl ON cl.oid = c.conrelid "
        "JOIN pg_namespace n ON n.oid = cl.relnamespace "
        "JOIN pg_class fcl ON fcl.oid = c.confrelid "
        "JOIN LATERAL unnest(c.conkey, c.confkey) WITH ORDINALITY AS k(attnum, fattnum, ord) ON true "
        "JOIN pg_attribute a ON a.attrelid = c.conrelid AND a.attnum = k.attnum "
        "JOIN pg_attribute fa ON fa.attrelid = c.confrelid AND fa.attnum = k.fattnum "
        "WHERE c.contype = 'f' AND n.nspname = current_schema() "
        "ORDER BY cl.relname, c.conname, k.ord"
    ):
        fk_rows[(table, name)].append([
            column, foreign_table, foreign_column,
            _PG_ACTIONS.get(on_update), _PG_ACTIONS.get(on_delete),
        ])

    return _assemble(table_names, columns, indexes, _foreign_keys(fk_rows))


# ---------------------------------------------------------------------------
# SQLite
# ---------------------------------------------------------------------------

def _read_sqlite(db: "DatabaseManager") -> list[Table]:
    quote = db.platform.quote_single_identifier
    tables = db.query(
        "SELECT name, sql FROM sqlite_master "
        "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
    )

    columns: dict[str, list[Column]] = defaultdict(list)
    indexes: dict[str, list[Index]] = defaultdict(list)
    foreign_keys: dict[str, list[ForeignKey]] = defaultdict(list)

    for table, create_sql in tables:
        has_autoincrement = "AUTOINCREMENT" in (create_sql or "").upper()
        pk_columns = []
        for _cid, name, type_string, notnull, default, pk in db.query(f"PRAGMA table_info({quote(table)})"):
            autoincrement = has_autoincrement and pk == 1 and (type_string or "").upper() == "INTEGER"
            if pk:
                pk_columns.append((pk, name))
            columns[table].append(_column(
                name, type_string or "clob",
                nullable=not notnull and not autoincrement,
                default=normalise_default(default),
                autoincrement=autoincrement,
            ))
        if pk_columns:
            indexes[table].append(Index(
                name=PRIMARY_INDEX_NAME,
                columns=tuple(name for _, name in sorted(pk_columns)),
                unique=True,
                primary=True,
            ))

        for row in db.query(f"PRAGMA index_list({quote(table)})"):
            name, unique, origin = row[1], row[2], row[3]
            if origin == "pk":
                continue
            index_columns = [r[2] for r in sorted(db.query(f"PRAGMA index_info({quote(name)})"))]
            indexes[table].append(Index(name=name, columns=tuple(index_columns), unique=bool(unique)))

        fk_rows: dict[int, list] = defaultdict(list)
        for fk_id, _seq, foreign_table, local, foreign, on_update, on_delete, _match in db.query(
            f"PRAGMA foreign_key_list({quote(table)})"
        ):
            fk_rows[fk_id].append((local, foreign_table, foreign, on_update, on_delete))
        for fk_id, rows in sorted(fk_rows.items()):
            foreign_keys[table].append(ForeignKey(
                name=f"{table}_fk_{fk_id}",
                local_columns=tuple(r[0] for r in rows),
                foreign_table=rows[0][1],
                foreign_columns=tuple(r[2] for r in rows),
                on_update=rows[0][3],
                on_delete=rows[0][4],
            ))

    return _assemble([t for t, _ in tables], columns, indexes, foreign_keys)


def _foreign_keys(fk_rows: dict[tuple[str, str], list]) -> dict[str, list[ForeignKey]]:
    foreign_keys: dict[str, list[ForeignKey]] = defaultdict(list)
    for (table, name), rows in fk_rows.items():
        foreign_keys[table].append(ForeignKey(
            name=name,
            local_columns=tuple(r[0] for r in rows),
            foreign_table=rows[0][1],
            foreign_columns=tuple(r[2] for r in rows),
            on_update=rows[0][3],
            on_delete=rows[0][4],
        ))
    return foreign_keys


_READERS: dict[str, Callable[["DatabaseManager"], list[Table]]] = {
    "mysql": _read_mysql,
    "postgresql": _read_postgresql,
    "sqlite": _read_sqlite,
}


def introspect_schema(db: "DatabaseManager") -> Schema:
    """Read every base table of *db* into a :class:`Schema`."""
    tables = _READERS[db.platform.name](db)
    log.debug("Introspected %d tables on '%s'.", len(tables), db.settings.name)
    return Schema.from_tables(tables, name=db.database)
