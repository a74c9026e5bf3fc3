"""core/__init__.py"""
from core.errors import (
    ConfigurationError,
    ConnectionLostError,
    DatabaseError,
    SchemaError,
    SchemaParseError,
    UnknownColumnTypeError,
    UnsupportedPlatformError,
)
from core.schema import DELETED_PREFIX, Column, ForeignKey, Index, Schema, Table
from core.diff import ColumnDiff, SchemaDiff, TableDiff
from core.platform import Platform, get_platform
from core.connection_pool import ConnectionPool
from core.migrator import ConnectionMigrator
from core.schema_migrator import SchemaMigrator
from core.schema_parser import parse_schema_file, parse_schema_files
from core.suggestions import SuggestionType, statement_hash

__all__ = [
    "ConfigurationError",
    "ConnectionLostError",
    "DatabaseError",
    "SchemaError",
    "SchemaParseError",
    "UnknownColumnTypeError",
    "UnsupportedPlatformError",
    "DELETED_PREFIX",
    "Column",
    "ForeignKey",
    "Index",
    "Schema",
    "Table",
    "ColumnDiff",
    "SchemaDiff",
    "TableDiff",
    "Platform",
    "get_platform",
    "ConnectionPool",
    "ConnectionMigrator",
    "SchemaMigrator",
    "parse_schema_file",
    "parse_schema_files",
    "SuggestionType",
    "statement_hash",
]
