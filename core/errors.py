"""
core/errors.py
--------------
Exception hierarchy shared by the schema migrator.

Design Decisions:
    * Schema errors (bad declarations, unknown types, no SQL dialect for a
      platform) are never recovered locally; they indicate a declaration or
      setup that must be fixed at the source.
    * Database errors wrap the driver exception and keep its message so the
      installer can report it next to the failing statement.
"""
from __future__ import annotations


class SchemaError(Exception):
    """Raised when a schema declaration or schema object is invalid."""


class SchemaParseError(SchemaError):
    """Raised when a schema declaration file cannot be read or parsed."""


class UnknownColumnTypeError(SchemaError):
    """Raised when a SQL column type keyword has no logical type mapping."""


class UnsupportedPlatformError(SchemaError):
    """Raised when no SQL dialect is registered for a platform name."""


class ConfigurationError(Exception):
    """Raised when a connection is requested that is not configured."""


class DatabaseError(Exception):
    """Raised for database-level failures reported by a driver."""


class ConnectionLostError(DatabaseError):
    """Raised when the connection to the database is detected as lost."""
