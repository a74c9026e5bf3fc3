"""Pydantic schemas for API request/response models."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

__all__ = [
    'HealthResponse',
    'SuggestionsResponse',
    'ApplyRequest',
    'ApplyResponse',
    'InstallRequest',
    'InstallResponse',
    'ConnectionInfo',
    'ConnectionsResponse',
]


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: datetime
    version: str


class SuggestionsResponse(BaseModel):
    """
    Update suggestions per connection.

    ``connections[name][suggestion type][hash]`` is the statement, the
    current column declaration (``change_currentValue``) or a row count
    (``tables_count``).
    """
    remove: bool
    connections: Dict[str, Dict[str, Dict[str, Any]]]


class ApplyRequest(BaseModel):
    """Hashes of the suggested statements to execute."""
    hashes: List[str] = Field(default_factory=list)


class ApplyResponse(BaseModel):
    """Driver error message per failed statement hash."""
    errors: Dict[str, str]


class InstallRequest(BaseModel):
    create_only: bool = False


class InstallResponse(BaseModel):
    """Per connection, every executed statement with its error message ("" on success)."""
    results: Dict[str, Dict[str, str]]


class ConnectionInfo(BaseModel):
    """A configured connection (never includes the password)."""
    name: str
    driver: str
    host: str
    port: Optional[int] = None
    user: str = ""
    database: str = ""
    path: str = ""
    is_default: bool = False
    tables: List[str] = Field(default_factory=list)


class ConnectionsResponse(BaseModel):
    connections: List[ConnectionInfo]
