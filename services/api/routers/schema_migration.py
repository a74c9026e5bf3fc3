"""
Schema Migration API Routes
REST API endpoints for listing update suggestions and applying them.
"""
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, Query

from config import CONFIG
from core.connection_pool import ConnectionPool
from core.schema_migrator import SchemaMigrator
from core.schema_parser import parse_schema_files
from logger import get_logger
from services.api.schemas import (
    ApplyRequest,
    ApplyResponse,
    ConnectionInfo,
    ConnectionsResponse,
    InstallRequest,
    InstallResponse,
    SuggestionsResponse,
)

log = get_logger(__name__)

router = APIRouter(prefix="/schema-migration", tags=["Schema Migration"])


# ==========================================
# DEPENDENCIES
# ==========================================

def get_connection_pool() -> Iterator[ConnectionPool]:
    """One connection pool per request, closed when the response is sent."""
    pool = ConnectionPool(CONFIG.db.connections, CONFIG.db.table_mapping)
    try:
        yield pool
    finally:
        pool.close_all()


def get_schema_migrator(pool: ConnectionPool = Depends(get_connection_pool)) -> SchemaMigrator:
    return SchemaMigrator(pool, parse_schema_files(CONFIG.migration.schema_files))


# ==========================================
# CONNECTIONS
# ==========================================

@router.get("/connections", response_model=ConnectionsResponse)
def list_connections(pool: ConnectionPool = Depends(get_connection_pool)):
    """List configured connections and the tables mapped to them."""
    router_ = pool.router
    connections = []
    for name in pool.connection_names:
        settings = pool.get_settings(name).to_dict()
        connections.append(ConnectionInfo(
            name=name,
            driver=settings["driver"],
            host=settings["host"],
            port=settings["port"],
            user=settings["user"],
            database=settings["database"],
            path=settings["path"],
            is_default=router_.is_default(name),
            tables=router_.tables_for(name),
        ))
    return ConnectionsResponse(connections=connections)


# ==========================================
# SUGGESTIONS & EXECUTION
# ==========================================

@router.get("/suggestions", response_model=SuggestionsResponse)
def get_suggestions(
    remove: bool = Query(False, description="List rename-to-deleted and drop suggestions"),
    migrator: SchemaMigrator = Depends(get_schema_migrator),
):
    """Hash-addressed update suggestions for every connection."""
    return SuggestionsResponse(
        remove=remove,
        connections=migrator.get_update_suggestions(remove=remove),
    )


@router.post("/apply", response_model=ApplyResponse)
def apply_suggestions(
    request: ApplyRequest,
    migrator: SchemaMigrator = Depends(get_schema_migrator),
):
    """Execute the suggested statements with the given hashes."""
    log.info("Applying %d selected suggestions.", len(request.hashes))
    errors = migrator.migrate(request.hashes)
    if errors:
        log.warning("%d of %d selected statements failed.", len(errors), len(request.hashes))
    return ApplyResponse(errors=errors)


@router.post("/install", response_model=InstallResponse)
def install(
    request: Optional[InstallRequest] = None,
    migrator: SchemaMigrator = Depends(get_schema_migrator),
):
    """Apply every safe (non-destructive) change directly."""
    create_only = request.create_only if request else False
    results = migrator.install(create_only=create_only)
    outcomes = [message for statements in results.values() for message in statements.values()]
    log.info("Install finished: %d statements, %d failed.", len(outcomes), sum(1 for m in outcomes if m))
    return InstallResponse(results=results)
