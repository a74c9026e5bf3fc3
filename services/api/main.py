"""
FastAPI application for the schema migrator admin API.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import CONFIG
from core.errors import ConfigurationError, DatabaseError, SchemaError
from logger import get_logger
from services.api.routers import schema_migration
from services.api.schemas import HealthResponse

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting %s API %s...", CONFIG.app_name, CONFIG.app_version)
    yield
    logger.info("Shutting down %s API...", CONFIG.app_name)


# Create FastAPI application
app = FastAPI(
    title=f"{CONFIG.app_name} API",
    description="Schema update suggestions and installation per database connection",
    version=CONFIG.app_version,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(schema_migration.router)


@app.exception_handler(ConfigurationError)
@app.exception_handler(SchemaError)
async def bad_request_handler(request: Request, exc: Exception):
    logger.error("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(DatabaseError)
async def database_error_handler(request: Request, exc: DatabaseError):
    logger.error("Database failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.get("/", tags=["root"])
async def root():
    """Root endpoint."""
    return {
        "service": f"{CONFIG.app_name} API",
        "version": CONFIG.app_version,
        "status": "operational",
    }


@app.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check():
    """Liveness check; does not touch any database."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=CONFIG.app_version,
    )


def run() -> None:
    """Serve the API with uvicorn on the configured host and port."""
    uvicorn.run(app, host=CONFIG.api.host, port=CONFIG.api.port)


if __name__ == "__main__":
    run()
