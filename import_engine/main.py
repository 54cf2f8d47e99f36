"""
FastAPI application entry point.

This module initializes the FastAPI application, configures middleware,
and registers the API routers.
"""
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from import_engine.api.routers import imports
from import_engine.core.config import settings
from import_engine.core.logging_config import configure_logging
from import_engine.domain.imports.entities import entity_types

# Ensure logging is configured before the application starts serving requests.
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create database tables on startup."""
    if os.getenv("SKIP_DB_INIT") == "1":
        logger.info("SKIP_DB_INIT=1 detected; skipping database bootstrap during startup")
        yield
        return

    from import_engine.db.session import init_db

    try:
        init_db()
        logger.info("Database tables ready")
    except Exception:
        logger.exception("Failed to initialize database tables; the service cannot start")
        raise

    yield


app = FastAPI(
    title="Import Engine API",
    version="1.0.0",
    description="Spreadsheet import and reconciliation for business records",
    lifespan=lifespan,
)

allowed_origins = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(imports.router)


@app.get("/")
async def root():
    return {
        "message": "Import Engine API",
        "version": "1.0.0",
        "entity_types": entity_types(),
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "service": "import-engine",
    }
