"""Main FastAPI application."""

import logging
import re
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from . import __version__
from .ai.circuit_breaker import breaker_status
from .ai.llm_client import GeminiClient
from .api import (
    ai_router,
    block_router,
    blocks_router,
    documents_router,
    history_entry_router,
    history_router,
    imports_router,
    links_router,
    maintenance_router,
    split_router,
)
from .core.config import settings, ConfigurationError
from .core.logging_config import setup_logging
from .database import engine, get_db, init_db, DATABASE_URL
from .exceptions import DocnexException
from .middleware.exception_handler import docnex_exception_handler
from .middleware.request_context import RequestContextMiddleware

# Setup logging first
setup_logging(log_level=settings.log_level, log_format=settings.log_format)
logger = logging.getLogger(__name__)


def _mask_url(url: str) -> str:
    """Mask the password in a database URL for logging."""
    return re.sub(r'://([^:/]+):([^@]+)@', r'://\1:***@', url)


def _validate_database_connection() -> None:
    """Exit with an actionable message when the database is unreachable."""
    masked = _mask_url(DATABASE_URL)
    logger.info("Connecting to database: %s", masked)

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection verified")
    except Exception as e:
        error_str = str(e)
        if DATABASE_URL.startswith("postgresql"):
            if "authentication failed" in error_str or "password" in error_str.lower():
                hint = "Check username and password in DATABASE_URL."
            elif "does not exist" in error_str:
                hint = "Create the database first: createdb <database_name>"
            else:
                hint = "Verify PostgreSQL is running and DATABASE_URL is correct."
        elif DATABASE_URL.startswith("sqlite"):
            hint = "Check that the directory exists and is writable."
        else:
            hint = "Check DATABASE_URL."
        logger.critical(
            "Database connection failed.\n  DATABASE_URL: %s\n  %s\n  Error: %s",
            masked, hint, error_str,
        )
        raise SystemExit(1)


_validate_database_connection()
init_db()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle for the DOCNEX API."""
    logger.info("Environment: %s", settings.environment.value)
    try:
        problems = settings.validate_production_config()
    except ConfigurationError as e:
        logger.critical("STARTUP BLOCKED: %s", e)
        raise SystemExit(1) from e
    for problem in problems:
        logger.warning("Configuration: %s", problem)

    yield


app = FastAPI(
    title="DOCNEX AI API",
    description=(
        "REST API for DOCNEX AI, a hierarchical document workspace. "
        "Documents are trees of blocks with an append-only snapshot history, "
        "legal-text ingestion and AI-assisted structuring."
    ),
    version=__version__,
    lifespan=lifespan,
)

# Middleware stack (outermost first: CORS wraps request context).
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "X-Request-ID"],
)
app.add_middleware(RequestContextMiddleware)

app.add_exception_handler(DocnexException, docnex_exception_handler)

logger.info(
    "DOCNEX API started | env=%s | db=%s | ai=%s | cors=%s",
    settings.environment.value,
    "PostgreSQL" if DATABASE_URL.startswith("postgresql") else "SQLite",
    settings.ai_model if GeminiClient.is_configured() else "not configured",
    ",".join(settings.get_cors_origins()),
)

app.include_router(documents_router)
app.include_router(blocks_router)
app.include_router(block_router)
app.include_router(history_router)
app.include_router(history_entry_router)
app.include_router(imports_router)
app.include_router(maintenance_router)
app.include_router(split_router)
app.include_router(links_router)
app.include_router(ai_router)


@app.get("/")
def root():
    return {
        "name": "DOCNEX AI API",
        "version": __version__,
        "status": "running"
    }


_startup_time = time.monotonic()


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Database status, uptime and content counts.

    Never raises: a database failure reports ``degraded`` so health checks do
    not receive a 5xx.
    """
    db_status = "ok"
    document_count = 0
    block_count = 0
    try:
        document_count = db.execute(text("SELECT COUNT(*) FROM documents")).scalar() or 0
        block_count = db.execute(
            text("SELECT COUNT(*) FROM document_blocks WHERE is_deleted = :deleted"),
            {"deleted": False},
        ).scalar() or 0
    except Exception:
        logger.exception("Health check database query failed")
        db_status = "error"

    return {
        "status": "healthy" if db_status == "ok" else "degraded",
        "db": db_status,
        "uptime_seconds": round(time.monotonic() - _startup_time),
        "version": __version__,
        "document_count": document_count,
        "block_count": block_count,
        "ai_configured": GeminiClient.is_configured(),
        "ai_circuits": breaker_status(),
    }
