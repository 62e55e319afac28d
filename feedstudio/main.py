"""Main FastAPI application."""

import logging
import re
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from . import __version__
from . import models  # noqa: F401  (registers tables on Base.metadata)
from .api import content_router, versions_router
from .core.config import settings, ConfigurationError, Environment
from .core.logging_config import setup_logging
from .database import engine, Base, get_db, SessionLocal, DATABASE_URL, is_postgresql
from .exceptions import FeedStudioError
from .middleware.exception_handler import feedstudio_exception_handler, request_validation_handler
from .middleware.request_context import RequestContextMiddleware
from .repositories import ContentRepository
from .services import EditService
from .services import audit_service

setup_logging(log_level=settings.log_level, log_format=settings.log_format)
logger = logging.getLogger(__name__)


def _mask_url(url: str) -> str:
    """Mask the password in a database URL for logging."""
    return re.sub(r'://([^:]+):([^@]+)@', r'://\1:***@', url)


def _validate_database_connection() -> None:
    """Exit with an actionable message when the database is unreachable."""
    masked = _mask_url(DATABASE_URL)
    logger.info(f"Connecting to database: {masked}")

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection verified")
    except Exception as e:
        if is_postgresql():
            hint = (
                "  Possible fixes:\n"
                "    1. Verify PostgreSQL is running: pg_isready -h <host> -p <port>\n"
                "    2. Check DATABASE_URL in .env or environment variables\n"
                "    3. Create the database if missing: createdb <database_name>\n"
            )
        elif DATABASE_URL.startswith("sqlite"):
            hint = "  Check that the directory exists and is writable.\n"
        else:
            hint = ""
        logger.critical(
            "Database connection failed.\n"
            f"  DATABASE_URL: {masked}\n"
            f"{hint}"
            f"  Error: {e}"
        )
        raise SystemExit(1)


_validate_database_connection()
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info(f"Environment: {settings.environment.value}")
    try:
        settings.validate_production_config()
    except ConfigurationError as e:
        logger.critical(f"STARTUP BLOCKED: {e}")
        raise SystemExit(1) from e

    if settings.environment == Environment.DEVELOPMENT:
        for problem in settings.insecure_settings():
            logger.warning(f"SECURITY: {problem}")

    # Finish live updates that failed after their version was committed.
    db = SessionLocal()
    try:
        repaired = EditService(db).reconcile_all()
        if repaired > 0:
            logger.info(f"Reconciled {repaired} live document(s) with their version history")
    except Exception as e:
        logger.warning(f"Startup reconciliation failed (non-fatal): {e}")
    finally:
        db.close()

    if settings.audit_retention_days > 0:
        db = SessionLocal()
        try:
            purged = audit_service.purge_old_entries(db, days=settings.audit_retention_days)
            if purged > 0:
                logger.info(f"Purged {purged} audit log entries older than {settings.audit_retention_days} days")
        finally:
            db.close()

    yield


app = FastAPI(
    title="Neural Feed Studio API",
    description=(
        "Content editing and version history for Neural Feed Studio. "
        "Every manual save and auto-save is recorded as a numbered, immutable "
        "version alongside the live document.\n\n"
        "**Authentication:** when `AUTH_ENABLED=true`, saves require a `Bearer` "
        "token; its subject is recorded as the editor of each version."
    ),
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "PUT"],
    allow_headers=["Content-Type", "Authorization"],
)
app.add_middleware(RequestContextMiddleware)

app.add_exception_handler(FeedStudioError, feedstudio_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)

logger.info(
    "Neural Feed Studio API started | env=%s | db=%s | auth=%s",
    settings.environment.value,
    "PostgreSQL" if is_postgresql() else "SQLite",
    "enabled" if settings.auth_enabled else "disabled",
)

app.include_router(content_router)
app.include_router(versions_router)


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "name": "Neural Feed Studio API",
        "version": __version__,
        "status": "running"
    }


_startup_time = time.monotonic()


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Database status, uptime and content count.

    Never raises: a database failure is reported as ``degraded``.
    """
    db_status = "ok"
    content_count = 0
    try:
        db.execute(text("SELECT 1"))
        content_count = ContentRepository(db).count()
    except Exception:
        db_status = "error"

    return {
        "status": "healthy" if db_status == "ok" else "degraded",
        "db": db_status,
        "uptime_seconds": round(time.monotonic() - _startup_time),
        "version": __version__,
        "content_count": content_count,
    }
