"""FastAPI application for the padsync store server.

This module creates and configures the FastAPI application with:
- Blob endpoints for the key-value transport
- Record endpoints and change feed for the native-record transport
- WebSocket change notifications

Usage:
    uvicorn padsync.server.app:app_factory --factory --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from padsync import __version__
from padsync.server.api.router import router as api_router
from padsync.server.database import Database
from padsync.server.scheduler import ChangeLogScheduler
from padsync.server.ws import ChangeHub
from padsync.server.ws import router as ws_router

# Configuration from environment variables with defaults
DB_PATH = Path(os.environ.get("PADSYNC_DB_PATH", "padsync.db"))
LOG_PATH = Path(os.environ.get("PADSYNC_LOG_PATH", "padsync-server.log"))
TOKEN = os.environ.get("PADSYNC_TOKEN") or None
CHANGE_RETENTION_DAYS = int(os.environ.get("PADSYNC_CHANGE_RETENTION_DAYS", "30"))

logger = logging.getLogger(__name__)


def setup_logging(log_path: Path | None) -> None:
    """Configure logging to output to stdout and, optionally, a file.

    Args:
        log_path: Path to the log file (None for stdout only).
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(log_format)

    # Root logger for padsync
    root_logger = logging.getLogger("padsync")
    root_logger.setLevel(logging.INFO)

    # Stdout handler
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is None:
        return

    # File handler
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Also capture uvicorn logs to file
    for uvicorn_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(uvicorn_name)
        uvicorn_logger.addHandler(file_handler)


def create_app(
    db: Database,
    token: str | None = None,
    scheduler: ChangeLogScheduler | None = None,
) -> FastAPI:
    """Create FastAPI application with a given database.

    Args:
        db: Database instance.
        token: Bearer token required on every request (None = open server).
        scheduler: Optional change log cleanup scheduler, started and
            stopped with the application.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        # Startup
        logger.info("=" * 60)
        logger.info("padsync Server Starting")
        logger.info("=" * 60)
        logger.info("  Database: %s", db.path)
        logger.info("  Auth:     %s", "token" if token else "none")
        logger.info("=" * 60)
        if scheduler:
            scheduler.start()

        yield

        # Shutdown
        if scheduler:
            scheduler.stop()
        logger.info("padsync Server shutting down")

    application = FastAPI(
        title="padsync Server",
        description="Remote store for padsync tabs and clipboard history",
        version=__version__,
        lifespan=lifespan,
    )

    application.state.db = db
    application.state.token = token
    application.state.hub = ChangeHub()

    application.include_router(api_router)
    application.include_router(ws_router)

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode."""
    setup_logging(LOG_PATH)
    db = Database(DB_PATH)
    return create_app(
        db=db,
        token=TOKEN,
        scheduler=ChangeLogScheduler(db, retention_days=CHANGE_RETENTION_DAYS),
    )
