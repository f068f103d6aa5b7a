"""
Project Hub FastAPI application.

Entry point for the API server.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from hub import db
from hub.config import settings
from hub.routes import entries as entry_routes
from hub.routes import viewer as viewer_routes
from hub.routes import ws as ws_routes
from hub.services.gallery_service import build_store, gallery_service

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup and shutdown logic:
    - Initialize database pool (postgres backend)
    - Start the gallery service (store + shared snapshot subscription)
    - Tear both down on shutdown
    """
    # Startup
    if settings.STORE_BACKEND == "postgres":
        await db.init_pool()
        logger.info("Database pool initialized")

    await gallery_service.start(build_store())
    logger.info("Gallery service started (%s store)", settings.STORE_BACKEND)

    yield

    # Shutdown
    await gallery_service.stop()
    logger.info("Gallery service stopped")

    if settings.STORE_BACKEND == "postgres":
        await db.close_pool()
        logger.info("Database pool closed")


app = FastAPI(
    title=settings.HUB_NAME,
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)

# Register routes
app.include_router(entry_routes.router)
app.include_router(viewer_routes.router)
app.include_router(ws_routes.router)


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {
        "status": "ok",
        "store": "up" if gallery_service.started else "down",
        "entries": len(gallery_service.snapshot),
    }
