"""Data-Center Twin API: FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map TwinError -> structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database initialized on startup via lifespan context manager

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Error handlers live in api/error_handlers.py to keep this module's imports small
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dctwin.infrastructure.database import init_db
from dctwin.infrastructure.observability import setup_logging
from dctwin.config import get_settings
from dctwin.api.error_handlers import register_error_handlers
from dctwin.api.routes import (
    anomalies, device_types, devices, health, history, rooms, sites,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    logger.info("Data-center twin API started")
    yield
    logger.info("Data-center twin API shutting down")


app = FastAPI(
    title="Data-Center Twin API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(devices.router)
app.include_router(sites.router)
app.include_router(rooms.router)
app.include_router(device_types.router)
app.include_router(anomalies.router)
app.include_router(history.router)

register_error_handlers(app)
