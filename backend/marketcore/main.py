"""Marketplace Core API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map MarketError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database and the process-wide SideEffectDispatcher initialized in lifespan

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Error handlers live in api/error_handlers.py; this module only wires
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import marketcore.infrastructure.database as database
from marketcore.api.error_handlers import register_error_handlers
from marketcore.api.routes import (
    cases, health, listings, notifications, reservations, transactions,
    workspaces,
)
from marketcore.config import get_settings
from marketcore.infrastructure.observability import setup_logging
from marketcore.services.side_effect_dispatcher import SideEffectDispatcher

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    database.init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        lock_timeout_seconds=settings.lock_timeout_seconds,
    )
    app.state.dispatcher = SideEffectDispatcher(database.get_session_factory())
    logger.info("Marketplace core API started")
    yield
    logger.info(
        "Marketplace core API shutting down (%d side-effect failures)",
        app.state.dispatcher.failure_count,
    )
    await database.db_manager.dispose()


app = FastAPI(
    title="Marketplace Core API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(reservations.router)
app.include_router(cases.router)
app.include_router(listings.router)
app.include_router(workspaces.router)
app.include_router(notifications.router)
app.include_router(transactions.router)

register_error_handlers(app)
