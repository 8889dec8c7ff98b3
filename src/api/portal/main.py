#!/usr/bin/env python3
"""
PRM Portal API
==============

FastAPI service behind the partner portal and the admin console: deal
registration and kanban boards, learning, support, knowledge base and MDF.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ...core.database.adapter import DatabaseAdapter, close_database, set_database
from ...core.observability import configure_logging, init_tracing
from ..shared.middleware import register_error_handlers, SessionMiddleware, TraceMiddleware
from ..shared.routers import auth_router, health_router
from .routers import (
    admin_board_router,
    admin_router,
    certificates_router,
    dashboard_router,
    deals_router,
    knowledge_router,
    learning_router,
    mdf_router,
    partner_board_router,
    profile_router,
    tickets_router,
)

logger = logging.getLogger(__name__)

# Configuration
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "9300"))
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


def init_observability() -> None:
    """Logging always; OpenTelemetry tracing when OTEL_ENABLED=true."""
    configure_logging(
        level=os.getenv("LOG_LEVEL", "INFO"),
        structured=os.getenv("LOG_STRUCTURED", "true").lower() == "true",
    )
    if os.getenv("OTEL_ENABLED", "false").lower() == "true":
        init_tracing(
            service_version=APP_VERSION,
            otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT"),
            console_export=os.getenv("OTEL_CONSOLE_EXPORT", "false").lower() == "true",
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    init_observability()

    db = DatabaseAdapter()
    await db.connect()
    set_database(db)
    logger.info("PRM portal API started")

    yield

    await close_database()
    logger.info("PRM portal API stopped")


# =============================================================================
# FASTAPI APP
# =============================================================================

app = FastAPI(
    title="PRM Portal API",
    description="Partner relationship management: deals, learning, support and MDF",
    version=APP_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Added last runs first: trace id is set before the session is resolved
app.add_middleware(SessionMiddleware)
app.add_middleware(TraceMiddleware)

register_error_handlers(app)

app.include_router(health_router)
app.include_router(auth_router)
app.include_router(profile_router)
app.include_router(dashboard_router)

# Board routes before /api/deals/{deal_id}
app.include_router(partner_board_router)
app.include_router(admin_board_router)
app.include_router(deals_router)

app.include_router(admin_router)
app.include_router(learning_router)
app.include_router(certificates_router)
app.include_router(tickets_router)
app.include_router(knowledge_router)
app.include_router(mdf_router)


# =============================================================================
# MAIN
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "src.api.portal.main:app",
        host=API_HOST,
        port=API_PORT,
        reload=os.getenv("API_RELOAD", "false").lower() == "true"
    )
