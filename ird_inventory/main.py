"""
IRD Inventory - FastAPI Application

Creates the FastAPI app, wires up routers and opens the store on startup.

Run with: uvicorn ird_inventory.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .core.config import get_settings
from .core.errors import setup_error_handlers
from .core.logging import configure_logging
from .core.middleware import RequestLoggingMiddleware
from .db import close_store, init_store
from .routers import (
    bulk_irds_router,
    contacts_router,
    equipment_router,
    equipment_types_router,
    health_router,
    irds_router,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup: open the configured store (never fatal, see /readyz).
    Shutdown: close it.
    """
    settings = get_settings()
    logger.info(f"Starting IRD Inventory v{__version__}", extra={"operation": "startup"})
    logger.info(f"Settings: {settings.describe()}")

    await init_store(settings)

    yield

    logger.info("Shutting down IRD Inventory")
    await close_store()


def create_app() -> FastAPI:
    """
    Application factory.

    - CORS middleware first (outermost, handles preflight)
    - Request logging middleware with X-Request-ID
    - Error handlers mapping the error taxonomy to the JSON envelope
    - Routers under /api/v1, health probes at the root
    """
    settings = get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)

    app = FastAPI(
        title="IRD Inventory",
        description="Inventory of IRD receivers, linked equipment, equipment types and contacts.",
        version=__version__,
        lifespan=lifespan,
    )

    logger.info(f"[CORS] origins: {settings.cors_allowed_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    setup_error_handlers(app)

    app.include_router(health_router)
    app.include_router(bulk_irds_router, prefix=API_PREFIX)
    app.include_router(irds_router, prefix=API_PREFIX)
    app.include_router(equipment_router, prefix=API_PREFIX)
    app.include_router(equipment_types_router, prefix=API_PREFIX)
    app.include_router(contacts_router, prefix=API_PREFIX)

    return app


app = create_app()
