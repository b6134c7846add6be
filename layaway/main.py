"""
Layaway Gateway - Main Application Entry Point

Installment payment scheduling and retry engine for trip bookings paid
over time.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from layaway import __version__
from layaway.application.services import InstallmentPoller
from layaway.core.config import settings
from layaway.core.dependencies import installment_service_scope
from layaway.core.logging import setup_logging
from layaway.core.metrics import get_metrics, get_metrics_content_type
from layaway.infrastructure.clients import build_charge_processor
from layaway.infrastructure.database import db_manager
from layaway.presentation.api import api_router
from layaway.presentation.middleware import (
    LoggingMiddleware,
    RequestContextMiddleware,
    error_handler_middleware,
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events:
    - Set up logging
    - Initialize database connection pool
    - Create the installment poller, started when enabled
    - Stop the poller and clean up on shutdown
    """
    setup_logging()
    db_manager.init()

    logger = structlog.get_logger(__name__)

    poller = InstallmentPoller(
        service_scope=installment_service_scope,
        charge_processor=build_charge_processor(),
    )
    app.state.poller = poller
    app.state.service_scope = installment_service_scope
    if settings.poller_enabled:
        poller.start()

    logger.info(
        "application_started",
        version=__version__,
        charge_processor=settings.charge_processor_mode,
        poller_enabled=settings.poller_enabled,
    )

    yield

    await poller.stop()
    await db_manager.close()
    logger.info("application_stopped")


app = FastAPI(
    title="Layaway Gateway",
    description="Installment Payment Scheduling & Retry Engine",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestContextMiddleware)

error_handler_middleware(app)

app.include_router(api_router)


if settings.metrics_enabled:

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Prometheus metrics endpoint."""
        return Response(
            content=get_metrics(),
            media_type=get_metrics_content_type(),
        )


@app.get("/", include_in_schema=False)
async def root():
    """Redirect to API documentation."""

    return RedirectResponse(url="/docs")
