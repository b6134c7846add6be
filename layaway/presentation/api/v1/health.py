"""Health check endpoint for service monitoring."""

from fastapi import APIRouter, Request
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import structlog

from layaway import __version__
from layaway.infrastructure.database import db_manager

logger = structlog.get_logger(__name__)

health_router = APIRouter()


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    database: str
    poller: str


async def _database_status() -> str:
    try:
        async with db_manager.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (RuntimeError, SQLAlchemyError) as e:
        logger.warning("health_database_unreachable", error=str(e))
        return "unreachable"
    return "ok"


@health_router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="""
    Returns the health status of the service. The service is degraded when
    the database cannot be reached; the poller state is informational.
    """,
)
async def health_check(request: Request) -> HealthResponse:
    database = await _database_status()
    poller = getattr(request.app.state, "poller", None)

    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=__version__,
        database=database,
        poller="running" if poller is not None and poller.running else "stopped",
    )
