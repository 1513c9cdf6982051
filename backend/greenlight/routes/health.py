"""
Greenlight — Health Check Route
================================

GET /v1/healthcheck reports the environment and version. It also reports
whether the database answers a ``SELECT 1`` within two seconds. The status
code is 200 even when the database is down; the body says "degraded".
"""

import asyncio
import logging

from fastapi import APIRouter
from sqlalchemy.exc import SQLAlchemyError

from greenlight import __version__
from greenlight.config import settings
from greenlight.database import ping_database
from greenlight.schemas.movie import HealthResponse, SystemInfo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["Health"])


@router.get(
    "/healthcheck",
    response_model=HealthResponse,
    summary="Service health check",
)
async def healthcheck() -> HealthResponse:
    status = "available"
    database = "connected"
    try:
        await ping_database(timeout=2.0)
    except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
        status = "degraded"
        database = "disconnected"
        logger.warning("Health check: database unreachable: %s", e)

    return HealthResponse(
        status=status,
        system_info=SystemInfo(environment=settings.env, version=__version__),
        database=database,
    )
