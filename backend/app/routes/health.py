"""
RouteLog Backend - Health Check Route
=======================================

What:  Health endpoint for container orchestrators and load balancers.
How:   Runs SELECT 1 against the database and reports whether the geocoding
       and image-hosting credentials are configured. Providers are not
       called, so health checks cost no API quota.

Status levels:
    healthy    database reachable, both providers configured
    degraded   database reachable, a provider is unconfigured
    unhealthy  database unreachable
"""

import logging
import time

from fastapi import APIRouter
from sqlalchemy import text

from app import __version__
from app.database import engine
from app.schemas.route import HealthResponse
from app.services.route_service import route_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check() -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    geocoder_status = "configured" if route_service.geocoder.is_configured() else "unconfigured"
    image_status = "configured" if route_service.image_host.is_configured() else "unconfigured"
    if overall == "healthy" and "unconfigured" in (geocoder_status, image_status):
        overall = "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        geocoder=geocoder_status,
        image_host=image_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
