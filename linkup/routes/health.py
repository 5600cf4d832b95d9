"""
Linkup Backend - Health Check Route
=====================================

What:  Liveness/readiness probe for load balancers and container checks.
How:   Runs `SELECT 1` through the app's Database handle. The service is
       only "healthy" when the database answers; otherwise 503.
"""

import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from linkup import __version__
from linkup.config import settings
from linkup.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(request: Request) -> JSONResponse:
    connected = await request.app.state.database.health_check()
    if not connected:
        logger.warning("Health check: database unreachable")

    report = HealthResponse(
        status="healthy" if connected else "unhealthy",
        version=__version__,
        environment=settings.environment,
        database="connected" if connected else "disconnected",
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    return JSONResponse(
        status_code=200 if connected else 503,
        content=report.model_dump(by_alias=True),
    )
