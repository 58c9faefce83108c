"""Health check routes.

``/health`` answers without touching any backing service. ``/health/detailed``
pings MongoDB and Redis and reports ``degraded`` when only the cache is down,
since scoring can still run without its lock.
"""

import time
from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from src.core.config import get_settings
from src.database.mongodb import MongoDB
from src.database.redis_client import RedisClient
from src.utils.datetime_utils import utc_now
from src.utils.logger import get_logger

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)
settings = get_settings()


class HealthStatus(BaseModel):
    """Health check status response."""
    status: str
    timestamp: datetime
    version: str
    environment: str
    services: Dict[str, Dict[str, Any]]


async def check_service(name: str, ping) -> Dict[str, Any]:
    started = time.perf_counter()
    healthy = await ping()
    elapsed = round((time.perf_counter() - started) * 1000, 2)
    if not healthy:
        logger.error(f"{name} health check failed")
    return {
        "status": "healthy" if healthy else "unhealthy",
        "type": name,
        "response_time_ms": elapsed,
    }


@router.get("/health", response_model=HealthStatus)
async def health_check() -> HealthStatus:
    """Basic health check endpoint."""
    return HealthStatus(
        status="healthy",
        timestamp=utc_now(),
        version=settings.APP_VERSION,
        environment=settings.APP_ENV,
        services={}
    )


@router.get("/health/detailed", response_model=HealthStatus)
async def detailed_health_check(response: Response) -> HealthStatus:
    """Detailed health check including MongoDB, Redis and feature state.

    Responds with 503 when MongoDB is unreachable.
    """
    services = {
        "database": await check_service("mongodb", MongoDB.ping),
        "cache": await check_service("redis", RedisClient.ping),
        "psychometrics": {
            "status": "enabled" if settings.PSYCHOMETRICS_ENABLED else "disabled",
            "audit_enabled": settings.PSYCHOMETRICS_AUDIT_ENABLED,
            "audit_hour_utc": settings.PSYCHOMETRICS_AUDIT_HOUR,
        },
    }

    overall_status = "healthy"
    if services["database"]["status"] != "healthy":
        overall_status = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif services["cache"]["status"] != "healthy":
        overall_status = "degraded"

    return HealthStatus(
        status=overall_status,
        timestamp=utc_now(),
        version=settings.APP_VERSION,
        environment=settings.APP_ENV,
        services=services
    )
