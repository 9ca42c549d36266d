"""
Health Check Routes

- Basic service health (/api/health), with campaign sync status
- Readiness check (/api/health/ready), pings MongoDB
- Liveness check (/api/health/live)
"""

import logging
import time
from typing import Dict, Any, Optional
from datetime import datetime

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel

from inbox_core import __version__
from inbox_core.database import get_client as get_mongo_client
from inbox_core.config import settings


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["health"])

SERVICE_START_TIME = time.time()


class HealthStatus(BaseModel):
    """Health check response model"""
    status: str  # "healthy" | "degraded" | "unhealthy"
    timestamp: str
    uptime_seconds: float
    version: str
    environment: Optional[str] = None
    checks: Optional[Dict[str, Any]] = None


class ComponentHealth(BaseModel):
    """Individual component health"""
    status: str  # "up" | "down" | "degraded"
    response_time_ms: Optional[float] = None
    message: Optional[str] = None


@router.get("/health", response_model=HealthStatus)
async def health_check(request: Request) -> HealthStatus:
    """
    Basic health check used by load balancers

    Reports "degraded" when the campaign state synchronizer should be
    running but is not.
    """
    checks: Dict[str, Any] = {}
    overall_status = "healthy"

    synchronizer = getattr(request.app.state, "state_synchronizer", None)
    if synchronizer is not None:
        checks["campaign_sync"] = synchronizer.get_stats()
        if settings.state_sync_enabled and not synchronizer.is_running:
            overall_status = "degraded"

    return HealthStatus(
        status=overall_status,
        timestamp=datetime.utcnow().isoformat(),
        uptime_seconds=round(time.time() - SERVICE_START_TIME, 2),
        version=__version__,
        environment=settings.environment,
        checks=checks or None,
    )


@router.get("/health/ready")
async def readiness_check(response: Response) -> Dict[str, str]:
    """
    Readiness check

    Returns:
        200: Ready to serve traffic
        503: MongoDB unavailable
    """
    mongo_health = await _check_mongodb()

    if mongo_health.status != "up":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {
            "status": "not_ready",
            "reason": "MongoDB unavailable"
        }

    return {"status": "ready"}


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """Liveness check"""
    return {"status": "alive"}


async def _check_mongodb() -> ComponentHealth:
    """Check MongoDB connectivity and response time"""
    start_time = time.time()

    try:
        client = get_mongo_client()
        await client.admin.command('ping')

        response_time = (time.time() - start_time) * 1000

        if response_time > 500:
            return ComponentHealth(
                status="degraded",
                response_time_ms=round(response_time, 2),
                message="High latency"
            )

        return ComponentHealth(status="up", response_time_ms=round(response_time, 2))

    except Exception as e:
        response_time = (time.time() - start_time) * 1000
        logger.error(f"MongoDB health check failed: {e}")

        return ComponentHealth(
            status="down",
            response_time_ms=round(response_time, 2),
            message=str(e)
        )
