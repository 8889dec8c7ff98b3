"""
Health Check Endpoints

Provides health, readiness, and liveness endpoints for container orchestration.
"""

from datetime import datetime, timezone
from typing import Dict, Any
import logging
import os

from fastapi import APIRouter, Response

from ....core.database.adapter import get_database

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check.

    Returns 200 if the service is running.
    """
    return {
        "status": "healthy",
        "timestamp": _now(),
        "version": os.getenv("APP_VERSION", "1.0.0")
    }


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """Liveness probe: 200 while the process is alive."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(response: Response) -> Dict[str, Any]:
    """
    Readiness probe.

    Returns 200 if the database answers, 503 otherwise.
    """
    checks = {}
    all_healthy = True

    try:
        db = await get_database()
        await db.fetchval("SELECT 1")
        checks["database"] = "healthy"
    except Exception as e:
        logger.warning(f"Readiness check failed: {e}")
        checks["database"] = f"unhealthy: {str(e)[:100]}"
        all_healthy = False

    if not all_healthy:
        response.status_code = 503

    return {
        "status": "ready" if all_healthy else "not_ready",
        "checks": checks,
        "timestamp": _now()
    }


@router.get("/api/version")
async def get_version() -> Dict[str, Any]:
    """Build version information."""
    return {
        "version": os.getenv("APP_VERSION", "dev"),
        "commit": os.getenv("GIT_COMMIT", "unknown"),
        "environment": os.getenv("APP_ENV", "development")
    }
