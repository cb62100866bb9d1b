# WORKFLOW: Health check endpoints for monitoring and operational status.
# Used by: Load balancers, monitoring systems, the external refresh scheduler
# Endpoints:
# 1. /healthz - Basic health check (always returns healthy)
# 2. /readyz - Readiness check against the record store
# 3. /livez - Liveness check for Kubernetes probes
#
# Health flow: Health check request -> Service status check -> Health response
# Readiness flow: Readiness check -> Database connectivity -> Ready/Not ready

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import logging
from datetime import datetime, timezone

from db.session import check_db_connection
from core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/healthz")
async def health_check():
    """
    Basic health check endpoint.

    Returns:
        Health status of the API
    """
    return {
        "status": "healthy",
        "timestamp": _now(),
        "version": settings.version,
        "environment": settings.environment
    }


@router.get("/readyz")
def readiness_check():
    """
    Readiness check endpoint.

    The service is ready when the record store answers; without it no
    ingestion run can even be opened.
    """
    checks = {"database": check_db_connection()}
    is_ready = all(checks.values())

    return JSONResponse(
        status_code=200 if is_ready else 503,
        content={
            "status": "ready" if is_ready else "not_ready",
            "timestamp": _now(),
            "checks": checks,
            "version": settings.version
        },
    )


@router.get("/livez")
async def liveness_check():
    """
    Liveness check endpoint.

    Used by Kubernetes liveness probes.
    """
    return {
        "status": "alive",
        "timestamp": _now()
    }
