"""
Health check endpoints.

Provides liveness and readiness probes for monitoring.
"""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from loginguard import __version__
from loginguard.api.deps import get_services
from loginguard.db import verify_database_connection
from loginguard.services import SecurityServices

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthcheck(services: SecurityServices = Depends(get_services)) -> dict[str, Any]:
    """Liveness probe."""
    return {
        "status": "ok",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
        "environment": services.settings.environment,
    }


@router.get("/readyz")
async def readiness(services: SecurityServices = Depends(get_services)) -> JSONResponse:
    """
    Readiness probe.

    Ready once the store behind the rate limiter and monitor answers.
    """
    checks = {"database": verify_database_connection(services.engine)}
    ready = all(checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if ready else "not_ready", "checks": checks},
    )
