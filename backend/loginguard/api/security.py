"""
Read-only security dashboard.

Serves the persisted event log, the login audit trail and aggregate
metrics. Nothing here authenticates end users or enforces login policy.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from loginguard.api.deps import get_services, require_admin_token
from loginguard.core import Severity
from loginguard.security.events import SecurityEventType
from loginguard.services import SecurityServices

router = APIRouter(
    prefix="/security",
    tags=["security"],
    dependencies=[Depends(require_admin_token)],
)


@router.get("/metrics")
async def security_metrics(
    window_hours: float = Query(24, gt=0, le=24 * 30),
    services: SecurityServices = Depends(get_services),
) -> dict[str, Any]:
    """Event aggregate for the window plus in-process login counters."""
    metrics = await services.monitor.get_security_metrics(window_hours)
    return {
        "events": metrics.to_dict(),
        "runtime": services.metrics.snapshot(),
    }


@router.get("/events")
async def security_events(
    limit: int = Query(50),
    severity: str | None = Query(None),
    type: str | None = Query(None),
    services: SecurityServices = Depends(get_services),
) -> dict[str, Any]:
    """Recent security events, newest first."""
    if severity is not None and severity not in {s.value for s in Severity}:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=f"Unknown severity: {severity}")
    if type is not None and type not in {t.value for t in SecurityEventType}:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=f"Unknown event type: {type}")
    events = await services.monitor.list_security_events(limit, severity=severity, type=type)
    return {"events": events, "count": len(events)}


@router.get("/login-activity")
async def login_activity(
    limit: int = Query(10),
    services: SecurityServices = Depends(get_services),
) -> dict[str, Any]:
    """Most recent login attempts across all accounts."""
    activities = await services.monitor.get_recent_login_activities(limit)
    return {"activities": activities, "count": len(activities)}
