"""
Security event repository.
"""

import json
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from loginguard.db.models import SecurityEvent


def add_security_event(
    db: Session,
    *,
    type: str,
    severity: str,
    timestamp: datetime,
    details: dict[str, Any] | None = None,
    admin_id: str | None = None,
    email: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """Append a security event (unresolved)."""
    event = SecurityEvent(
        type=type,
        severity=severity,
        admin_id=admin_id,
        email=email,
        ip_address=ip_address,
        user_agent=user_agent,
        details=json.dumps(details) if details else None,
        timestamp=timestamp,
        resolved=False,
    )
    db.add(event)
    db.commit()
    return event


def list_events_since(db: Session, since: datetime) -> list[SecurityEvent]:
    """All events at or after ``since``, newest first."""
    stmt = (
        select(SecurityEvent)
        .where(SecurityEvent.timestamp >= since)
        .order_by(SecurityEvent.timestamp.desc())
    )
    return list(db.execute(stmt).scalars().all())


def list_events(
    db: Session,
    *,
    limit: int = 50,
    severity: str | None = None,
    type: str | None = None,
) -> list[SecurityEvent]:
    """Recent events, optionally filtered by severity and/or type."""
    stmt = select(SecurityEvent)
    if severity:
        stmt = stmt.where(SecurityEvent.severity == severity)
    if type:
        stmt = stmt.where(SecurityEvent.type == type)
    stmt = stmt.order_by(SecurityEvent.timestamp.desc()).limit(limit)
    return list(db.execute(stmt).scalars().all())


def decode_details(event: SecurityEvent) -> dict[str, Any]:
    """Parse the JSON details column."""
    if not event.details:
        return {}
    return json.loads(event.details)
