"""
Security event vocabulary.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from loginguard.core.errors import Severity


class SecurityEventType(str, Enum):
    """Closed set of event types accepted by the security event log."""

    LOGIN_ATTEMPT = "login_attempt"
    BRUTE_FORCE = "brute_force"
    NEW_DEVICE = "new_device"
    LOCATION_CHANGE = "location_change"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    PERMISSION_DENIED = "permission_denied"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    ADMIN_REGISTRATION = "admin_registration"


@dataclass
class SecurityEventInput:
    """
    An event as submitted to the monitor.

    ``type`` and ``severity`` are kept as plain strings so that values coming
    from outside the process can be validated (and rejected) by the monitor
    instead of failing at construction.
    """

    type: str
    severity: str
    email: str | None = None
    admin_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class SecurityMetrics:
    """Aggregate of persisted events over a time window."""

    window_hours: float
    total_events: int = 0
    critical_events: int = 0
    high_severity_events: int = 0
    unresolved_events: int = 0
    events_by_type: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "window_hours": self.window_hours,
            "total_events": self.total_events,
            "critical_events": self.critical_events,
            "high_severity_events": self.high_severity_events,
            "unresolved_events": self.unresolved_events,
            "events_by_type": dict(self.events_by_type),
        }


def parse_event_type(value: Any) -> SecurityEventType | None:
    try:
        return SecurityEventType(value)
    except ValueError:
        return None


def parse_severity(value: Any) -> Severity | None:
    try:
        return Severity(value)
    except ValueError:
        return None
