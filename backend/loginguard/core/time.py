"""Time helpers.

Persisted timestamps are naive (no tzinfo) but always UTC, which keeps
SQLite and PostgreSQL comparisons consistent.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Naive UTC datetime (tzinfo stripped)."""
    return datetime.now(UTC).replace(tzinfo=None)


def isoformat_z(value: datetime | None) -> str | None:
    """Render a naive UTC datetime as an ISO-8601 string with a Z suffix."""
    if value is None:
        return None
    return value.isoformat() + "Z"
