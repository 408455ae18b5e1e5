"""
SQLAlchemy ORM models.

Each collection is written by exactly one component: ``rate_limits`` by the
rate limiter; ``login_activities``, ``security_events`` and
``device_profiles`` by the security monitor. ``admin_profiles`` and
``users`` back the authorization lookup and the local identity provider.
"""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from loginguard.core.time import utcnow
from loginguard.db.base import Base, TimestampMixin


def generate_uuid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid4())


class RateLimitRecord(Base):
    """Failed-attempt counter keyed by the hashed identifier."""

    __tablename__ = "rate_limits"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    first_attempt: Mapped[datetime] = mapped_column(nullable=False)
    last_attempt: Mapped[datetime] = mapped_column(nullable=False)
    escalation_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    escalation_started_at: Mapped[datetime] = mapped_column(nullable=False)
    is_locked_out: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Bumped on every write; the compare-and-swap guard
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class LoginActivity(Base):
    """One immutable record per login attempt."""

    __tablename__ = "login_activities"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    admin_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    email: Mapped[str] = mapped_column(String(100), nullable=False)
    login_time: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    ip_address: Mapped[str] = mapped_column(String(50), nullable=False, default="unknown")
    user_agent: Mapped[str] = mapped_column(String(500), nullable=False, default="unknown")
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(10), nullable=False)  # success, failed
    failure_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    __table_args__ = (
        Index("ix_login_activities_email_time", "email", "login_time"),
        Index("ix_login_activities_admin_time", "admin_id", "login_time"),
        Index("ix_login_activities_login_time", "login_time"),
    )


class SecurityEvent(Base):
    """Append-only security event log."""

    __tablename__ = "security_events"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    severity: Mapped[str] = mapped_column(String(10), nullable=False)
    admin_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    email: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(50), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON string
    timestamp: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    resolved_by: Mapped[str | None] = mapped_column(String(128), nullable=True)

    __table_args__ = (
        Index("ix_security_events_timestamp", "timestamp"),
        Index("ix_security_events_type", "type"),
        Index("ix_security_events_severity", "severity"),
    )


class DeviceProfile(Base):
    """Known device for an administrator, keyed by (admin_id, fingerprint)."""

    __tablename__ = "device_profiles"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    admin_id: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(100), nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    first_seen: Mapped[datetime] = mapped_column(nullable=False)
    last_seen: Mapped[datetime] = mapped_column(nullable=False)
    trust_score: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    login_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    locations: Mapped[str] = mapped_column(Text, nullable=False, default="[]")  # JSON list
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("admin_id", "fingerprint", name="uq_device_profiles_admin_fingerprint"),
        Index("ix_device_profiles_admin_id", "admin_id"),
    )


class AdminProfile(Base, TimestampMixin):
    """Authorization profile consulted after a successful sign-in."""

    __tablename__ = "admin_profiles"

    uid: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending"
    )  # pending, approved, rejected, revoked
    approved_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        Index("ix_admin_profiles_email", "email"),
        Index("ix_admin_profiles_status", "status"),
    )


class User(Base, TimestampMixin):
    """Account held by the local identity provider."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    email: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_login: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        Index("ix_users_email", "email"),
    )
