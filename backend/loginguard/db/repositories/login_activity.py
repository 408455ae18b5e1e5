"""
Login activity repository (audit trail of every attempt).
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from loginguard.db.models import LoginActivity


def add_login_activity(
    db: Session,
    *,
    email: str,
    status: str,
    login_time: datetime,
    admin_id: str | None = None,
    ip_address: str = "unknown",
    user_agent: str = "unknown",
    timezone: str | None = None,
    failure_reason: str | None = None,
) -> LoginActivity:
    """Append one login attempt record."""
    entry = LoginActivity(
        admin_id=admin_id,
        email=email,
        login_time=login_time,
        ip_address=ip_address,
        user_agent=user_agent,
        timezone=timezone,
        status=status,
        failure_reason=failure_reason,
    )
    db.add(entry)
    db.commit()
    return entry


def list_recent_by_email(db: Session, email: str, *, limit: int) -> list[LoginActivity]:
    """Most recent attempts for an email, newest first."""
    stmt = (
        select(LoginActivity)
        .where(LoginActivity.email == email)
        .order_by(LoginActivity.login_time.desc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())


def list_recent_successes(
    db: Session,
    admin_id: str,
    *,
    limit: int,
    exclude_id: str | None = None,
) -> list[LoginActivity]:
    """Most recent successful logins for an identity, newest first."""
    stmt = (
        select(LoginActivity)
        .where(LoginActivity.admin_id == admin_id)
        .where(LoginActivity.status == "success")
    )
    if exclude_id:
        stmt = stmt.where(LoginActivity.id != exclude_id)
    stmt = stmt.order_by(LoginActivity.login_time.desc()).limit(limit)
    return list(db.execute(stmt).scalars().all())


def list_recent_activities(db: Session, *, limit: int = 10) -> list[LoginActivity]:
    """Most recent attempts across all identities."""
    stmt = select(LoginActivity).order_by(LoginActivity.login_time.desc()).limit(limit)
    return list(db.execute(stmt).scalars().all())
