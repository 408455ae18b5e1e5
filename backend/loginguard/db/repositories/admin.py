"""
Admin profile repository (authorization status lookup).
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from loginguard.db.models import AdminProfile


def get_admin_by_uid(db: Session, uid: str) -> AdminProfile | None:
    """Get profile by identity uid."""
    return db.get(AdminProfile, uid)


def get_admin_by_email(db: Session, email: str) -> AdminProfile | None:
    """Get profile by email (case-insensitive); first match wins."""
    if not email:
        return None
    stmt = select(AdminProfile).where(AdminProfile.email.ilike(email)).limit(1)
    return db.execute(stmt).scalar_one_or_none()


def upsert_admin_profile(
    db: Session,
    uid: str,
    email: str,
    status: str,
    *,
    approved_by: str | None = None,
    approved_at: datetime | None = None,
) -> AdminProfile:
    """
    Create or update the profile for ``uid``.

    Args:
        db: Database session.
        uid: Identity uid from the identity provider.
        email: Profile email (lower-cased).
        status: pending, approved, rejected or revoked.
        approved_by: Approver uid or "system".
        approved_at: Approval time.

    Returns:
        The stored AdminProfile.
    """
    profile = db.get(AdminProfile, uid)
    if profile is None:
        profile = AdminProfile(uid=uid, email=email.lower())
        db.add(profile)
    profile.email = email.lower()
    profile.status = status
    profile.approved_by = approved_by
    profile.approved_at = approved_at
    db.commit()
    db.refresh(profile)
    return profile
