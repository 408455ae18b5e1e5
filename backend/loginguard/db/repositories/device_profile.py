"""
Device profile repository.

Upserts use the same compare-and-swap discipline as rate-limit records:
first insert is guarded by the (admin_id, fingerprint) unique constraint,
later updates by the version column.
"""

import json
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from loginguard.db.models import DeviceProfile


def get_device_profile(
    db: Session, admin_id: str, fingerprint: str
) -> DeviceProfile | None:
    stmt = (
        select(DeviceProfile)
        .where(DeviceProfile.admin_id == admin_id)
        .where(DeviceProfile.fingerprint == fingerprint)
        .limit(1)
    )
    return db.execute(stmt).scalar_one_or_none()


def insert_device_profile(
    db: Session,
    *,
    admin_id: str,
    email: str,
    fingerprint: str,
    seen_at: datetime,
    locations: list[str],
) -> bool:
    """
    Create a profile for a first login from a device.

    Returns:
        False if a concurrent writer created it first.
    """
    profile = DeviceProfile(
        admin_id=admin_id,
        email=email,
        fingerprint=fingerprint,
        first_seen=seen_at,
        last_seen=seen_at,
        login_count=1,
        locations=json.dumps(sorted(set(locations))),
        version=1,
    )
    db.add(profile)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        return False
    return True


def touch_device_profile(
    db: Session,
    profile: DeviceProfile,
    *,
    seen_at: datetime,
    locations: list[str],
) -> bool:
    """
    Record another login from a known device (compare-and-swap).

    Returns:
        True if the update landed, False if the profile changed underneath.
    """
    merged = sorted(set(decode_locations(profile)) | set(locations))
    stmt = (
        update(DeviceProfile)
        .where(DeviceProfile.id == profile.id)
        .where(DeviceProfile.version == profile.version)
        .values(
            last_seen=seen_at,
            login_count=profile.login_count + 1,
            locations=json.dumps(merged),
            version=profile.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1


def decode_locations(profile: DeviceProfile) -> list[str]:
    if not profile.locations:
        return []
    return list(json.loads(profile.locations))
