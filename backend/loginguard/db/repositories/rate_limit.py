"""
Rate-limit record repository.

Writes are compare-and-swap: an update only lands if the row still carries
the version the caller read. Callers own the transaction (commit/rollback).
"""

from datetime import datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from loginguard.db.models import RateLimitRecord


def get_rate_limit(db: Session, key: str) -> RateLimitRecord | None:
    """Get the record for a hashed identifier."""
    stmt = select(RateLimitRecord).where(RateLimitRecord.key == key)
    return db.execute(stmt).scalar_one_or_none()


def insert_rate_limit(
    db: Session,
    key: str,
    *,
    count: int,
    first_attempt: datetime,
    last_attempt: datetime,
    escalation_count: int,
    escalation_started_at: datetime,
    is_locked_out: bool,
) -> bool:
    """
    Create the record for a first failure.

    Returns:
        False if another writer created the record first.
    """
    record = RateLimitRecord(
        key=key,
        count=count,
        first_attempt=first_attempt,
        last_attempt=last_attempt,
        escalation_count=escalation_count,
        escalation_started_at=escalation_started_at,
        is_locked_out=is_locked_out,
        version=1,
    )
    db.add(record)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        return False
    return True


def compare_and_swap_rate_limit(
    db: Session, key: str, expected_version: int, values: dict[str, Any]
) -> bool:
    """
    Apply ``values`` only if the stored version equals ``expected_version``.

    Returns:
        True if the row was updated, False if a concurrent writer won.
    """
    stmt = (
        update(RateLimitRecord)
        .where(RateLimitRecord.key == key)
        .where(RateLimitRecord.version == expected_version)
        .values(**values, version=expected_version + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    return result.rowcount == 1


def delete_rate_limit(db: Session, key: str) -> bool:
    """Delete the record for a hashed identifier."""
    stmt = delete(RateLimitRecord).where(RateLimitRecord.key == key)
    result = db.execute(stmt)
    return result.rowcount > 0
