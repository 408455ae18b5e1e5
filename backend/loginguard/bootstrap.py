"""
Administrator bootstrap: a local identity plus an approved admin profile.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session, sessionmaker

from loginguard.auth.password import hash_password
from loginguard.auth.profiles import SYSTEM_APPROVER, AuthorizationStatus, ProfileDirectory
from loginguard.auth.schemas import parse_credentials
from loginguard.core import Clock, get_logger, utcnow
from loginguard.db.repositories import create_user, get_user_by_email, update_password_hash

logger = get_logger(__name__)


@dataclass(frozen=True)
class BootstrapResult:
    uid: str
    email: str
    user_created: bool


def bootstrap_admin(
    session_factory: sessionmaker[Session],
    email: str,
    password: str,
    *,
    reset_password: bool = False,
    clock: Clock = utcnow,
) -> BootstrapResult:
    """
    Ensure ``email`` can sign in as an approved administrator.

    An existing account keeps its password unless ``reset_password`` is set.

    Raises:
        SecurityError: If the credentials fail login validation.
    """
    credentials = parse_credentials(email, password)

    with session_factory() as db:
        user = get_user_by_email(db, credentials.email)
        created = user is None
        if user is None:
            user = create_user(db, credentials.email, hash_password(credentials.password))
        elif reset_password:
            update_password_hash(db, user.id, hash_password(credentials.password))
        uid, stored_email = user.id, user.email

    ProfileDirectory(session_factory, clock=clock).set_status_sync(
        uid, stored_email, AuthorizationStatus.APPROVED, approved_by=SYSTEM_APPROVER
    )
    logger.info("Admin bootstrapped", data={"uid": uid, "user_created": created})
    return BootstrapResult(uid=uid, email=stored_email, user_created=created)
