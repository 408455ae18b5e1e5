"""
Authorization profile lookup.

After the identity provider accepts the credentials, the administrator's
profile decides whether the identity may actually sign in.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from loginguard.auth.identity import Identity
from loginguard.core import Clock, get_logger, utcnow
from loginguard.db.models import AdminProfile
from loginguard.db.repositories import (
    get_admin_by_email,
    get_admin_by_uid,
    upsert_admin_profile,
)

logger = get_logger(__name__)

SYSTEM_APPROVER = "system"


class AuthorizationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVOKED = "revoked"


@dataclass(frozen=True)
class ProfileView:
    uid: str
    email: str
    status: str

    @property
    def is_approved(self) -> bool:
        return self.status == AuthorizationStatus.APPROVED.value

    @classmethod
    def from_model(cls, profile: AdminProfile) -> ProfileView:
        return cls(uid=profile.uid, email=profile.email, status=profile.status)


class ProfileDirectory:
    """
    Admin profile store.

    Args:
        session_factory: Store handle.
        bootstrap_admin_email: Address whose approved profile is created on
            its first successful sign-in; empty disables the bootstrap.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        bootstrap_admin_email: str = "",
        clock: Clock = utcnow,
    ):
        self._session_factory = session_factory
        self.bootstrap_admin_email = bootstrap_admin_email.strip().lower()
        self._clock = clock

    async def get_profile(self, identity: Identity) -> ProfileView | None:
        """Look the profile up by uid, then by email for legacy profiles."""
        return await run_in_threadpool(self._get_profile, identity)

    async def ensure_default_admin(self, identity: Identity) -> bool:
        """
        Create the approved profile of the bootstrap administrator if missing.

        Returns:
            True if a profile was created.
        """
        if not self.bootstrap_admin_email:
            return False
        if identity.email.strip().lower() != self.bootstrap_admin_email:
            return False
        return await run_in_threadpool(self._ensure_default_admin, identity)

    async def set_status(
        self,
        uid: str,
        email: str,
        status: AuthorizationStatus,
        approved_by: str | None = None,
    ) -> ProfileView:
        return await run_in_threadpool(self.set_status_sync, uid, email, status, approved_by)

    def set_status_sync(
        self,
        uid: str,
        email: str,
        status: AuthorizationStatus,
        approved_by: str | None = None,
    ) -> ProfileView:
        approved_at = self._clock() if status is AuthorizationStatus.APPROVED else None
        with self._session_factory() as db:
            profile = upsert_admin_profile(
                db,
                uid,
                email,
                status.value,
                approved_by=approved_by if approved_at else None,
                approved_at=approved_at,
            )
            return ProfileView.from_model(profile)

    def _get_profile(self, identity: Identity) -> ProfileView | None:
        with self._session_factory() as db:
            profile = get_admin_by_uid(db, identity.uid)
            if profile is None:
                profile = get_admin_by_email(db, identity.email)
            return ProfileView.from_model(profile) if profile else None

    def _ensure_default_admin(self, identity: Identity) -> bool:
        with self._session_factory() as db:
            if get_admin_by_uid(db, identity.uid) is not None:
                return False
        self.set_status_sync(
            identity.uid,
            identity.email,
            AuthorizationStatus.APPROVED,
            approved_by=SYSTEM_APPROVER,
        )
        logger.info("Default admin profile created", data={"uid": identity.uid})
        return True
