"""
Local identity provider backed by the ``users`` table.

Holds the signed-in identity of this process and notifies subscribers on
every sign-in and sign-out, the way a hosted identity service's auth-state
stream does.
"""

from __future__ import annotations

from collections.abc import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from loginguard.auth.identity import (
    AuthStateListener,
    Identity,
    IdentityErrorCode,
    IdentityProviderError,
)
from loginguard.auth.password import hash_password, needs_rehash, verify_password
from loginguard.core import Clock, get_logger, utcnow
from loginguard.db.repositories import (
    get_user_by_email,
    update_last_login,
    update_password_hash,
)

logger = get_logger(__name__)


class LocalIdentityProvider:
    """Email/password identity provider over the local user store."""

    def __init__(self, session_factory: sessionmaker[Session], clock: Clock = utcnow):
        self._session_factory = session_factory
        self._clock = clock
        self._current: Identity | None = None
        self._listeners: list[AuthStateListener] = []

    @property
    def current_identity(self) -> Identity | None:
        return self._current

    async def sign_in(self, email: str, password: str) -> Identity:
        try:
            identity = await run_in_threadpool(self._authenticate, email, password)
        except SQLAlchemyError as exc:
            raise IdentityProviderError(
                IdentityErrorCode.NETWORK_FAILURE, "User store unavailable"
            ) from exc
        self._current = identity
        self._notify(identity)
        return identity

    async def sign_out(self) -> None:
        self._current = None
        self._notify(None)

    def on_auth_state_changed(self, listener: AuthStateListener) -> Callable[[], None]:
        """
        Subscribe to auth-state changes.

        The listener is called immediately with the current identity, then on
        every change. Returns a callable that removes exactly this listener.
        """
        self._listeners.append(listener)
        self._call(listener, self._current)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _authenticate(self, email: str, password: str) -> Identity:
        with self._session_factory() as db:
            user = get_user_by_email(db, email)
            # Same error for unknown users and wrong passwords
            if user is None or not verify_password(password, user.password_hash):
                raise IdentityProviderError(
                    IdentityErrorCode.INVALID_CREDENTIAL, "Invalid credential"
                )
            if user.disabled:
                raise IdentityProviderError(IdentityErrorCode.USER_DISABLED, "User disabled")

            if needs_rehash(user.password_hash):
                update_password_hash(db, user.id, hash_password(password))
            update_last_login(db, user.id, self._clock())
            return Identity(uid=user.id, email=user.email)

    def _notify(self, identity: Identity | None) -> None:
        for listener in list(self._listeners):
            self._call(listener, identity)

    def _call(self, listener: AuthStateListener, identity: Identity | None) -> None:
        try:
            listener(identity)
        except Exception:
            logger.error("Auth state listener failed", exc_info=True)
