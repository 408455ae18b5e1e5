"""
Identity provider contract.

The login flow only depends on this protocol: credentials in, an opaque
identity (or a coded failure) out, plus a sign-in/sign-out notification
stream consumed by the session timer.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol


@dataclass(frozen=True)
class Identity:
    """An authenticated identity."""

    uid: str
    email: str


class IdentityErrorCode(str, Enum):
    INVALID_CREDENTIAL = "invalid-credential"
    USER_NOT_FOUND = "user-not-found"
    WRONG_PASSWORD = "wrong-password"
    TOO_MANY_REQUESTS = "too-many-requests"
    USER_DISABLED = "user-disabled"
    NETWORK_FAILURE = "network-request-failed"
    UNKNOWN = "unknown"


class IdentityProviderError(Exception):
    """Coded sign-in failure reported by an identity provider."""

    def __init__(self, code: IdentityErrorCode, message: str = ""):
        self.code = code
        self.message = message or code.value
        super().__init__(self.message)


AuthStateListener = Callable[[Identity | None], None]


class IdentityProvider(Protocol):
    @property
    def current_identity(self) -> Identity | None: ...

    async def sign_in(self, email: str, password: str) -> Identity:
        """Raises IdentityProviderError on failure."""
        ...

    async def sign_out(self) -> None: ...

    def on_auth_state_changed(self, listener: AuthStateListener) -> Callable[[], None]:
        """Subscribe; returns the unsubscribe callable."""
        ...
