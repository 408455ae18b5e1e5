"""
Login orchestrator.

One attempt runs: credential validation, rate-limit check, identity-provider
sign-in, authorization status check, then the success bookkeeping (clear the
rate limiter, analyze the attempt). Every rejection surfaces as a
``SecurityError``; telemetry failures never change the outcome.
"""

from __future__ import annotations

import math
import uuid

from loginguard.auth.identity import (
    Identity,
    IdentityErrorCode,
    IdentityProvider,
    IdentityProviderError,
)
from loginguard.auth.profiles import AuthorizationStatus, ProfileDirectory
from loginguard.auth.schemas import parse_credentials
from loginguard.core import (
    ErrorCode,
    MetricsRegistry,
    SecurityError,
    Severity,
    as_security_error,
    attempt_id_ctx,
    authentication_error,
    get_logger,
    rate_limit_error,
    security_error,
)
from loginguard.security.client_info import ClientContext
from loginguard.security.events import SecurityEventInput, SecurityEventType
from loginguard.security.hashing import email_identifier
from loginguard.security.monitor import SecurityMonitor
from loginguard.security.rate_limiter import AttemptInfo, RateLimiter, RateLimitStatus

logger = get_logger(__name__)

_INVALID_CREDENTIAL_CODES = {
    IdentityErrorCode.INVALID_CREDENTIAL,
    IdentityErrorCode.USER_NOT_FOUND,
    IdentityErrorCode.WRONG_PASSWORD,
}

_STATUS_MESSAGES = {
    AuthorizationStatus.PENDING.value: "Your account is pending approval by the administrator.",
    AuthorizationStatus.REJECTED.value: "Your access request was rejected.",
}


def map_provider_error(exc: IdentityProviderError) -> tuple[SecurityError, str]:
    """
    Translate a provider failure into the local taxonomy.

    Returns:
        The error to raise and the failure reason for the audit trail.
    """
    if exc.code in _INVALID_CREDENTIAL_CODES:
        return (
            authentication_error(
                f"Provider rejected credentials ({exc.code.value})",
                user_message="Invalid email or password",
                code=ErrorCode.INVALID_CREDENTIALS,
                context="login",
            ),
            "Invalid credentials",
        )
    if exc.code is IdentityErrorCode.TOO_MANY_REQUESTS:
        return (
            rate_limit_error("Identity provider rate limited the account", context="login"),
            "Provider rate limited",
        )
    if exc.code is IdentityErrorCode.USER_DISABLED:
        return (
            authentication_error(
                "Account disabled at identity provider",
                user_message="This account has been disabled.",
                code=ErrorCode.ACCOUNT_DISABLED,
                context="login",
            ),
            "Account disabled",
        )
    if exc.code is IdentityErrorCode.NETWORK_FAILURE:
        return (
            security_error(
                f"Identity provider unreachable: {exc.message}",
                code=ErrorCode.NETWORK_ERROR,
                user_message="Network error. Check your connection.",
                context="login",
            ),
            "Network error",
        )
    return (
        authentication_error(
            f"Unexpected provider error ({exc.code.value})",
            user_message="Authentication failed. Please try again.",
            context="login",
        ),
        "Authentication failed",
    )


class LoginOrchestrator:
    """Binds the rate limiter, identity provider, profiles and monitor."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        identity_provider: IdentityProvider,
        monitor: SecurityMonitor,
        profiles: ProfileDirectory,
        metrics: MetricsRegistry | None = None,
    ):
        self.rate_limiter = rate_limiter
        self.identity_provider = identity_provider
        self.monitor = monitor
        self.profiles = profiles
        self._metrics = metrics

    async def login(
        self,
        email: str,
        password: str,
        client: ClientContext | None = None,
    ) -> Identity:
        """
        Run one login attempt.

        Raises:
            SecurityError: ``validation``, ``rate_limit``, ``authentication``
                or ``security`` kind; ``user_message`` is safe to display.
        """
        token = attempt_id_ctx.set(uuid.uuid4().hex)
        try:
            return await self._login(email, password, client)
        finally:
            attempt_id_ctx.reset(token)

    async def sign_out(self) -> None:
        await self.identity_provider.sign_out()

    async def get_rate_limit_info(self, email: str) -> AttemptInfo:
        """Counters for UI feedback; zero-count if the store is unavailable."""
        try:
            return await self.rate_limiter.get_attempt_info(email_identifier(email))
        except Exception:
            logger.error("Failed to load rate-limit info", exc_info=True)
            return AttemptInfo()

    async def _login(self, email: str, password: str, client: ClientContext | None) -> Identity:
        credentials = parse_credentials(email, password)
        email = credentials.email
        identifier = email_identifier(email)

        status = await self._check_rate_limit(identifier)
        if status.is_limited:
            await self._reject_rate_limited(email, status, client)

        try:
            identity = await self.identity_provider.sign_in(email, credentials.password)
        except IdentityProviderError as exc:
            await self._record_failed_attempt(identifier)
            error, reason = map_provider_error(exc)
            await self.monitor.analyze_login_attempt(
                email, False, client=client, failure_reason=reason
            )
            self._count("login_failure_total")
            logger.info(
                "Login failed at identity provider",
                data={"code": exc.code.value, "kind": error.kind.value},
            )
            raise error from exc
        except Exception as exc:
            await self._record_failed_attempt(identifier)
            await self.monitor.analyze_login_attempt(
                email, False, client=client, failure_reason="Authentication failed"
            )
            self._count("login_failure_total")
            error = as_security_error(exc, context="login")
            logger.error("Identity provider raised unexpectedly", data=error.to_log(), exc_info=True)
            raise error from exc

        await self._authorize(identity, email, client)

        try:
            await self.rate_limiter.clear_attempts(identifier)
        except Exception:
            logger.error("Failed to clear rate-limit record", exc_info=True)

        await self.monitor.analyze_login_attempt(email, True, identity.uid, client)
        self._count("login_success_total")
        logger.info("Login succeeded", data={"uid": identity.uid})
        return identity

    async def _check_rate_limit(self, identifier: str) -> RateLimitStatus:
        try:
            return await self.rate_limiter.is_rate_limited(identifier)
        except Exception as exc:
            logger.error("Rate-limit check failed, rejecting attempt", exc_info=True)
            raise security_error(
                f"Rate-limit check failed: {type(exc).__name__}",
                code=ErrorCode.STORE_UNAVAILABLE,
                user_message="Unable to verify this login attempt. Please try again later.",
                severity=Severity.HIGH,
                context="login",
            ) from exc

    async def _reject_rate_limited(
        self, email: str, status: RateLimitStatus, client: ClientContext | None
    ) -> None:
        await self.monitor.record_login_failure(
            email, f"Rate limited: {status.reason}", client=client
        )
        retry_after = math.ceil(status.time_remaining or 0)
        await self.monitor.record_security_event(
            SecurityEventInput(
                type=SecurityEventType.RATE_LIMIT_EXCEEDED.value,
                severity=(Severity.HIGH if status.is_locked_out else Severity.MEDIUM).value,
                email=email,
                details={"reason": status.reason, "retry_after_seconds": retry_after},
            )
        )
        self._count("login_rate_limited_total")
        logger.warning(
            "Login blocked by rate limiter",
            data={"locked_out": status.is_locked_out, "retry_after_seconds": retry_after},
        )
        raise rate_limit_error(
            f"Rate limited: {status.reason}",
            retry_after=status.time_remaining,
            context="login",
        )

    async def _authorize(
        self, identity: Identity, email: str, client: ClientContext | None
    ) -> None:
        try:
            await self.profiles.ensure_default_admin(identity)
            profile = await self.profiles.get_profile(identity)
        except Exception as exc:
            await self._sign_out_quietly()
            logger.error("Authorization lookup failed", exc_info=True)
            raise security_error(
                f"Authorization lookup failed: {type(exc).__name__}",
                code=ErrorCode.STORE_UNAVAILABLE,
                user_message="Unable to verify account access. Please try again later.",
                context="login",
            ) from exc

        if profile is None:
            await self._sign_out_quietly()
            await self.monitor.record_login_failure(
                email, "No admin profile", client=client, user_id=identity.uid
            )
            self._count("login_denied_total")
            raise authentication_error(
                "Authenticated identity has no admin profile",
                user_message="Account exists but no admin profile was found. Please register first.",
                code=ErrorCode.PROFILE_NOT_FOUND,
                context="login",
            )

        if profile.is_approved:
            return

        await self._sign_out_quietly()
        await self.monitor.record_login_failure(
            email, f"Status: {profile.status}", client=client, user_id=identity.uid
        )
        await self.monitor.record_security_event(
            SecurityEventInput(
                type=SecurityEventType.PERMISSION_DENIED.value,
                severity=Severity.MEDIUM.value,
                email=email,
                admin_id=identity.uid,
                details={"status": profile.status},
            )
        )
        self._count("login_denied_total")
        raise authentication_error(
            f"Admin profile status is {profile.status}",
            user_message=_STATUS_MESSAGES.get(profile.status, "Access denied."),
            code=ErrorCode.ACCOUNT_NOT_APPROVED,
            context="login",
        )

    async def _record_failed_attempt(self, identifier: str) -> None:
        try:
            await self.rate_limiter.record_failed_attempt(identifier)
        except Exception:
            logger.error("Failed to record failed attempt", exc_info=True)

    async def _sign_out_quietly(self) -> None:
        try:
            await self.identity_provider.sign_out()
        except Exception:
            logger.error("Sign-out after denied login failed", exc_info=True)

    def _count(self, name: str) -> None:
        if self._metrics is not None:
            self._metrics.increment(name)
