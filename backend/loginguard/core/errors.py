"""
Security error taxonomy with stable error codes.

A single tagged error type is used for every failure the login flow
surfaces. Callers dispatch on ``kind`` rather than on the exception class,
and only ``user_message`` ever reaches an end user.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from loginguard.core.time import isoformat_z, utcnow


class ErrorKind(str, Enum):
    """Closed set of error variants."""

    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    SECURITY = "security"


class Severity(str, Enum):
    """Ordered severity scale shared by errors and security events."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Position on the low -> critical scale (0-based)."""
        return _SEVERITY_ORDER.index(self)


_SEVERITY_ORDER = [Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL]


class ErrorCode(str, Enum):
    """Stable error codes."""

    # General errors (1xxx)
    INTERNAL_ERROR = "E1000"
    VALIDATION_ERROR = "E1001"
    NOT_FOUND = "E1002"
    RATE_LIMITED = "E1005"

    # Authentication errors (2xxx)
    UNAUTHORIZED = "E2000"
    INVALID_CREDENTIALS = "E2001"
    ACCOUNT_DISABLED = "E2007"
    ACCOUNT_NOT_APPROVED = "E2011"
    PROFILE_NOT_FOUND = "E2012"
    AUTH_FAILED = "E2013"

    # Authorization errors (3xxx)
    FORBIDDEN = "E3000"

    # Security-plane errors (6xxx)
    SECURITY_ERROR = "E6000"
    NETWORK_ERROR = "E6001"
    STORE_UNAVAILABLE = "E6002"
    CONCURRENT_UPDATE = "E6003"


_DEFAULT_USER_MESSAGES = {
    ErrorKind.VALIDATION: "Please check your input and try again.",
    ErrorKind.AUTHENTICATION: "Authentication failed. Please check your credentials.",
    ErrorKind.RATE_LIMIT: "Too many attempts. Please try again later.",
    ErrorKind.SECURITY: "A security error occurred. Please try again.",
}

_STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.RATE_LIMIT: 429,
    ErrorKind.SECURITY: 500,
}


@dataclass(frozen=True)
class ErrorResponse:
    """Structured error response.

    Format: {error: {code, message, request_id?, details?}}
    """

    code: ErrorCode
    message: str
    request_id: str | None = None
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
        }
        if self.request_id:
            error["request_id"] = self.request_id
        if self.details:
            error["details"] = self.details
        return {"error": error}


class SecurityError(Exception):
    """Tagged security error carrying code, severity, timestamp and context."""

    def __init__(
        self,
        kind: ErrorKind,
        code: ErrorCode,
        message: str,
        *,
        user_message: str | None = None,
        severity: Severity = Severity.MEDIUM,
        context: str | None = None,
        retry_after: float | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.kind = kind
        self.code = code
        self.message = message
        self.user_message = user_message or _DEFAULT_USER_MESSAGES[kind]
        self.severity = severity
        self.context = context
        self.retry_after = retry_after
        self.details = details
        self.timestamp: datetime = utcnow()
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self.kind]

    def to_response(self, request_id: str | None = None) -> ErrorResponse:
        """Create the client-facing envelope (never the internal message)."""
        details = dict(self.details or {})
        if self.retry_after is not None:
            details["retry_after_seconds"] = math.ceil(self.retry_after)
        return ErrorResponse(
            code=self.code,
            message=self.user_message,
            request_id=request_id,
            details=details or None,
        )

    def to_log(self) -> dict[str, Any]:
        """Internal representation for structured logs."""
        return {
            "kind": self.kind.value,
            "code": self.code.value,
            "severity": self.severity.value,
            "message": self.message,
            "context": self.context,
            "timestamp": isoformat_z(self.timestamp),
        }

    def __repr__(self) -> str:
        return f"SecurityError(kind={self.kind.value!r}, code={self.code.value!r}, message={self.message!r})"


def validation_error(
    message: str, field: str | None = None, context: str | None = None
) -> SecurityError:
    """Malformed input; always surfaced, user-correctable."""
    user_message = (
        f"Invalid {field}. Please check your input."
        if field
        else _DEFAULT_USER_MESSAGES[ErrorKind.VALIDATION]
    )
    return SecurityError(
        ErrorKind.VALIDATION,
        ErrorCode.VALIDATION_ERROR,
        message,
        user_message=user_message,
        severity=Severity.LOW,
        context=context,
        details={"field": field} if field else None,
    )


def authentication_error(
    message: str = "Authentication failed",
    *,
    user_message: str | None = None,
    code: ErrorCode = ErrorCode.AUTH_FAILED,
    context: str | None = None,
) -> SecurityError:
    """Bad credentials or an account that may not sign in."""
    return SecurityError(
        ErrorKind.AUTHENTICATION,
        code,
        message,
        user_message=user_message,
        severity=Severity.MEDIUM,
        context=context,
    )


def rate_limit_error(
    message: str = "Rate limit exceeded",
    retry_after: float | None = None,
    context: str | None = None,
) -> SecurityError:
    """Attempt blocked by policy; ``retry_after`` is in seconds."""
    if retry_after:
        minutes = math.ceil(retry_after / 60)
        user_message = f"Too many attempts. Please try again in {minutes} minutes."
    else:
        user_message = _DEFAULT_USER_MESSAGES[ErrorKind.RATE_LIMIT]
    return SecurityError(
        ErrorKind.RATE_LIMIT,
        ErrorCode.RATE_LIMITED,
        message,
        user_message=user_message,
        severity=Severity.MEDIUM,
        context=context,
        retry_after=retry_after,
    )


def security_error(
    message: str,
    *,
    code: ErrorCode = ErrorCode.SECURITY_ERROR,
    user_message: str | None = None,
    severity: Severity = Severity.MEDIUM,
    context: str | None = None,
) -> SecurityError:
    """Anything not otherwise classified."""
    return SecurityError(
        ErrorKind.SECURITY,
        code,
        message,
        user_message=user_message,
        severity=severity,
        context=context,
    )


def as_security_error(exc: BaseException, context: str | None = None) -> SecurityError:
    """Wrap an unexpected exception without leaking its message to users."""
    if isinstance(exc, SecurityError):
        return exc
    return security_error(
        f"{type(exc).__name__}: {exc}",
        code=ErrorCode.INTERNAL_ERROR,
        context=context,
    )
