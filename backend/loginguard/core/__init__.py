"""Core module with logging, errors, metrics and time helpers."""

from loginguard.core.errors import (
    ErrorCode,
    ErrorKind,
    ErrorResponse,
    SecurityError,
    Severity,
    as_security_error,
    authentication_error,
    rate_limit_error,
    security_error,
    validation_error,
)
from loginguard.core.logging import (
    attempt_id_ctx,
    get_logger,
    request_id_ctx,
    setup_logging,
)
from loginguard.core.metrics import MetricsRegistry
from loginguard.core.time import Clock, isoformat_z, utcnow

__all__ = [
    # Errors
    "ErrorCode",
    "ErrorKind",
    "ErrorResponse",
    "SecurityError",
    "Severity",
    "as_security_error",
    "authentication_error",
    "rate_limit_error",
    "security_error",
    "validation_error",
    # Logging
    "attempt_id_ctx",
    "get_logger",
    "request_id_ctx",
    "setup_logging",
    # Metrics
    "MetricsRegistry",
    # Time
    "Clock",
    "isoformat_z",
    "utcnow",
]
