"""Login security control plane: rate limiting, idle sessions, monitoring."""

from loginguard.security.activity import ActivityBus
from loginguard.security.client_info import ClientContext, DeviceFingerprint, IPLookup
from loginguard.security.events import SecurityEventInput, SecurityEventType, SecurityMetrics
from loginguard.security.hashing import email_identifier, hash_identifier
from loginguard.security.monitor import MonitorConfig, SecurityMonitor
from loginguard.security.rate_limiter import (
    AttemptInfo,
    RateLimitConfig,
    RateLimiter,
    RateLimitStatus,
)
from loginguard.security.session_timer import SessionState, SessionTimer, SessionTimerConfig

__all__ = [
    "ActivityBus",
    "AttemptInfo",
    "ClientContext",
    "DeviceFingerprint",
    "IPLookup",
    "MonitorConfig",
    "RateLimitConfig",
    "RateLimitStatus",
    "RateLimiter",
    "SecurityEventInput",
    "SecurityEventType",
    "SecurityMetrics",
    "SecurityMonitor",
    "SessionState",
    "SessionTimer",
    "SessionTimerConfig",
    "email_identifier",
    "hash_identifier",
]
