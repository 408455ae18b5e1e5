"""Database models, engine, and session management."""

from loginguard.db.base import Base, TimestampMixin
from loginguard.db.engine import (
    build_engine,
    dispose_engine,
    get_engine,
    verify_database_connection,
)
from loginguard.db.models import (
    AdminProfile,
    DeviceProfile,
    LoginActivity,
    RateLimitRecord,
    SecurityEvent,
    User,
)
from loginguard.db.session import (
    create_session_factory,
    get_session_factory,
    reset_session_factory,
)

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Engine
    "build_engine",
    "get_engine",
    "verify_database_connection",
    "dispose_engine",
    # Session
    "create_session_factory",
    "get_session_factory",
    "reset_session_factory",
    # Models
    "AdminProfile",
    "DeviceProfile",
    "LoginActivity",
    "RateLimitRecord",
    "SecurityEvent",
    "User",
]
