"""
Database session management.

Components receive a ``sessionmaker`` (the store handle) at construction and
open one short-lived session per store operation.
"""

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from loginguard.db.engine import get_engine

_session_factory: sessionmaker[Session] | None = None


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory bound to ``engine``."""
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


def get_session_factory() -> sessionmaker[Session]:
    """
    Get or create the session factory for the configured engine.

    Returns cached factory instance, creating it on first call.
    """
    global _session_factory

    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())

    return _session_factory


def reset_session_factory() -> None:
    """Drop the cached factory (used after the engine is disposed)."""
    global _session_factory
    _session_factory = None
