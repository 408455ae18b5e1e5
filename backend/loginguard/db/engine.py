"""
Database engine configuration.

Creates the SQLAlchemy engine with settings for SQLite or PostgreSQL.
"""

from pathlib import Path

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from loginguard.config import Settings, get_settings
from loginguard.core import get_logger

logger = get_logger(__name__)

_engine: Engine | None = None


def build_engine(settings: Settings) -> Engine:
    """Create a new engine for the configured database URL."""
    database_url = settings.database_url

    if settings.is_sqlite:
        # Ensure data directory exists for file-backed SQLite
        db_path = database_url.removeprefix("sqlite:///")
        if database_url.startswith("sqlite:///") and db_path not in ("", ":memory:"):
            db_dir = Path(db_path).parent
            if not db_dir.exists():
                db_dir.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created database directory: {db_dir}")

        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 30},
            echo=settings.debug,
            pool_pre_ping=True,
        )
    else:
        engine = create_engine(
            database_url,
            echo=settings.debug,
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
        )

    logger.info(
        "Database engine created",
        data={"dialect": engine.dialect.name, "debug": settings.debug},
    )
    return engine


def get_engine() -> Engine:
    """
    Get or create the database engine.

    Returns cached engine instance, creating it on first call.
    """
    global _engine

    if _engine is None:
        _engine = build_engine(get_settings())
    return _engine


def verify_database_connection(engine: Engine | None = None) -> bool:
    """Verify database connectivity with a simple query."""
    try:
        engine = engine or get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


def dispose_engine() -> None:
    """Dispose of the engine and release all connections."""
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None
        logger.info("Database engine disposed")
