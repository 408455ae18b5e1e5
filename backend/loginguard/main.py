"""
loginguard dashboard application.

FastAPI application exposing health probes and the read-only security
dashboard, with structured logging and the shared error envelope.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI

from loginguard import __version__
from loginguard.api import health_router, security_router
from loginguard.config import get_settings
from loginguard.core import get_logger, setup_logging
from loginguard.core.middleware import RequestContextMiddleware, setup_exception_handlers
from loginguard.db import dispose_engine, get_engine, reset_session_factory, verify_database_connection
from loginguard.services import SecurityServices, build_services

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    setup_logging(
        level=settings.log_level,
        json_output=not settings.debug,
        log_file=settings.log_file or None,
    )
    logger.info(
        "Starting loginguard",
        data={"environment": settings.environment, "debug": settings.debug},
    )

    # Services may be injected (tests); otherwise built on the shared engine
    services_created = False
    if getattr(app.state, "services", None) is None:
        app.state.services = build_services(settings, engine=get_engine())
        services_created = True

    # Does NOT run migrations
    if verify_database_connection(app.state.services.engine):
        logger.info("Database connection verified")
    else:
        logger.warning("Database connection failed - run 'alembic upgrade head' to initialize")

    if not settings.admin_api_token:
        logger.warning("ADMIN_API_TOKEN not set - security dashboard disabled")

    app.state.start_time = datetime.now(UTC)

    yield

    logger.info("Shutting down loginguard")
    if services_created:
        dispose_engine()
        reset_session_factory()
        app.state.services = None


def create_app(services: SecurityServices | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="loginguard",
        description="Login security control plane dashboard",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.services = services

    # Setup exception handlers (must be before middleware)
    setup_exception_handlers(app)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(health_router)
    app.include_router(security_router)

    return app


# Create application instance
app = create_app()
