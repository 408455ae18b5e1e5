"""API routers."""

from loginguard.api.health import router as health_router
from loginguard.api.security import router as security_router

__all__ = ["health_router", "security_router"]
