"""
Shared API dependencies.
"""

import hmac

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader

from loginguard.services import SecurityServices

admin_token_header = APIKeyHeader(name="X-Admin-Token", auto_error=False)


def get_services(request: Request) -> SecurityServices:
    """The components assembled at startup."""
    return request.app.state.services


def require_admin_token(
    token: str | None = Depends(admin_token_header),
    services: SecurityServices = Depends(get_services),
) -> None:
    """
    Guard for dashboard routes.

    An empty configured token disables the dashboard entirely.
    """
    expected = services.settings.admin_api_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Security dashboard is disabled",
        )
    if not token or not hmac.compare_digest(token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing admin token",
        )
