"""Identity, authorization and the login flow."""

from loginguard.auth.identity import (
    Identity,
    IdentityErrorCode,
    IdentityProvider,
    IdentityProviderError,
)
from loginguard.auth.local_provider import LocalIdentityProvider
from loginguard.auth.orchestrator import LoginOrchestrator, map_provider_error
from loginguard.auth.password import hash_password, verify_password
from loginguard.auth.profiles import AuthorizationStatus, ProfileDirectory, ProfileView
from loginguard.auth.schemas import LoginCredentials, parse_credentials

__all__ = [
    "AuthorizationStatus",
    "Identity",
    "IdentityErrorCode",
    "IdentityProvider",
    "IdentityProviderError",
    "LocalIdentityProvider",
    "LoginCredentials",
    "LoginOrchestrator",
    "ProfileDirectory",
    "ProfileView",
    "hash_password",
    "map_provider_error",
    "parse_credentials",
    "verify_password",
]
