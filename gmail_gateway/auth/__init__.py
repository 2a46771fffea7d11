"""Authentication module for the Gmail gateway.

This module provides multi-tenant OAuth 2.0 for the Gmail API:

- Tenant resolution: email address -> OAuth client credentials
- Authorization-code exchange and identity lookup
- Token refresh, serialized per user

Usage:
    >>> from gmail_gateway.auth import OAuthTokenManager, TenantConfigResolver
    >>>
    >>> manager = OAuthTokenManager(resolver, store, GoogleOAuthProvider(), uri)
    >>> url = manager.build_authorization_url("someone@gmail.com")
    >>>
    >>> # Later, from any request handler
    >>> credentials = await manager.get_valid_client("someone@gmail.com")
"""

from gmail_gateway.auth.oauth import DEFAULT_TIMEOUT_SECONDS, OAuthTokenManager
from gmail_gateway.auth.provider import (
    GATEWAY_SCOPES,
    GOOGLE_AUTH_URI,
    GOOGLE_TOKEN_URI,
    GoogleOAuthProvider,
)
from gmail_gateway.auth.records import (
    Identity,
    TokenGrant,
    UserCredentialRecord,
    now_ms,
    to_epoch_ms,
)
from gmail_gateway.auth.tenants import TenantConfigResolver

__all__ = [
    # Token manager
    "OAuthTokenManager",
    "DEFAULT_TIMEOUT_SECONDS",
    # Provider
    "GoogleOAuthProvider",
    "GATEWAY_SCOPES",
    "GOOGLE_AUTH_URI",
    "GOOGLE_TOKEN_URI",
    # Records
    "UserCredentialRecord",
    "TokenGrant",
    "Identity",
    "now_ms",
    "to_epoch_ms",
    # Tenants
    "TenantConfigResolver",
]
