"""Utility functions and helpers for the Gmail gateway.

This module provides the exception hierarchy and the AES-GCM helpers used
to encrypt credential fields at rest.
"""

from gmail_gateway.utils.encryption import (
    generate_key,
    is_sealed,
    key_from_hex,
    seal,
    unseal,
)
from gmail_gateway.utils.errors import (
    AuthenticationError,
    ConfigMissingError,
    CredentialNotFoundError,
    GatewayError,
    GmailAPIError,
    InvalidGrantError,
    NoRefreshTokenError,
    ProviderError,
    RateLimitError,
    StoreError,
    TokenError,
    TransientError,
    ValidationError,
)

__all__ = [
    # Encryption utilities
    "generate_key",
    "key_from_hex",
    "seal",
    "unseal",
    "is_sealed",
    # Exception hierarchy
    "GatewayError",
    "ConfigMissingError",
    "AuthenticationError",
    "InvalidGrantError",
    "NoRefreshTokenError",
    "CredentialNotFoundError",
    "TokenError",
    "ProviderError",
    "GmailAPIError",
    "StoreError",
    "TransientError",
    "RateLimitError",
    "ValidationError",
]
