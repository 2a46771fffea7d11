"""Custom exception hierarchy for the Gmail gateway.

This module defines a structured exception hierarchy for the error
conditions that may occur while brokering OAuth credentials and Gmail API
calls: tenant configuration, the authorization-code and refresh flows,
credential persistence, upstream provider failures and input validation.

Every failure is scoped to a single request. The REST and MCP surfaces map
these classes to HTTP statuses or tool-error text; nothing here is fatal to
the process.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base exception for all Gmail gateway errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary containing additional error context.
    """

    def __init__(self, message: str, details: dict[str, object] | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigMissingError(GatewayError):
    """Exception raised when no usable OAuth client configuration exists.

    A tenant with unset credentials is not an error by itself: the resolver
    degrades to the default tenant. This is only raised when the default
    tenant is unconfigured too, so no OAuth request can be built at all.
    """

    pass


class AuthenticationError(GatewayError):
    """Exception raised for OAuth and credential-related errors.

    Examples:
        - Authorization code is invalid or expired
        - No refresh token stored for the user
        - No credential record for the requested email
    """

    pass


class InvalidGrantError(AuthenticationError):
    """Exception raised when the provider rejects an authorization code.

    The code was already used or has expired. The user must restart the
    authorization flow to obtain a fresh code.
    """

    pass


class NoRefreshTokenError(AuthenticationError):
    """Exception raised when a refresh is attempted without a refresh token.

    The user must re-authorize with the consent prompt so Google issues a
    new refresh token.
    """

    pass


class CredentialNotFoundError(AuthenticationError):
    """Exception raised when no credential record exists for an email."""

    pass


class TokenError(AuthenticationError):
    """Exception raised for token encryption or decryption errors.

    Examples:
        - Token decryption failed due to invalid key
        - Invalid or corrupted ciphertext in the store
    """

    pass


class ProviderError(GatewayError):
    """Exception raised for opaque upstream failures from Google.

    Wraps failures of the token endpoint, the People API and the Gmail API
    with the original exception chained as ``__cause__``.
    """

    pass


class GmailAPIError(ProviderError):
    """Exception raised for errors from Gmail API calls.

    Attributes:
        status_code: HTTP status code from the API response.
        error_code: Gmail API-specific error code, if available.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        """Initialize the Gmail API error exception.

        Args:
            message: Human-readable error description.
            status_code: HTTP status code from the API response.
            error_code: Gmail API-specific error code, if available.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message, details)
        self.status_code = status_code
        self.error_code = error_code


class StoreError(GatewayError):
    """Exception raised when the credential store fails.

    Examples:
        - Database or REST backend unreachable
        - Upsert rejected by the backend
    """

    pass


class TransientError(GatewayError):
    """Exception raised when a provider or store call exceeds its timeout.

    Callers may retry; the gateway itself never does.

    Attributes:
        operation: Name of the bounded operation that timed out.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.operation = operation


class RateLimitError(GatewayError):
    """Exception raised when rate limits are exceeded.

    Attributes:
        retry_after_seconds: Suggested time to wait before retrying.
    """

    def __init__(
        self,
        message: str,
        retry_after_seconds: float | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        """Initialize the rate limit exception.

        Args:
            message: Human-readable error description.
            retry_after_seconds: Suggested time to wait before retrying.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message, details)
        self.retry_after_seconds = retry_after_seconds


class ValidationError(GatewayError):
    """Exception raised for input validation errors.

    Attributes:
        field: The name of the field that failed validation, if applicable.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        """Initialize the validation error exception.

        Args:
            message: Human-readable error description.
            field: The name of the field that failed validation.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message, details)
        self.field = field


__all__ = [
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
