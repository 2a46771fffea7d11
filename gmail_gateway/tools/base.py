"""Base utilities for gateway operations.

This module provides shared utilities used by the REST and MCP surfaces:
- Standardized response envelope builders
- Parameter parsing with uniform validation errors
- Error to HTTP status mapping
- Rate limiting and audit logging wrapper
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar

import pydantic

from gmail_gateway.schemas.tools import GatewayParams
from gmail_gateway.utils.errors import (
    CredentialNotFoundError,
    GatewayError,
    NoRefreshTokenError,
    RateLimitError,
    TransientError,
    ValidationError,
)

if TYPE_CHECKING:
    from gmail_gateway.gateway import Gateway

logger = logging.getLogger(__name__)

T = TypeVar("T")
P = TypeVar("P", bound=GatewayParams)


# =============================================================================
# Standard Response Keys
# =============================================================================


class ResponseKeys:
    """Standard keys for the response envelope."""

    SUCCESS = "success"
    DATA = "data"
    MESSAGE = "message"
    ERROR = "error"
    DETAILS = "details"


# =============================================================================
# Response Builders
# =============================================================================


def build_success_response(
    data: Any,
    message: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build standardized success envelope.

    Args:
        data: Operation payload.
        message: Optional human-readable message.
        **extra: Additional top-level keys (e.g. ``query``).

    Returns:
        ``{"success": True, "data": ..., ...}``
    """
    response: dict[str, Any] = {
        ResponseKeys.SUCCESS: True,
        ResponseKeys.DATA: data,
    }
    if message:
        response[ResponseKeys.MESSAGE] = message
    response.update(extra)
    return response


def build_error_response(
    error: str,
    details: Any = None,
) -> dict[str, Any]:
    """Build standardized error envelope.

    Args:
        error: Human-readable error message.
        details: Optional additional error details.

    Returns:
        ``{"success": False, "error": ...}``
    """
    response: dict[str, Any] = {
        ResponseKeys.SUCCESS: False,
        ResponseKeys.ERROR: error,
    }
    if details:
        response[ResponseKeys.DETAILS] = details
    return response


# =============================================================================
# Errors and Parameters
# =============================================================================

ERROR_STATUS: list[tuple[type[GatewayError], int]] = [
    (ValidationError, 400),
    (NoRefreshTokenError, 401),
    (CredentialNotFoundError, 404),
    (RateLimitError, 429),
    (TransientError, 503),
]


def error_status(error: BaseException) -> int:
    """Map an exception to the HTTP status the REST surface returns."""
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


def parse_params(model: type[P], raw: dict[str, Any]) -> P:
    """Validate raw request parameters into a params model.

    Raises:
        ValidationError: If required fields are missing or empty, or any
            field fails validation.
    """
    missing = [
        name for name in model.REQUIRED if raw.get(name) in (None, "", [])
    ]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            field=missing[0],
            details={"missing": missing},
        )

    try:
        return model.model_validate(raw)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        raise ValidationError(
            f"Invalid value for {field}: {first['msg']}",
            field=field,
        ) from e


# =============================================================================
# Operation Execution Wrapper
# =============================================================================


async def execute_tool(
    gateway: Gateway,
    tool_name: str,
    params: dict[str, Any],
    operation: Callable[[], Awaitable[T]],
    caller: str | None = None,
) -> T:
    """Execute an operation with rate limiting and audit logging.

    This wrapper handles:
    1. Rate limit consumption, keyed by caller (falling back to the email)
    2. Operation execution with timing
    3. Audit logging of the call

    Args:
        gateway: Composition root holding the limiter and audit logger.
        tool_name: Name of the operation being executed.
        params: Raw operation parameters (for audit logging).
        operation: Coroutine factory performing the work.
        caller: Client identifier for rate limiting.

    Returns:
        Result of the operation.

    Raises:
        RateLimitError: If rate limit exceeded.
        GatewayError: If the operation fails.
    """
    email = params.get("email") if isinstance(params.get("email"), str) else None
    start_time = time.perf_counter()
    result_status = "success"
    error_message: str | None = None

    try:
        gateway.rate_limiter.consume(caller or email or "anonymous")
        return await operation()
    except Exception as e:
        result_status = "error"
        error_message = str(e)
        raise
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        gateway.audit_logger.log_operation(
            operation=tool_name,
            parameters=params,
            email=email,
            caller=caller,
            result_status=result_status,
            error_message=error_message,
            duration_ms=duration_ms,
        )


__all__ = [
    "ERROR_STATUS",
    "ResponseKeys",
    "build_error_response",
    "build_success_response",
    "error_status",
    "execute_tool",
    "parse_params",
]
