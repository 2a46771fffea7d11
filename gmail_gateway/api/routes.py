"""REST route handlers.

Every handler returns the ``{success, data | error}`` envelope. The gateway
is read from ``request.app.state.gateway``; ``/api`` handlers delegate to
:mod:`gmail_gateway.tools.mail` with the client IP as rate-limit key.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse

from gmail_gateway.gateway import Gateway
from gmail_gateway.tools import mail
from gmail_gateway.tools.base import (
    build_error_response,
    build_success_response,
    error_status,
)
from gmail_gateway.utils.errors import (
    GatewayError,
    InvalidGrantError,
    RateLimitError,
    ValidationError,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "Gmail MCP Gateway"

Operation = Callable[..., Awaitable[dict[str, Any]]]


def _gateway(request: Request) -> Gateway:
    return request.app.state.gateway


def _client_key(request: Request) -> str:
    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"


def error_response(error: GatewayError) -> JSONResponse:
    """Render a gateway error with its mapped status."""
    status = error_status(error)
    headers: dict[str, str] = {}
    if isinstance(error, RateLimitError) and error.retry_after_seconds is not None:
        headers["Retry-After"] = str(max(1, round(error.retry_after_seconds)))
    return JSONResponse(build_error_response(error.message), status_code=status, headers=headers)


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Request body must be valid JSON") from e
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


async def _run(
    request: Request,
    operation: Operation,
    raw: dict[str, Any],
    render: Callable[[dict[str, Any]], dict[str, Any]] = build_success_response,
) -> JSONResponse:
    try:
        result = await operation(_gateway(request), raw, caller=_client_key(request))
    except GatewayError as e:
        logger.warning("%s failed: %s", operation.__name__, e)
        return error_response(e)
    except Exception:
        logger.exception("Unexpected error in %s", operation.__name__)
        return JSONResponse(build_error_response("Internal server error"), status_code=500)
    return JSONResponse(render(result))


# =============================================================================
# Service
# =============================================================================


async def health(request: Request) -> JSONResponse:
    return JSONResponse(
        {
            "status": "OK",
            "timestamp": datetime.now(UTC).isoformat(),
            "service": SERVICE_NAME,
        }
    )


# =============================================================================
# OAuth
# =============================================================================


async def auth_google(request: Request) -> JSONResponse:
    """Return the Google consent URL, optionally for a specific email."""
    gateway = _gateway(request)
    email = request.query_params.get("email") or None

    try:
        auth_url = gateway.token_manager.build_authorization_url(email)
    except GatewayError as e:
        logger.error("Auth URL generation error: %s", e)
        return error_response(e)

    gateway.audit_logger.log_auth_event("authorize", email=email)
    return JSONResponse(
        build_success_response(
            {"authUrl": auth_url},
            message="Visit this URL to authorize Gmail access",
        )
    )


async def auth_google_callback(request: Request) -> JSONResponse:
    """Complete the authorization-code flow and store the user's tokens."""
    gateway = _gateway(request)
    code = request.query_params.get("code")
    auth_error = request.query_params.get("error")
    email_hint = request.query_params.get("state") or None

    if auth_error:
        gateway.audit_logger.log_auth_event(
            "callback", email=email_hint, success=False, details={"error": auth_error}
        )
        return JSONResponse(
            build_error_response(f"OAuth error: {auth_error}"), status_code=400
        )
    if not code:
        return JSONResponse(
            build_error_response("Authorization code not provided"), status_code=400
        )

    try:
        record = await gateway.token_manager.exchange_code(code, email_hint)
    except InvalidGrantError as e:
        gateway.audit_logger.log_auth_event("callback", email=email_hint, success=False)
        return JSONResponse(
            build_error_response(e.message, details={"error": "invalid_grant"}),
            status_code=500,
        )
    except GatewayError as e:
        logger.error("OAuth callback error: %s", e)
        gateway.audit_logger.log_auth_event("callback", email=email_hint, success=False)
        return JSONResponse(
            build_error_response("OAuth callback failed", details=e.message),
            status_code=500,
        )

    gateway.audit_logger.log_auth_event("callback", email=record.email)
    return JSONResponse(
        build_success_response(record.summary(), message="OAuth authorization successful")
    )


# =============================================================================
# Gmail API
# =============================================================================


async def list_emails(request: Request) -> JSONResponse:
    return await _run(request, mail.list_emails, dict(request.query_params))


async def read_email(request: Request) -> JSONResponse:
    raw = {
        "email": request.query_params.get("email"),
        "messageId": request.path_params["message_id"],
    }
    return await _run(request, mail.read_email, raw)


def _body_route(
    operation: Operation,
    message: Callable[[dict[str, Any]], str] | None = None,
) -> Callable[[Request], Awaitable[JSONResponse]]:
    async def endpoint(request: Request) -> JSONResponse:
        try:
            raw = await _json_body(request)
        except ValidationError as e:
            return error_response(e)

        def render(result: dict[str, Any]) -> dict[str, Any]:
            return build_success_response(result, message=message(raw) if message else None)

        return await _run(request, operation, raw, render)

    endpoint.__name__ = operation.__name__
    return endpoint


send_email = _body_route(mail.send_email, lambda _: "Email sent successfully")
reply_email = _body_route(mail.reply_email, lambda _: "Reply sent successfully")
mark_as_read = _body_route(
    mail.mark_as_read,
    lambda raw: f"Emails marked as {'unread' if raw.get('read') is False else 'read'}",
)
delete_emails = _body_route(mail.delete_emails, lambda _: "Emails moved to trash")
search_emails = _body_route(mail.search_emails)


async def natural_query(request: Request) -> JSONResponse:
    try:
        raw = await _json_body(request)
    except ValidationError as e:
        return error_response(e)

    def render(result: dict[str, Any]) -> dict[str, Any]:
        return build_success_response(
            result["results"], query=result["query"], parsedQuery=result["parsedQuery"]
        )

    return await _run(request, mail.natural_query, raw, render)


# =============================================================================
# Fallbacks
# =============================================================================


async def not_found(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(build_error_response("Endpoint not found"), status_code=404)


async def server_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error: %s", exc)
    return JSONResponse(build_error_response("Internal server error"), status_code=500)
