"""Gateway mail operations.

One coroutine per operation, shared by the REST routes and the MCP tools.
Each takes the raw request parameters (camelCase wire names), validates
them, applies the rate limit, runs the Gmail call and writes an audit
record. Results are plain JSON-ready dicts; failures propagate as
:class:`GatewayError` subclasses for the surface to render.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from gmail_gateway.gmail.query import parse_natural_language_query
from gmail_gateway.middleware.validator import sanitize_search_query
from gmail_gateway.schemas.tools import (
    DeleteEmailsParams,
    ListEmailsParams,
    MarkAsReadParams,
    NaturalQueryParams,
    ReadEmailParams,
    ReplyEmailParams,
    SearchEmailsParams,
    SendEmailParams,
)
from gmail_gateway.tools.base import execute_tool, parse_params

if TYPE_CHECKING:
    from gmail_gateway.gateway import Gateway

logger = logging.getLogger(__name__)


async def list_emails(
    gateway: Gateway, raw: dict[str, Any], caller: str | None = None
) -> dict[str, Any]:
    """List one page of emails matching a Gmail query.

    Returns:
        ``{"messages": [...], "nextPageToken": ..., "resultSizeEstimate": n}``
    """

    async def _execute() -> dict[str, Any]:
        params = parse_params(ListEmailsParams, raw)
        return await gateway.gmail.list_emails(
            params.email,
            query=sanitize_search_query(params.query),
            max_results=params.max_results,
            page_token=params.page_token,
            include_spam_trash=params.include_spam_trash,
        )

    return await execute_tool(gateway, "list_emails", raw, _execute, caller=caller)


async def read_email(
    gateway: Gateway, raw: dict[str, Any], caller: str | None = None
) -> dict[str, Any]:
    """Read one email: headers, labels, snippet and decoded body."""

    async def _execute() -> dict[str, Any]:
        params = parse_params(ReadEmailParams, raw)
        return await gateway.gmail.read_email(params.email, params.message_id)

    return await execute_tool(gateway, "read_email", raw, _execute, caller=caller)


async def send_email(
    gateway: Gateway, raw: dict[str, Any], caller: str | None = None
) -> dict[str, Any]:
    """Send an HTML email from the user's mailbox."""

    async def _execute() -> dict[str, Any]:
        params = parse_params(SendEmailParams, raw)
        return await gateway.gmail.send_email(
            params.email,
            to=params.to,
            subject=params.subject,
            body=params.body,
            cc=params.cc,
            bcc=params.bcc,
        )

    return await execute_tool(gateway, "send_email", raw, _execute, caller=caller)


async def reply_email(
    gateway: Gateway, raw: dict[str, Any], caller: str | None = None
) -> dict[str, Any]:
    """Reply to a message in its thread."""

    async def _execute() -> dict[str, Any]:
        params = parse_params(ReplyEmailParams, raw)
        return await gateway.gmail.reply_to_email(
            params.email, params.message_id, params.subject, params.body
        )

    return await execute_tool(gateway, "reply_email", raw, _execute, caller=caller)


async def mark_as_read(
    gateway: Gateway, raw: dict[str, Any], caller: str | None = None
) -> dict[str, Any]:
    """Mark emails as read, or unread when ``read`` is false."""

    async def _execute() -> dict[str, Any]:
        params = parse_params(MarkAsReadParams, raw)
        return await gateway.gmail.mark_as_read(
            params.email, params.message_ids, read=params.read
        )

    return await execute_tool(gateway, "mark_as_read", raw, _execute, caller=caller)


async def delete_emails(
    gateway: Gateway, raw: dict[str, Any], caller: str | None = None
) -> dict[str, Any]:
    """Move emails to the trash."""

    async def _execute() -> dict[str, Any]:
        params = parse_params(DeleteEmailsParams, raw)
        return await gateway.gmail.delete_emails(params.email, params.message_ids)

    return await execute_tool(gateway, "delete_emails", raw, _execute, caller=caller)


async def search_emails(
    gateway: Gateway, raw: dict[str, Any], caller: str | None = None
) -> dict[str, Any]:
    """Search with a natural-language query translated to Gmail syntax."""

    async def _execute() -> dict[str, Any]:
        params = parse_params(SearchEmailsParams, raw)
        return await gateway.gmail.search_emails(
            params.email,
            sanitize_search_query(params.query),
            max_results=params.max_results,
            page_token=params.page_token,
        )

    return await execute_tool(gateway, "search_emails", raw, _execute, caller=caller)


async def natural_query(
    gateway: Gateway, raw: dict[str, Any], caller: str | None = None
) -> dict[str, Any]:
    """Run a natural-language query.

    Returns:
        ``{"query": ..., "parsedQuery": ..., "results": {...}}`` where
        ``results`` is the list page.
    """

    async def _execute() -> dict[str, Any]:
        params = parse_params(NaturalQueryParams, raw)
        query = sanitize_search_query(params.query)
        results = await gateway.gmail.search_emails(
            params.email, query, max_results=params.max_results
        )
        return {
            "query": params.query,
            "parsedQuery": parse_natural_language_query(query),
            "results": results,
        }

    return await execute_tool(gateway, "natural_query", raw, _execute, caller=caller)


__all__ = [
    "delete_emails",
    "list_emails",
    "mark_as_read",
    "natural_query",
    "read_email",
    "reply_email",
    "search_emails",
    "send_email",
]
