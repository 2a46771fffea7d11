"""FastMCP server for the Gmail gateway.

This module builds the FastMCP server exposing four tools over the shared
gateway operations:

- list_emails: list one page of messages
- natural_query: search with a natural-language query
- read_email: read one message
- send_email: send an HTML email

Tool parameters use the same camelCase names as the REST bodies
(``maxResults``, ``messageId``). Results are returned as pretty-printed JSON
text; failures are returned as ``"Error: <message>"`` text rather than
protocol errors.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from gmail_gateway.gateway import Gateway
from gmail_gateway.tools import mail

logger = logging.getLogger(__name__)

SERVER_NAME = "gmail-mcp-gateway"
MCP_CALLER = "mcp"


# =============================================================================
# Result Rendering
# =============================================================================


def render_result(result: Any) -> str:
    """Serialize a tool result as indented JSON text."""
    return json.dumps(result, indent=2, ensure_ascii=False, default=str)


async def run_tool(
    name: str,
    operation: Callable[..., Awaitable[dict[str, Any]]],
    gateway: Gateway,
    params: dict[str, Any],
) -> str:
    """Run a gateway operation and render its result or error as text."""
    try:
        result = await operation(gateway, params, caller=f"{MCP_CALLER}:{params.get('email')}")
        return render_result(result)
    except Exception as e:
        message = getattr(e, "message", None) or str(e)
        logger.error("Tool %s failed: %s", name, message)
        return f"Error: {message}"


# =============================================================================
# Lifespan Context Manager
# =============================================================================


def _make_lifespan(
    gateway: Gateway,
) -> Callable[[FastMCP], Any]:
    @asynccontextmanager
    async def server_lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
        logger.info("Gmail MCP gateway session starting")
        stale = gateway.rate_limiter.cleanup_stale()
        if stale:
            logger.info("Cleaned up %d stale rate limiter buckets", stale)
        yield {}
        logger.info("Gmail MCP gateway session closed")

    return server_lifespan


# =============================================================================
# Tool Registration
# =============================================================================


def _register_tools(mcp: FastMCP, gateway: Gateway) -> None:
    """Register the gateway tools with the FastMCP server."""

    @mcp.tool(
        name="list_emails",
        annotations=ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
        ),
    )
    async def list_emails_tool(email: str, maxResults: int = 10, query: str = "") -> str:  # noqa: N803
        """List Gmail messages.

        Args:
            email: Mailbox owner's email address.
            maxResults: Maximum results to return (default 10).
            query: Gmail search query, e.g. "is:unread from:alice".

        Returns:
            JSON with messages (From/To/Subject/Date metadata), nextPageToken
            and resultSizeEstimate.
        """
        params = {"email": email, "maxResults": maxResults, "query": query}
        return await run_tool("list_emails", mail.list_emails, gateway, params)

    @mcp.tool(
        name="natural_query",
        annotations=ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
        ),
    )
    async def natural_query_tool(email: str, query: str, maxResults: int = 10) -> str:  # noqa: N803
        """Query Gmail with natural language.

        Understands phrases like "unread", "important", "starred", "today",
        "yesterday" and "from:alice". Anything else is passed to Gmail as-is.

        Args:
            email: Mailbox owner's email address.
            query: Natural-language query.
            maxResults: Maximum results to return (default 10).

        Returns:
            JSON with the original query, the translated Gmail query and the
            matching messages.
        """
        params = {"email": email, "query": query, "maxResults": maxResults}
        return await run_tool("natural_query", mail.natural_query, gateway, params)

    @mcp.tool(
        name="read_email",
        annotations=ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
        ),
    )
    async def read_email_tool(email: str, messageId: str) -> str:  # noqa: N803
        """Read a specific email's headers and body.

        Args:
            email: Mailbox owner's email address.
            messageId: Gmail message ID.

        Returns:
            JSON with id, threadId, labelIds, snippet, from, to, subject,
            date and body.
        """
        params = {"email": email, "messageId": messageId}
        return await run_tool("read_email", mail.read_email, gateway, params)

    @mcp.tool(
        name="send_email",
        annotations=ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
            openWorldHint=True,
        ),
    )
    async def send_email_tool(email: str, to: str, subject: str, body: str) -> str:
        """Send an HTML email from the user's mailbox.

        Args:
            email: Sender's email address (must have authorized the gateway).
            to: Recipient address(es), comma-separated.
            subject: Email subject.
            body: HTML body.

        Returns:
            JSON with the sent message's id and threadId.
        """
        params = {"email": email, "to": to, "subject": subject, "body": body}
        return await run_tool("send_email", mail.send_email, gateway, params)


# =============================================================================
# Server Factory
# =============================================================================


def create_server(gateway: Gateway) -> FastMCP:
    """Create and configure the FastMCP server for a gateway.

    Args:
        gateway: Composition root shared with the REST surface.

    Returns:
        Configured FastMCP server instance.
    """
    server = FastMCP(name=SERVER_NAME, lifespan=_make_lifespan(gateway))
    _register_tools(server, gateway)
    logger.info("Gmail MCP gateway server created with 4 tools registered")
    return server


__all__ = ["MCP_CALLER", "SERVER_NAME", "create_server", "render_result", "run_tool"]
