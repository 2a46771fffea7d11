"""Starlette application factory for the REST surface."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import BaseRoute, Mount, Route

from gmail_gateway.api import routes
from gmail_gateway.gateway import Gateway

logger = logging.getLogger(__name__)

MCP_MOUNT_PATH = "/mcp"

# Interval between sweeps of idle per-IP rate limit buckets
RATE_LIMIT_SWEEP_SECONDS = 600.0


async def _sweep_rate_limits(gateway: Gateway, interval: float) -> None:
    while True:
        stale = gateway.rate_limiter.cleanup_stale()
        if stale:
            logger.info("Cleaned up %d stale rate limiter buckets", stale)
        await asyncio.sleep(interval)


def create_app(
    gateway: Gateway,
    mcp_server: FastMCP | None = None,
    sweep_interval: float = RATE_LIMIT_SWEEP_SECONDS,
) -> Starlette:
    """Build the HTTP app.

    Args:
        gateway: Composition root, exposed to handlers as ``app.state.gateway``.
        mcp_server: When given, its SSE app is mounted at ``/mcp``.
        sweep_interval: Seconds between stale rate limit bucket sweeps while
            the app is running.

    Returns:
        The Starlette application.
    """
    route_table: list[BaseRoute] = [
        Route("/health", routes.health, methods=["GET"]),
        Route("/auth/google", routes.auth_google, methods=["GET"]),
        Route("/auth/google/callback", routes.auth_google_callback, methods=["GET"]),
        Route("/api/listEmails", routes.list_emails, methods=["GET"]),
        Route("/api/readEmail/{message_id}", routes.read_email, methods=["GET"]),
        Route("/api/sendEmail", routes.send_email, methods=["POST"]),
        Route("/api/replyEmail", routes.reply_email, methods=["POST"]),
        Route("/api/markAsRead", routes.mark_as_read, methods=["POST"]),
        Route("/api/deleteEmails", routes.delete_emails, methods=["POST"]),
        Route("/api/searchEmails", routes.search_emails, methods=["POST"]),
        Route("/api/naturalQuery", routes.natural_query, methods=["POST"]),
    ]
    if mcp_server is not None:
        route_table.append(Mount(MCP_MOUNT_PATH, app=mcp_server.sse_app(MCP_MOUNT_PATH)))

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logger.info("Gmail gateway HTTP app starting")
        sweeper = asyncio.create_task(_sweep_rate_limits(gateway, sweep_interval))
        try:
            yield
        finally:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
            await gateway.close()
        logger.info("Gmail gateway HTTP app stopped")

    app = Starlette(
        routes=route_table,
        middleware=[
            Middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
        ],
        exception_handlers={404: routes.not_found, 500: routes.server_error},
        lifespan=lifespan,
    )
    app.state.gateway = gateway
    return app


__all__ = ["MCP_MOUNT_PATH", "RATE_LIMIT_SWEEP_SECONDS", "create_app"]
