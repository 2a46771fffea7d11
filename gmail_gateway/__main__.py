"""Entry point for the Gmail gateway."""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from gmail_gateway.config import GatewaySettings


def configure_logging() -> None:
    """Configure logging to stderr (STDIO-safe).

    Sends all logs to stderr so they don't interfere with MCP's
    STDIO transport which uses stdout for JSON-RPC messages.

    Respects LOG_LEVEL env var (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = logging.getLevelNamesMapping().get(log_level_str, logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    # Reduce noise from Google libraries
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)
    logging.getLogger("google.auth").setLevel(logging.WARNING)


def validate_environment(settings: GatewaySettings) -> bool:
    """Log every configuration problem.

    Returns:
        True if the settings are usable, False otherwise.
    """
    logger = logging.getLogger(__name__)

    problems = settings.problems()
    for problem in problems:
        logger.error("Configuration error: %s", problem)

    for tenant in settings.tenants:
        logger.info(
            "Tenant %s: client_id=%s, client_secret=%s",
            tenant.name,
            "Set" if tenant.client_id else "Not Set",
            "Set" if tenant.client_secret else "Not Set",
        )

    return not problems


def main() -> None:
    """Main entry point.

    Loads environment, validates configuration, and starts the gateway
    with the selected transport (http or stdio).
    """
    # Load .env file if present
    load_dotenv()

    # Configure logging first
    configure_logging()
    logger = logging.getLogger(__name__)

    settings = GatewaySettings.from_env()
    if not validate_environment(settings):
        logger.error("Environment validation failed. Exiting.")
        sys.exit(1)

    # Import after environment is validated
    from gmail_gateway.api import create_app
    from gmail_gateway.gateway import Gateway
    from gmail_gateway.server import create_server

    gateway = Gateway.from_settings(settings)
    mcp = create_server(gateway)

    match settings.transport:
        case "http" | "sse":
            import uvicorn

            logger.info(
                "Starting Gmail gateway on %s:%d (REST + MCP over SSE at /mcp)",
                settings.host,
                settings.port,
            )
            uvicorn.run(
                create_app(gateway, mcp),
                host=settings.host,
                port=settings.port,
                log_level="info",
            )
        case "stdio":
            logger.info("Starting Gmail gateway MCP server with STDIO transport")
            mcp.run(transport="stdio")
        case _:
            logger.error("Unknown TRANSPORT '%s' (expected http or stdio)", settings.transport)
            sys.exit(1)


if __name__ == "__main__":
    main()
