"""REST surface for the Gmail gateway."""

from gmail_gateway.api.app import MCP_MOUNT_PATH, create_app

__all__ = ["MCP_MOUNT_PATH", "create_app"]
