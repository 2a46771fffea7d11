"""Multi-tenant Gmail gateway.

Brokers per-user Google OAuth credentials across several OAuth clients and
exposes Gmail operations over a REST API and an MCP server.
"""

__version__ = "0.1.0"
