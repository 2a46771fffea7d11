"""Gateway operations package.

Operations shared by the REST and MCP surfaces:

- Read: list_emails, read_email, search_emails, natural_query
- Write: send_email, reply_email, mark_as_read, delete_emails
"""

from gmail_gateway.tools.base import (
    build_error_response,
    build_success_response,
    error_status,
    execute_tool,
    parse_params,
)
from gmail_gateway.tools.mail import (
    delete_emails,
    list_emails,
    mark_as_read,
    natural_query,
    read_email,
    reply_email,
    search_emails,
    send_email,
)

__all__ = [
    # Base utilities
    "build_success_response",
    "build_error_response",
    "error_status",
    "execute_tool",
    "parse_params",
    # Read operations
    "list_emails",
    "read_email",
    "search_emails",
    "natural_query",
    # Write operations
    "send_email",
    "reply_email",
    "mark_as_read",
    "delete_emails",
]
