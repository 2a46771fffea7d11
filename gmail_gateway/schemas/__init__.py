"""Pydantic schemas for the Gmail gateway.

This module exports all operation parameter models.
"""

from gmail_gateway.schemas.tools import (
    DeleteEmailsParams,
    GatewayParams,
    ListEmailsParams,
    MarkAsReadParams,
    NaturalQueryParams,
    ReadEmailParams,
    ReplyEmailParams,
    SearchEmailsParams,
    SendEmailParams,
)

__all__ = [
    "GatewayParams",
    # Read operations
    "ListEmailsParams",
    "ReadEmailParams",
    "SearchEmailsParams",
    "NaturalQueryParams",
    # Write operations
    "SendEmailParams",
    "ReplyEmailParams",
    "MarkAsReadParams",
    "DeleteEmailsParams",
]
