"""Gmail API operations module."""

from gmail_gateway.gmail.client import build_gmail_service
from gmail_gateway.gmail.messages import (
    batch_modify_messages,
    build_raw_message,
    extract_body,
    get_header,
    get_message,
    list_messages,
    parse_message,
    send_message,
    trash_message,
)
from gmail_gateway.gmail.query import QUERY_RULES, QueryRule, parse_natural_language_query
from gmail_gateway.gmail.service import GmailService

__all__ = [
    "GmailService",
    "build_gmail_service",
    "list_messages",
    "get_message",
    "build_raw_message",
    "send_message",
    "batch_modify_messages",
    "trash_message",
    "get_header",
    "extract_body",
    "parse_message",
    "QUERY_RULES",
    "QueryRule",
    "parse_natural_language_query",
]
