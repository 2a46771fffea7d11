"""Middleware module for the Gmail gateway."""

from gmail_gateway.middleware.audit_logger import AuditEntry, AuditLogger
from gmail_gateway.middleware.rate_limiter import RateLimiter
from gmail_gateway.middleware.validator import (
    sanitize_search_query,
    validate_email,
    validate_header_value,
    validate_message_id,
    validate_message_ids,
    validate_recipients,
)

__all__ = [
    "RateLimiter",
    "AuditLogger",
    "AuditEntry",
    "validate_email",
    "validate_recipients",
    "validate_message_id",
    "validate_message_ids",
    "validate_header_value",
    "sanitize_search_query",
]
