"""Input validation utilities."""

from __future__ import annotations

import logging
import re
from email.utils import getaddresses

from gmail_gateway.utils.errors import ValidationError

logger = logging.getLogger(__name__)

# Regex patterns
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
MESSAGE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9]+$")

# Search operators that reach into Drive content
DANGEROUS_OPERATORS = [
    "has:drive",
    "has:document",
    "has:spreadsheet",
    "has:presentation",
]


def validate_email(email: str, field: str = "email") -> str:
    """Validate email address format.

    Args:
        email: Email address to validate.
        field: Parameter name reported on failure.

    Returns:
        Validated email address (stripped).

    Raises:
        ValidationError: If email format is invalid.
    """
    email = email.strip()
    if not email:
        raise ValidationError("Email address cannot be empty", field=field)

    if len(email) > 254:
        raise ValidationError("Email address too long (max 254 characters)", field=field)

    if not EMAIL_PATTERN.match(email):
        raise ValidationError(f"Invalid email format: {email}", field=field)

    return email


def validate_recipients(value: str, field: str = "to") -> str:
    """Validate a comma-separated recipient header value.

    Accepts bare addresses and ``Name <address>`` forms.

    Returns:
        The header value, stripped.

    Raises:
        ValidationError: If the list is empty or any address is invalid.
    """
    value = value.strip()
    addresses = [addr for _, addr in getaddresses([value]) if addr]
    if not addresses:
        raise ValidationError(f"No recipients in {field}", field=field)

    for addr in addresses:
        validate_email(addr, field=field)
    return value


def validate_message_id(message_id: str) -> str:
    """Validate Gmail message ID format.

    Raises:
        ValidationError: If message ID format is invalid.
    """
    message_id = message_id.strip()
    if not message_id:
        raise ValidationError("Message ID cannot be empty", field="messageId")

    if len(message_id) > 64:
        raise ValidationError("Message ID too long", field="messageId")

    if not MESSAGE_ID_PATTERN.match(message_id):
        raise ValidationError(f"Invalid message ID format: {message_id}", field="messageId")

    return message_id


def validate_message_ids(message_ids: list[str]) -> list[str]:
    """Validate a non-empty list of message IDs.

    Raises:
        ValidationError: If the list is empty or any message ID is invalid.
    """
    if not message_ids:
        raise ValidationError("Message ID list cannot be empty", field="messageIds")

    return [validate_message_id(mid) for mid in message_ids]


def validate_header_value(value: str, field: str) -> str:
    """Reject header values that would fold into extra header lines.

    Raises:
        ValidationError: If the value contains a CR or LF.
    """
    if "\r" in value or "\n" in value:
        raise ValidationError(
            f"{field} must not contain line breaks", field=field
        )
    return value


def sanitize_search_query(query: str) -> str:
    """Sanitize Gmail search query.

    Removes Drive-content operators and normalizes whitespace.

    Raises:
        ValidationError: If query is too long.
    """
    query = query.strip()

    if len(query) > 500:
        raise ValidationError("Search query too long (max 500 characters)", field="query")

    for op in DANGEROUS_OPERATORS:
        if op in query.lower():
            logger.warning("Removed dangerous operator from query: %s", op)
            query = re.sub(re.escape(op), "", query, flags=re.IGNORECASE)

    return " ".join(query.split())
