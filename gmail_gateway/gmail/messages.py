"""Gmail message operations.

Blocking helpers over a Gmail v1 ``Resource``. Every Google client failure
is logged and re-raised as :class:`GmailAPIError` carrying the HTTP status.
"""

from __future__ import annotations

import base64
import logging
from email.mime.text import MIMEText
from typing import Any

from googleapiclient.discovery import Resource
from googleapiclient.errors import HttpError

from gmail_gateway.utils.errors import GmailAPIError

logger = logging.getLogger(__name__)

METADATA_HEADERS = ["From", "To", "Subject", "Date"]


def _api_error(action: str, e: Exception) -> GmailAPIError:
    status = e.resp.status if isinstance(e, HttpError) else None
    return GmailAPIError(
        f"Failed to {action}: {e}",
        status_code=status,
        details={"error_type": type(e).__name__},
    )


def list_messages(
    service: Resource,
    query: str = "",
    max_results: int = 10,
    page_token: str | None = None,
    include_spam_trash: bool = False,
) -> dict[str, Any]:
    """List one page of message IDs matching a query.

    Returns:
        The raw list response: ``messages``, ``nextPageToken`` and
        ``resultSizeEstimate``.
    """
    try:
        response = (
            service.users()
            .messages()
            .list(
                userId="me",
                q=query,
                maxResults=min(max_results, 500),
                pageToken=page_token,
                includeSpamTrash=include_spam_trash,
            )
            .execute()
        )
        logger.debug("Listed %d messages", len(response.get("messages", [])))
        return response
    except Exception as e:
        logger.error("Failed to list messages: %s", e)
        raise _api_error("list messages", e) from e


def get_message(
    service: Resource,
    message_id: str,
    format: str = "full",
    metadata_headers: list[str] | None = None,
) -> dict[str, Any]:
    """Get a specific message by ID."""
    kwargs: dict[str, Any] = {"userId": "me", "id": message_id, "format": format}
    if metadata_headers:
        kwargs["metadataHeaders"] = metadata_headers

    try:
        message = service.users().messages().get(**kwargs).execute()
        logger.debug("Retrieved message %s", message_id)
        return message
    except Exception as e:
        logger.error("Failed to get message %s: %s", message_id, e)
        raise _api_error(f"get message {message_id}", e) from e


def build_raw_message(
    to: str,
    subject: str,
    body: str,
    cc: str | None = None,
    bcc: str | None = None,
    in_reply_to: str | None = None,
    references: str | None = None,
) -> str:
    """Build a base64url-encoded HTML message for the send endpoint."""
    message = MIMEText(body, "html", "utf-8")
    message["To"] = to
    if cc:
        message["Cc"] = cc
    if bcc:
        message["Bcc"] = bcc
    message["Subject"] = subject
    if in_reply_to:
        message["In-Reply-To"] = in_reply_to
        message["References"] = references or in_reply_to

    return base64.urlsafe_b64encode(message.as_bytes()).decode()


def send_message(
    service: Resource, raw: str, thread_id: str | None = None
) -> dict[str, Any]:
    """Send a pre-built raw message, optionally inside an existing thread."""
    body: dict[str, Any] = {"raw": raw}
    if thread_id:
        body["threadId"] = thread_id

    try:
        sent = service.users().messages().send(userId="me", body=body).execute()
        logger.info("Sent message %s", sent.get("id"))
        return sent
    except Exception as e:
        logger.error("Failed to send message: %s", e)
        raise _api_error("send message", e) from e


def batch_modify_messages(
    service: Resource,
    message_ids: list[str],
    add_labels: list[str] | None = None,
    remove_labels: list[str] | None = None,
) -> None:
    """Batch modify labels on multiple messages."""
    try:
        body = {
            "ids": message_ids,
            "addLabelIds": add_labels or [],
            "removeLabelIds": remove_labels or [],
        }
        service.users().messages().batchModify(userId="me", body=body).execute()
        logger.info("Batch modified %d messages", len(message_ids))
    except Exception as e:
        logger.error("Failed to batch modify messages: %s", e)
        raise _api_error("modify messages", e) from e


def trash_message(service: Resource, message_id: str) -> dict[str, Any]:
    """Move message to trash."""
    try:
        trashed = service.users().messages().trash(userId="me", id=message_id).execute()
        logger.info("Trashed message %s", message_id)
        return trashed
    except Exception as e:
        logger.error("Failed to trash message %s: %s", message_id, e)
        raise _api_error(f"trash message {message_id}", e) from e


def get_header(message: dict[str, Any], name: str) -> str:
    """Return a header value by case-insensitive name, or ``""``."""
    wanted = name.lower()
    for header in message.get("payload", {}).get("headers", []):
        if header.get("name", "").lower() == wanted:
            return header.get("value", "")
    return ""


def _safe_base64_decode(data: str) -> str:
    """Decode base64url body data, returning ``""`` if it is malformed."""
    try:
        padded = data + "=" * (-len(data) % 4)
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (ValueError, UnicodeDecodeError) as e:
        logger.warning("Failed to decode base64 body data: %s", e)
        return ""


def _find_part(payload: dict[str, Any], mime_type: str) -> str | None:
    for part in payload.get("parts", []):
        if part.get("mimeType") == mime_type and part.get("body", {}).get("data"):
            return _safe_base64_decode(part["body"]["data"])
    for part in payload.get("parts", []):
        if "parts" in part:
            found = _find_part(part, mime_type)
            if found is not None:
                return found
    return None


def extract_body(payload: dict[str, Any]) -> str:
    """Extract the message body from a payload.

    A single-part body is returned directly. For multipart messages
    ``text/plain`` is preferred over ``text/html``, searching nested parts.
    """
    if payload.get("body", {}).get("data"):
        return _safe_base64_decode(payload["body"]["data"])

    for mime_type in ("text/plain", "text/html"):
        found = _find_part(payload, mime_type)
        if found is not None:
            return found
    return ""


def parse_message(message: dict[str, Any]) -> dict[str, Any]:
    """Flatten a full-format message into the gateway's read shape."""
    return {
        "id": message.get("id"),
        "threadId": message.get("threadId"),
        "labelIds": message.get("labelIds", []),
        "snippet": message.get("snippet", ""),
        "sizeEstimate": message.get("sizeEstimate"),
        "from": get_header(message, "From"),
        "to": get_header(message, "To"),
        "subject": get_header(message, "Subject"),
        "date": get_header(message, "Date"),
        "body": extract_body(message.get("payload", {})),
    }
