"""Gmail operations facade.

Every operation obtains fresh credentials for the caller's email from the
token manager, builds a Gmail resource and runs the blocking Google client
work in a worker thread. One thread handles the whole operation because a
``Resource`` is not safe to share across threads.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from googleapiclient.discovery import Resource

from gmail_gateway.auth.oauth import OAuthTokenManager
from gmail_gateway.gmail import messages as gm
from gmail_gateway.gmail.client import build_gmail_service
from gmail_gateway.gmail.query import parse_natural_language_query
from gmail_gateway.utils.errors import TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GmailService:
    """Per-user Gmail operations on top of :class:`OAuthTokenManager`.

    Example:
        >>> gmail = GmailService(token_manager)
        >>> page = await gmail.list_emails("someone@gmail.com", query="is:unread")
        >>> [m["id"] for m in page["messages"]]
    """

    def __init__(
        self,
        token_manager: OAuthTokenManager,
        timeout: float | None = None,
        service_factory: Callable[[Any], Resource] = build_gmail_service,
    ) -> None:
        self._tokens = token_manager
        self._timeout = timeout
        self._service_factory = service_factory

    async def _run(
        self, email: str, operation: str, func: Callable[..., T], *args: Any
    ) -> T:
        credentials = await self._tokens.get_valid_client(email)
        service = self._service_factory(credentials)
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, service, *args), self._timeout
            )
        except TimeoutError as e:
            logger.warning("Gmail %s timed out for %s", operation, email)
            raise TransientError(
                f"Timed out during {operation}",
                operation=operation,
                details={"timeout_seconds": self._timeout},
            ) from e

    # =========================================================================
    # Read
    # =========================================================================

    @staticmethod
    def _list_sync(
        service: Resource,
        query: str,
        max_results: int,
        page_token: str | None,
        include_spam_trash: bool,
    ) -> dict[str, Any]:
        response = gm.list_messages(
            service,
            query=query,
            max_results=max_results,
            page_token=page_token,
            include_spam_trash=include_spam_trash,
        )

        detailed: list[dict[str, Any]] = []
        for ref in response.get("messages", []):
            try:
                detailed.append(
                    gm.get_message(
                        service,
                        ref["id"],
                        format="metadata",
                        metadata_headers=gm.METADATA_HEADERS,
                    )
                )
            except Exception as e:
                logger.warning("Error fetching message %s: %s", ref["id"], e)
                detailed.append({"id": ref["id"], "error": "Failed to fetch details"})

        return {
            "messages": detailed,
            "nextPageToken": response.get("nextPageToken"),
            "resultSizeEstimate": response.get("resultSizeEstimate", 0),
        }

    async def list_emails(
        self,
        email: str,
        query: str = "",
        max_results: int = 10,
        page_token: str | None = None,
        include_spam_trash: bool = False,
    ) -> dict[str, Any]:
        """List one page of messages with From/To/Subject/Date metadata.

        A message whose details cannot be fetched is reported inline as
        ``{"id": ..., "error": ...}`` instead of failing the whole page.

        Returns:
            ``{"messages": [...], "nextPageToken": ..., "resultSizeEstimate": n}``
        """
        return await self._run(
            email,
            "list_emails",
            self._list_sync,
            query,
            max_results,
            page_token,
            include_spam_trash,
        )

    async def read_email(self, email: str, message_id: str) -> dict[str, Any]:
        """Fetch one message and return its parsed headers and body."""

        def read(service: Resource) -> dict[str, Any]:
            return gm.parse_message(gm.get_message(service, message_id, format="full"))

        return await self._run(email, "read_email", read)

    async def search_emails(
        self,
        email: str,
        query: str,
        max_results: int = 10,
        page_token: str | None = None,
    ) -> dict[str, Any]:
        """Translate a natural-language query, then list matching messages."""
        gmail_query = parse_natural_language_query(query)
        logger.debug("Translated query %r -> %r", query, gmail_query)
        return await self.list_emails(
            email, query=gmail_query, max_results=max_results, page_token=page_token
        )

    # =========================================================================
    # Write
    # =========================================================================

    async def send_email(
        self,
        email: str,
        to: str,
        subject: str,
        body: str,
        cc: str | None = None,
        bcc: str | None = None,
    ) -> dict[str, Any]:
        """Send an HTML email from the user's mailbox.

        Returns:
            The Gmail send response (``id``, ``threadId``, ``labelIds``).
        """
        raw = gm.build_raw_message(to, subject, body, cc=cc, bcc=bcc)
        return await self._run(email, "send_email", gm.send_message, raw)

    async def reply_to_email(
        self, email: str, message_id: str, subject: str, body: str
    ) -> dict[str, Any]:
        """Reply to a message inside its thread.

        The reply goes to the original sender with the original recipients on
        Cc. ``Re:`` is prefixed unless the subject already has it.
        """

        def reply(service: Resource) -> dict[str, Any]:
            original = gm.get_message(
                service,
                message_id,
                format="metadata",
                metadata_headers=["From", "To", "Message-ID", "References"],
            )
            original_msg_id = gm.get_header(original, "Message-ID")
            references = " ".join(
                r for r in (gm.get_header(original, "References"), original_msg_id) if r
            )
            raw = gm.build_raw_message(
                to=gm.get_header(original, "From"),
                cc=gm.get_header(original, "To") or None,
                subject=subject if subject.startswith("Re:") else f"Re: {subject}",
                body=body,
                in_reply_to=original_msg_id or None,
                references=references or None,
            )
            return gm.send_message(
                service, raw, thread_id=original.get("threadId") or message_id
            )

        return await self._run(email, "reply_email", reply)

    async def mark_as_read(
        self, email: str, message_ids: list[str], read: bool = True
    ) -> dict[str, Any]:
        """Mark messages read (remove ``UNREAD``) or unread (add ``UNREAD``)."""
        add, remove = ([], ["UNREAD"]) if read else (["UNREAD"], [])
        await self._run(
            email, "mark_as_read", gm.batch_modify_messages, message_ids, add, remove
        )
        return {"messageIds": message_ids, "read": read}

    async def delete_emails(self, email: str, message_ids: list[str]) -> dict[str, Any]:
        """Move messages to the trash."""

        def trash(service: Resource) -> list[str]:
            return [gm.trash_message(service, mid).get("id", mid) for mid in message_ids]

        trashed = await self._run(email, "delete_emails", trash)
        return {"trashed": trashed, "count": len(trashed)}


__all__ = ["GmailService"]
