"""Pydantic parameter models for gateway operations.

Field names are snake_case in Python and camelCase on the wire
(``maxResults``, ``messageIds``). Both spellings are accepted on input.

``REQUIRED`` lists the wire names that must be present and non-empty; they
are checked before model validation so a request missing several fields
gets one ``Missing required fields: ...`` error naming all of them.
"""

from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gmail_gateway.middleware.validator import (
    validate_email,
    validate_header_value,
    validate_message_id,
    validate_message_ids,
    validate_recipients,
)


class GatewayParams(BaseModel):
    """Base for all operation parameter models."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    REQUIRED: ClassVar[tuple[str, ...]] = ("email",)

    email: str = Field(..., description="Mailbox owner's email address")

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        return validate_email(value)


class ListEmailsParams(GatewayParams):
    """Parameters for listing emails."""

    query: str = Field(default="", description="Gmail search query")
    max_results: int = Field(
        default=10,
        ge=1,
        le=500,
        alias="maxResults",
        description="Maximum results to return",
    )
    page_token: str | None = Field(
        default=None,
        alias="pageToken",
        description="Token of the page to fetch",
    )
    include_spam_trash: bool = Field(
        default=False,
        alias="includeSpamTrash",
        description="Include Spam and Trash",
    )


class ReadEmailParams(GatewayParams):
    """Parameters for reading one email."""

    REQUIRED: ClassVar[tuple[str, ...]] = ("email", "messageId")

    message_id: str = Field(..., alias="messageId", description="Gmail message ID")

    @field_validator("message_id")
    @classmethod
    def _check_message_id(cls, value: str) -> str:
        return validate_message_id(value)


class SendEmailParams(GatewayParams):
    """Parameters for sending an HTML email."""

    REQUIRED: ClassVar[tuple[str, ...]] = ("email", "to", "subject", "body")

    to: str = Field(..., description="Recipient(s), comma-separated")
    subject: str = Field(..., description="Email subject")
    body: str = Field(..., description="HTML email body")
    cc: str | None = Field(default=None, description="CC recipient(s)")
    bcc: str | None = Field(default=None, description="BCC recipient(s)")

    @field_validator("to")
    @classmethod
    def _check_to(cls, value: str) -> str:
        return validate_recipients(value, field="to")

    @field_validator("cc", "bcc")
    @classmethod
    def _check_copies(cls, value: str | None) -> str | None:
        return validate_recipients(value, field="cc/bcc") if value else None

    @field_validator("subject")
    @classmethod
    def _check_subject(cls, value: str) -> str:
        return validate_header_value(value, field="subject")


class ReplyEmailParams(GatewayParams):
    """Parameters for replying to an email.

    ``threadId`` carries the ID of the message being replied to.
    """

    REQUIRED: ClassVar[tuple[str, ...]] = ("email", "threadId", "subject", "body")

    message_id: str = Field(
        ..., alias="threadId", description="ID of the message to reply to"
    )
    subject: str = Field(..., description="Reply subject")
    body: str = Field(..., description="HTML reply body")

    @field_validator("message_id")
    @classmethod
    def _check_message_id(cls, value: str) -> str:
        return validate_message_id(value)

    @field_validator("subject")
    @classmethod
    def _check_subject(cls, value: str) -> str:
        return validate_header_value(value, field="subject")


class MarkAsReadParams(GatewayParams):
    """Parameters for marking emails read or unread."""

    REQUIRED: ClassVar[tuple[str, ...]] = ("email", "messageIds")

    message_ids: list[str] = Field(
        ..., alias="messageIds", description="Message IDs to modify"
    )
    read: bool = Field(default=True, description="True for read, False for unread")

    @field_validator("message_ids")
    @classmethod
    def _check_message_ids(cls, value: list[str]) -> list[str]:
        return validate_message_ids(value)


class DeleteEmailsParams(GatewayParams):
    """Parameters for moving emails to the trash."""

    REQUIRED: ClassVar[tuple[str, ...]] = ("email", "messageIds")

    message_ids: list[str] = Field(
        ..., alias="messageIds", description="Message IDs to trash"
    )

    @field_validator("message_ids")
    @classmethod
    def _check_message_ids(cls, value: list[str]) -> list[str]:
        return validate_message_ids(value)


class SearchEmailsParams(GatewayParams):
    """Parameters for a natural-language search."""

    REQUIRED: ClassVar[tuple[str, ...]] = ("email", "query")

    query: str = Field(..., description="Natural-language or Gmail query")
    max_results: int = Field(
        default=10,
        ge=1,
        le=500,
        alias="maxResults",
        description="Maximum results to return",
    )
    page_token: str | None = Field(
        default=None,
        alias="pageToken",
        description="Token of the page to fetch",
    )


class NaturalQueryParams(GatewayParams):
    """Parameters for the natural-language query operation."""

    REQUIRED: ClassVar[tuple[str, ...]] = ("email", "query")

    query: str = Field(..., description="Natural-language query")
    max_results: int = Field(
        default=10,
        ge=1,
        le=500,
        alias="maxResults",
        description="Maximum results to return",
    )
