"""Persisted credential record and token grant models."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field

# Fields a refresh is allowed to change
REFRESH_FIELDS = ("access_token", "expiry_date")


def to_epoch_ms(moment: datetime) -> int:
    """Convert a datetime to epoch milliseconds.

    Naive datetimes are treated as UTC, which is what google-auth produces.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return int(moment.timestamp() * 1000)


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return to_epoch_ms(datetime.now(UTC))


class UserCredentialRecord(BaseModel):
    """One row of the credential table, keyed by email.

    Created by the OAuth callback (upsert), mutated by refresh
    (``access_token`` and ``expiry_date`` only) and never deleted by the
    gateway itself.
    """

    email: str = Field(..., description="User email address (unique key)")
    name: str = Field(default="unknown", description="Display name")
    picture: str | None = Field(default=None, description="Avatar URL")
    access_token: str = Field(..., description="Current access token")
    refresh_token: str | None = Field(
        default=None,
        description="Refresh token; absent after re-auth without consent",
    )
    expiry_date: int | None = Field(
        default=None,
        description="Access token expiry, epoch milliseconds",
    )
    token_type: str | None = Field(default="Bearer", description="Token type")
    scope: str | None = Field(default=None, description="Space-separated scopes")

    def summary(self) -> dict[str, object]:
        """Public view of the record (no tokens)."""
        return {"email": self.email, "name": self.name, "picture": self.picture}


class TokenGrant(BaseModel):
    """Tokens returned by an authorization-code exchange or a refresh."""

    access_token: str
    refresh_token: str | None = None
    expiry_date: int | None = None
    token_type: str | None = "Bearer"
    scope: str | None = None


class Identity(BaseModel):
    """Profile information from the identity endpoint."""

    email: str
    name: str = "unknown"
    picture: str | None = None


__all__ = [
    "REFRESH_FIELDS",
    "UserCredentialRecord",
    "TokenGrant",
    "Identity",
    "to_epoch_ms",
    "now_ms",
]
