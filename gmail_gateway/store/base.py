"""Credential store contract.

The store exclusively owns persistence of :class:`UserCredentialRecord`
rows. It is the single source of truth across concurrent requests: the
token manager keeps no credential state of its own and re-reads through
the store on every operation.

Backends must provide:
- atomic upsert keyed by email (never a duplicate row)
- partial-field update (a refresh touches two columns, not the whole row)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from gmail_gateway.auth.records import UserCredentialRecord
from gmail_gateway.utils.errors import StoreError

# Columns of the persisted table, in record order
RECORD_COLUMNS = tuple(UserCredentialRecord.model_fields)


class CredentialStore(ABC):
    """Async persistence contract for credential records."""

    @abstractmethod
    async def upsert(self, record: UserCredentialRecord) -> UserCredentialRecord:
        """Insert or overwrite the record for ``record.email``.

        Returns:
            The record as stored.

        Raises:
            StoreError: If the backend rejects the write.
        """

    @abstractmethod
    async def select(self, email: str) -> UserCredentialRecord | None:
        """Return the record for an email, or None if absent.

        Raises:
            StoreError: If the backend read fails.
        """

    @abstractmethod
    async def update(self, email: str, fields: dict[str, Any]) -> None:
        """Update only the given columns of an existing record.

        Raises:
            CredentialNotFoundError: If no record exists for the email.
            StoreError: If the backend write fails, or a field is unknown.
        """

    async def close(self) -> None:  # noqa: B027
        """Release backend resources. Default is a no-op."""


def check_fields(fields: dict[str, Any]) -> None:
    """Reject updates to unknown columns or to the key column."""
    unknown = [f for f in fields if f not in RECORD_COLUMNS]
    if unknown or "email" in fields:
        raise StoreError(
            "Invalid update fields",
            details={"fields": sorted(fields), "unknown": unknown},
        )


__all__ = ["CredentialStore", "RECORD_COLUMNS", "check_fields"]
