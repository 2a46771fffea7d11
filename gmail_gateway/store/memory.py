"""In-memory credential store for tests and local development."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from gmail_gateway.auth.records import UserCredentialRecord
from gmail_gateway.store.base import CredentialStore, check_fields
from gmail_gateway.utils.errors import CredentialNotFoundError

logger = logging.getLogger(__name__)


class InMemoryCredentialStore(CredentialStore):
    """Dict-backed store. Single process only; contents are lost on exit."""

    def __init__(self) -> None:
        self._rows: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def upsert(self, record: UserCredentialRecord) -> UserCredentialRecord:
        async with self._lock:
            self._rows[record.email] = record.model_dump()
        logger.debug("Upserted credential record for %s", record.email)
        return record.model_copy()

    async def select(self, email: str) -> UserCredentialRecord | None:
        async with self._lock:
            row = self._rows.get(email)
        return UserCredentialRecord(**row) if row is not None else None

    async def update(self, email: str, fields: dict[str, Any]) -> None:
        check_fields(fields)
        async with self._lock:
            row = self._rows.get(email)
            if row is None:
                raise CredentialNotFoundError(
                    f"No credential record for {email}", details={"email": email}
                )
            row.update(fields)
        logger.debug("Updated %s for %s", ", ".join(sorted(fields)), email)

    def __len__(self) -> int:
        return len(self._rows)


__all__ = ["InMemoryCredentialStore"]
