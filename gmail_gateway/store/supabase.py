"""Supabase credential store.

Talks to the project's PostgREST endpoint directly over ``requests``.
Upserts are a single ``POST`` with ``Prefer: resolution=merge-duplicates``
and ``on_conflict=email``, so the database enforces one row per user.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import requests

from gmail_gateway.auth.records import UserCredentialRecord
from gmail_gateway.store.base import RECORD_COLUMNS, CredentialStore, check_fields
from gmail_gateway.utils.errors import CredentialNotFoundError, StoreError

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"


class SupabaseCredentialStore(CredentialStore):
    """Store backed by a Supabase table (default ``gmail_users``).

    Args:
        url: Supabase project URL (``https://<ref>.supabase.co``).
        key: Anon or service-role API key.
        table: Table name.
        timeout: Per-request timeout in seconds.
        session: Optional preconfigured requests session.
    """

    def __init__(
        self,
        url: str,
        key: str,
        table: str = "gmail_users",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self._endpoint = f"{url.rstrip('/')}{REST_PATH}/{table}"
        self._table = table
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "apikey": key,
                "Authorization": f"Bearer {key}",
                "Content-Type": "application/json",
            }
        )
        logger.info("SupabaseCredentialStore initialized for table %s", table)

    def _request(
        self,
        method: str,
        params: dict[str, str],
        payload: dict[str, Any] | None = None,
        prefer: str | None = None,
    ) -> list[dict[str, Any]]:
        headers = {"Prefer": prefer} if prefer else {}
        try:
            response = self._session.request(
                method,
                self._endpoint,
                params=params,
                json=payload,
                headers=headers,
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            status = getattr(e.response, "status_code", None)
            logger.error("Supabase %s %s failed: %s", method, self._table, e)
            raise StoreError(
                f"Credential store request failed: {e}",
                details={"method": method, "status_code": status},
            ) from e

        if not response.content:
            return []
        data = response.json()
        return data if isinstance(data, list) else [data]

    def _upsert_sync(self, record: UserCredentialRecord) -> UserCredentialRecord:
        rows = self._request(
            "POST",
            {"on_conflict": "email"},
            payload=record.model_dump(),
            prefer="resolution=merge-duplicates,return=representation",
        )
        return _to_record(rows[0]) if rows else record.model_copy()

    def _select_sync(self, email: str) -> UserCredentialRecord | None:
        rows = self._request(
            "GET",
            {"email": f"eq.{email}", "select": ",".join(RECORD_COLUMNS), "limit": "1"},
        )
        return _to_record(rows[0]) if rows else None

    def _update_sync(self, email: str, fields: dict[str, Any]) -> None:
        rows = self._request(
            "PATCH",
            {"email": f"eq.{email}"},
            payload=fields,
            prefer="return=representation",
        )
        if not rows:
            raise CredentialNotFoundError(
                f"No credential record for {email}", details={"email": email}
            )

    async def upsert(self, record: UserCredentialRecord) -> UserCredentialRecord:
        stored = await asyncio.to_thread(self._upsert_sync, record)
        logger.info("Stored credential record for %s", record.email)
        return stored

    async def select(self, email: str) -> UserCredentialRecord | None:
        return await asyncio.to_thread(self._select_sync, email)

    async def update(self, email: str, fields: dict[str, Any]) -> None:
        check_fields(fields)
        await asyncio.to_thread(self._update_sync, email, fields)
        logger.debug("Updated %s for %s", ", ".join(sorted(fields)), email)

    async def close(self) -> None:
        self._session.close()


def _to_record(row: dict[str, Any]) -> UserCredentialRecord:
    # The table may carry extra columns (id, created_at, ...)
    return UserCredentialRecord(**{k: v for k, v in row.items() if k in RECORD_COLUMNS})


__all__ = ["SupabaseCredentialStore"]
