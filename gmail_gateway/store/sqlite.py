"""SQLite-backed credential store.

One table, ``gmail_users``, keyed by email. Upserts use
``INSERT ... ON CONFLICT(email) DO UPDATE`` so concurrent callbacks for the
same user never create a duplicate row. Each operation opens its own
connection inside a worker thread so the event loop never blocks.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any

from gmail_gateway.auth.records import UserCredentialRecord
from gmail_gateway.store.base import RECORD_COLUMNS, CredentialStore, check_fields
from gmail_gateway.utils.errors import CredentialNotFoundError, StoreError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS {table} (
    email TEXT PRIMARY KEY,
    name TEXT,
    picture TEXT,
    access_token TEXT NOT NULL,
    refresh_token TEXT,
    expiry_date INTEGER,
    token_type TEXT,
    scope TEXT,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
)
"""


class SQLiteCredentialStore(CredentialStore):
    """File-based store for single-instance deployments.

    Example:
        >>> store = SQLiteCredentialStore(Path("~/.gmail-gateway/credentials.db"))
        >>> await store.upsert(record)
        >>> (await store.select(record.email)).access_token
        'ya29...'
    """

    def __init__(self, path: Path | str, table: str = "gmail_users") -> None:
        if not table.isidentifier():
            raise ValueError(f"Invalid table name: {table!r}")

        self._path = Path(path).expanduser()
        self._table = table
        self._path.parent.mkdir(parents=True, exist_ok=True)

        self._run(_SCHEMA.format(table=table), ())
        logger.info("SQLiteCredentialStore initialized at %s", self._path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, timeout=10)
        conn.row_factory = sqlite3.Row
        return conn

    def _run(
        self, sql: str, params: tuple[Any, ...] | dict[str, Any]
    ) -> tuple[list[sqlite3.Row], int]:
        """Execute one statement and commit. Returns (rows, rowcount)."""
        try:
            with closing(self._connect()) as conn, conn:
                cursor = conn.execute(sql, params)
                return cursor.fetchall(), cursor.rowcount
        except sqlite3.Error as e:
            logger.error("SQLite error: %s", e)
            raise StoreError(
                f"Credential store error: {e}",
                details={"error_type": type(e).__name__},
            ) from e

    def _upsert_sync(self, record: UserCredentialRecord) -> None:
        columns = ", ".join(RECORD_COLUMNS)
        placeholders = ", ".join(f":{c}" for c in RECORD_COLUMNS)
        assignments = ", ".join(
            f"{c} = excluded.{c}" for c in RECORD_COLUMNS if c != "email"
        )
        self._run(
            f"INSERT INTO {self._table} ({columns}) VALUES ({placeholders}) "
            f"ON CONFLICT(email) DO UPDATE SET {assignments}, "
            "updated_at = CURRENT_TIMESTAMP",
            record.model_dump(),
        )

    def _select_sync(self, email: str) -> UserCredentialRecord | None:
        rows, _ = self._run(
            f"SELECT {', '.join(RECORD_COLUMNS)} FROM {self._table} WHERE email = ?",
            (email,),
        )
        return UserCredentialRecord(**dict(rows[0])) if rows else None

    def _update_sync(self, email: str, fields: dict[str, Any]) -> None:
        assignments = ", ".join(f"{c} = :{c}" for c in fields)
        _, rowcount = self._run(
            f"UPDATE {self._table} SET {assignments}, updated_at = CURRENT_TIMESTAMP "
            "WHERE email = :key_email",
            {**fields, "key_email": email},
        )
        if rowcount == 0:
            raise CredentialNotFoundError(
                f"No credential record for {email}", details={"email": email}
            )

    async def upsert(self, record: UserCredentialRecord) -> UserCredentialRecord:
        await asyncio.to_thread(self._upsert_sync, record)
        logger.info("Stored credential record for %s", record.email)
        return record.model_copy()

    async def select(self, email: str) -> UserCredentialRecord | None:
        return await asyncio.to_thread(self._select_sync, email)

    async def update(self, email: str, fields: dict[str, Any]) -> None:
        check_fields(fields)
        await asyncio.to_thread(self._update_sync, email, fields)
        logger.debug("Updated %s for %s", ", ".join(sorted(fields)), email)


__all__ = ["SQLiteCredentialStore"]
