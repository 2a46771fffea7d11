"""Credential store backends and factory."""

from __future__ import annotations

import logging

from gmail_gateway.config import GatewaySettings
from gmail_gateway.store.base import RECORD_COLUMNS, CredentialStore, check_fields
from gmail_gateway.store.encrypted import EncryptedCredentialStore, TokenCipher
from gmail_gateway.store.memory import InMemoryCredentialStore
from gmail_gateway.store.sqlite import SQLiteCredentialStore
from gmail_gateway.store.supabase import SupabaseCredentialStore
from gmail_gateway.utils.errors import ConfigMissingError

logger = logging.getLogger(__name__)


def create_store(settings: GatewaySettings) -> CredentialStore:
    """Build the configured credential store.

    Wraps the backend in :class:`EncryptedCredentialStore` when
    ``token_encryption_key`` is set.

    Raises:
        ConfigMissingError: If the selected backend lacks its settings.
        ValidationError: If the encryption key is malformed.
    """
    backend = settings.store_backend
    store: CredentialStore

    if backend == "supabase":
        if not settings.supabase_url or not settings.supabase_key:
            raise ConfigMissingError(
                "Supabase store requires SUPABASE_URL and SUPABASE_ANON_KEY",
                details={"backend": backend},
            )
        store = SupabaseCredentialStore(
            settings.supabase_url,
            settings.supabase_key,
            table=settings.supabase_table,
            timeout=settings.io_timeout_seconds,
        )
    elif backend == "sqlite":
        if not settings.sqlite_path:
            raise ConfigMissingError(
                "SQLite store requires SQLITE_PATH", details={"backend": backend}
            )
        store = SQLiteCredentialStore(settings.sqlite_path, table=settings.supabase_table)
    elif backend == "memory":
        logger.warning("Using in-memory credential store; records are lost on exit")
        store = InMemoryCredentialStore()
    else:
        raise ConfigMissingError(
            f"Unknown store backend: {backend}", details={"backend": backend}
        )

    if settings.token_encryption_key:
        store = EncryptedCredentialStore(
            store, TokenCipher.from_hex(settings.token_encryption_key)
        )
        logger.info("Token encryption at rest enabled")

    return store


__all__ = [
    "CredentialStore",
    "EncryptedCredentialStore",
    "InMemoryCredentialStore",
    "RECORD_COLUMNS",
    "SQLiteCredentialStore",
    "SupabaseCredentialStore",
    "TokenCipher",
    "check_fields",
    "create_store",
]
