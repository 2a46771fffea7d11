"""Encryption-at-rest wrapper for credential stores.

Seals ``access_token`` and ``refresh_token`` with AES-256-GCM before they
reach the backend and unseals them on the way out. Other columns stay in
clear so the table remains queryable by email.

Rows written before encryption was enabled are read as-is: a value without
the sealed prefix is returned unchanged.
"""

from __future__ import annotations

import logging
from typing import Any

from gmail_gateway.auth.records import UserCredentialRecord
from gmail_gateway.store.base import CredentialStore, check_fields
from gmail_gateway.utils.encryption import is_sealed, key_from_hex, seal, unseal

logger = logging.getLogger(__name__)

SECRET_FIELDS = ("access_token", "refresh_token")


class TokenCipher:
    """Seals and unseals individual token strings with one key."""

    def __init__(self, key: bytes) -> None:
        self._key = key

    @classmethod
    def from_hex(cls, hex_key: str) -> TokenCipher:
        """Build a cipher from a 64-character hex key.

        Raises:
            ValidationError: If the key is malformed.
        """
        return cls(key_from_hex(hex_key))

    def seal(self, value: str | None) -> str | None:
        if value is None or is_sealed(value):
            return value
        return seal(value, self._key)

    def unseal(self, value: str | None) -> str | None:
        if value is None or not is_sealed(value):
            return value
        return unseal(value, self._key)


class EncryptedCredentialStore(CredentialStore):
    """Wraps another store, encrypting token columns.

    Example:
        >>> store = EncryptedCredentialStore(InMemoryCredentialStore(), cipher)
        >>> await store.upsert(record)  # backend sees "v1:..." tokens
    """

    def __init__(self, inner: CredentialStore, cipher: TokenCipher) -> None:
        self._inner = inner
        self._cipher = cipher

    @property
    def inner(self) -> CredentialStore:
        return self._inner

    def _seal_fields(self, fields: dict[str, Any]) -> dict[str, Any]:
        return {
            k: self._cipher.seal(v) if k in SECRET_FIELDS else v
            for k, v in fields.items()
        }

    def _open(self, record: UserCredentialRecord) -> UserCredentialRecord:
        return record.model_copy(
            update={
                f: self._cipher.unseal(getattr(record, f)) for f in SECRET_FIELDS
            }
        )

    async def upsert(self, record: UserCredentialRecord) -> UserCredentialRecord:
        sealed = UserCredentialRecord(**self._seal_fields(record.model_dump()))
        stored = await self._inner.upsert(sealed)
        return self._open(stored)

    async def select(self, email: str) -> UserCredentialRecord | None:
        record = await self._inner.select(email)
        return self._open(record) if record is not None else None

    async def update(self, email: str, fields: dict[str, Any]) -> None:
        check_fields(fields)
        await self._inner.update(email, self._seal_fields(fields))

    async def close(self) -> None:
        await self._inner.close()


__all__ = ["EncryptedCredentialStore", "SECRET_FIELDS", "TokenCipher"]
