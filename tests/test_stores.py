"""Tests for credential store backends."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
import requests

from gmail_gateway.auth.records import UserCredentialRecord
from gmail_gateway.config import GatewaySettings
from gmail_gateway.store import (
    EncryptedCredentialStore,
    InMemoryCredentialStore,
    SQLiteCredentialStore,
    SupabaseCredentialStore,
    TokenCipher,
    create_store,
)
from gmail_gateway.utils.encryption import generate_key
from gmail_gateway.utils.errors import (
    ConfigMissingError,
    CredentialNotFoundError,
    StoreError,
)

HEX_KEY = "0f" * 32


@pytest.fixture
def record() -> UserCredentialRecord:
    return UserCredentialRecord(
        email="user@gmail.com",
        name="Test User",
        picture="https://example.com/a.png",
        access_token="ya29.access",
        refresh_token="1//refresh",
        expiry_date=1_700_000_000_000,
        token_type="Bearer",
        scope="https://www.googleapis.com/auth/gmail.readonly",
    )


class StoreContract:
    """Behaviour every backend must share."""

    @pytest.mark.asyncio
    async def test_select_missing_returns_none(self, backend) -> None:
        assert await backend.select("nobody@gmail.com") is None

    @pytest.mark.asyncio
    async def test_upsert_then_select(self, backend, record: UserCredentialRecord) -> None:
        await backend.upsert(record)
        assert await backend.select(record.email) == record

    @pytest.mark.asyncio
    async def test_upsert_overwrites_existing(
        self, backend, record: UserCredentialRecord
    ) -> None:
        await backend.upsert(record)
        await backend.upsert(record.model_copy(update={"access_token": "ya29.new"}))

        loaded = await backend.select(record.email)
        assert loaded.access_token == "ya29.new"

    @pytest.mark.asyncio
    async def test_update_touches_only_given_fields(
        self, backend, record: UserCredentialRecord
    ) -> None:
        await backend.upsert(record)
        await backend.update(record.email, {"access_token": "ya29.fresh", "expiry_date": 42})

        loaded = await backend.select(record.email)
        assert loaded.access_token == "ya29.fresh"
        assert loaded.expiry_date == 42
        assert loaded.refresh_token == record.refresh_token
        assert loaded.name == record.name

    @pytest.mark.asyncio
    async def test_update_missing_raises_not_found(self, backend) -> None:
        with pytest.raises(CredentialNotFoundError):
            await backend.update("nobody@gmail.com", {"access_token": "x"})

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_or_key_fields(
        self, backend, record: UserCredentialRecord
    ) -> None:
        await backend.upsert(record)
        with pytest.raises(StoreError):
            await backend.update(record.email, {"is_admin": True})
        with pytest.raises(StoreError):
            await backend.update(record.email, {"email": "other@gmail.com"})


class TestInMemoryStore(StoreContract):
    """Tests for InMemoryCredentialStore."""

    @pytest.fixture
    def backend(self) -> InMemoryCredentialStore:
        return InMemoryCredentialStore()

    @pytest.mark.asyncio
    async def test_concurrent_upserts_keep_one_row(
        self, backend: InMemoryCredentialStore, record: UserCredentialRecord
    ) -> None:
        await asyncio.gather(
            *(
                backend.upsert(record.model_copy(update={"access_token": f"t{i}"}))
                for i in range(10)
            )
        )
        assert len(backend) == 1


class TestSQLiteStore(StoreContract):
    """Tests for SQLiteCredentialStore."""

    @pytest.fixture
    def backend(self, tmp_path: Path) -> SQLiteCredentialStore:
        return SQLiteCredentialStore(tmp_path / "nested" / "credentials.db")

    @pytest.mark.asyncio
    async def test_persists_across_instances(
        self, tmp_path: Path, record: UserCredentialRecord
    ) -> None:
        path = tmp_path / "credentials.db"
        await SQLiteCredentialStore(path).upsert(record)

        assert await SQLiteCredentialStore(path).select(record.email) == record

    def test_rejects_invalid_table_name(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            SQLiteCredentialStore(tmp_path / "x.db", table="users; DROP TABLE x")


class TestSupabaseStore:
    """Tests for SupabaseCredentialStore against a mocked requests session."""

    @pytest.fixture
    def session(self) -> MagicMock:
        session = MagicMock(spec=requests.Session)
        session.headers = {}
        return session

    @pytest.fixture
    def backend(self, session: MagicMock) -> SupabaseCredentialStore:
        return SupabaseCredentialStore(
            "https://proj.supabase.co/", "anon-key", timeout=5.0, session=session
        )

    @staticmethod
    def _respond(session: MagicMock, rows: list[dict[str, Any]]) -> None:
        response = MagicMock()
        response.content = json.dumps(rows).encode()
        response.json.return_value = rows
        session.request.return_value = response

    def test_auth_headers_set(self, backend: SupabaseCredentialStore, session: MagicMock) -> None:
        assert session.headers["apikey"] == "anon-key"
        assert session.headers["Authorization"] == "Bearer anon-key"

    @pytest.mark.asyncio
    async def test_upsert_merges_on_email(
        self,
        backend: SupabaseCredentialStore,
        session: MagicMock,
        record: UserCredentialRecord,
    ) -> None:
        self._respond(session, [{**record.model_dump(), "id": 7, "created_at": "now"}])

        stored = await backend.upsert(record)

        args, kwargs = session.request.call_args
        assert args == ("POST", "https://proj.supabase.co/rest/v1/gmail_users")
        assert kwargs["params"] == {"on_conflict": "email"}
        assert "resolution=merge-duplicates" in kwargs["headers"]["Prefer"]
        assert kwargs["json"]["email"] == record.email
        assert kwargs["timeout"] == 5.0
        assert stored == record

    @pytest.mark.asyncio
    async def test_select_filters_by_email(
        self,
        backend: SupabaseCredentialStore,
        session: MagicMock,
        record: UserCredentialRecord,
    ) -> None:
        self._respond(session, [record.model_dump()])

        loaded = await backend.select(record.email)

        args, kwargs = session.request.call_args
        assert args[0] == "GET"
        assert kwargs["params"]["email"] == f"eq.{record.email}"
        assert kwargs["params"]["limit"] == "1"
        assert loaded == record

    @pytest.mark.asyncio
    async def test_select_missing_returns_none(
        self, backend: SupabaseCredentialStore, session: MagicMock
    ) -> None:
        self._respond(session, [])
        assert await backend.select("nobody@gmail.com") is None

    @pytest.mark.asyncio
    async def test_update_sends_only_fields(
        self,
        backend: SupabaseCredentialStore,
        session: MagicMock,
        record: UserCredentialRecord,
    ) -> None:
        self._respond(session, [record.model_dump()])

        await backend.update(record.email, {"access_token": "ya29.fresh", "expiry_date": 1})

        args, kwargs = session.request.call_args
        assert args[0] == "PATCH"
        assert kwargs["json"] == {"access_token": "ya29.fresh", "expiry_date": 1}

    @pytest.mark.asyncio
    async def test_update_missing_row_raises_not_found(
        self, backend: SupabaseCredentialStore, session: MagicMock
    ) -> None:
        self._respond(session, [])
        with pytest.raises(CredentialNotFoundError):
            await backend.update("nobody@gmail.com", {"access_token": "x"})

    @pytest.mark.asyncio
    async def test_request_failure_raises_store_error(
        self, backend: SupabaseCredentialStore, session: MagicMock
    ) -> None:
        session.request.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(StoreError) as exc_info:
            await backend.select("user@gmail.com")
        assert isinstance(exc_info.value.__cause__, requests.ConnectionError)

    @pytest.mark.asyncio
    async def test_close_closes_session(
        self, backend: SupabaseCredentialStore, session: MagicMock
    ) -> None:
        await backend.close()
        session.close.assert_called_once()


class TestEncryptedStore:
    """Tests for EncryptedCredentialStore."""

    @pytest.fixture
    def inner(self) -> InMemoryCredentialStore:
        return InMemoryCredentialStore()

    @pytest.fixture
    def backend(self, inner: InMemoryCredentialStore) -> EncryptedCredentialStore:
        return EncryptedCredentialStore(inner, TokenCipher(generate_key()))

    @pytest.mark.asyncio
    async def test_backend_never_sees_plaintext_tokens(
        self,
        backend: EncryptedCredentialStore,
        inner: InMemoryCredentialStore,
        record: UserCredentialRecord,
    ) -> None:
        await backend.upsert(record)

        raw = await inner.select(record.email)
        assert raw.access_token.startswith("v1:")
        assert raw.refresh_token.startswith("v1:")
        assert raw.email == record.email
        assert raw.name == record.name

    @pytest.mark.asyncio
    async def test_reads_return_plaintext(
        self, backend: EncryptedCredentialStore, record: UserCredentialRecord
    ) -> None:
        stored = await backend.upsert(record)
        assert stored == record
        assert await backend.select(record.email) == record

    @pytest.mark.asyncio
    async def test_update_seals_access_token(
        self,
        backend: EncryptedCredentialStore,
        inner: InMemoryCredentialStore,
        record: UserCredentialRecord,
    ) -> None:
        await backend.upsert(record)
        await backend.update(record.email, {"access_token": "ya29.fresh", "expiry_date": 5})

        raw = await inner.select(record.email)
        assert raw.access_token.startswith("v1:")
        assert raw.expiry_date == 5
        assert (await backend.select(record.email)).access_token == "ya29.fresh"

    @pytest.mark.asyncio
    async def test_legacy_plaintext_rows_read_as_is(
        self,
        backend: EncryptedCredentialStore,
        inner: InMemoryCredentialStore,
        record: UserCredentialRecord,
    ) -> None:
        await inner.upsert(record)
        assert await backend.select(record.email) == record

    @pytest.mark.asyncio
    async def test_missing_refresh_token_stays_none(
        self,
        backend: EncryptedCredentialStore,
        inner: InMemoryCredentialStore,
        record: UserCredentialRecord,
    ) -> None:
        await backend.upsert(record.model_copy(update={"refresh_token": None}))
        assert (await inner.select(record.email)).refresh_token is None


class TestCreateStore:
    """Tests for create_store."""

    def _settings(self, settings: GatewaySettings, **changes: Any) -> GatewaySettings:
        return settings.model_copy(update=changes)

    def test_memory_backend(self, settings: GatewaySettings) -> None:
        store = create_store(self._settings(settings, store_backend="memory"))
        assert isinstance(store, InMemoryCredentialStore)

    def test_sqlite_backend(self, settings: GatewaySettings, tmp_path: Path) -> None:
        store = create_store(
            self._settings(settings, store_backend="sqlite", sqlite_path=str(tmp_path / "c.db"))
        )
        assert isinstance(store, SQLiteCredentialStore)

    def test_supabase_backend(self, settings: GatewaySettings) -> None:
        store = create_store(
            self._settings(
                settings,
                store_backend="supabase",
                supabase_url="https://proj.supabase.co",
                supabase_key="anon-key",
            )
        )
        assert isinstance(store, SupabaseCredentialStore)

    def test_supabase_without_url_raises(self, settings: GatewaySettings) -> None:
        with pytest.raises(ConfigMissingError):
            create_store(self._settings(settings, store_backend="supabase"))

    def test_sqlite_without_path_raises(self, settings: GatewaySettings) -> None:
        with pytest.raises(ConfigMissingError):
            create_store(self._settings(settings, store_backend="sqlite"))

    def test_unknown_backend_raises(self, settings: GatewaySettings) -> None:
        with pytest.raises(ConfigMissingError):
            create_store(self._settings(settings, store_backend="redis"))

    def test_encryption_key_wraps_backend(self, settings: GatewaySettings) -> None:
        store = create_store(
            self._settings(settings, store_backend="memory", token_encryption_key=HEX_KEY)
        )
        assert isinstance(store, EncryptedCredentialStore)
        assert isinstance(store.inner, InMemoryCredentialStore)
