"""Pytest configuration and fixtures for Gmail gateway tests."""

from __future__ import annotations

import threading
from typing import Any
from unittest.mock import MagicMock

import pytest

from gmail_gateway.auth.oauth import OAuthTokenManager
from gmail_gateway.auth.provider import GATEWAY_SCOPES
from gmail_gateway.auth.records import Identity, TokenGrant, UserCredentialRecord, now_ms
from gmail_gateway.auth.tenants import TenantConfigResolver
from gmail_gateway.config import GatewaySettings, TenantConfig
from gmail_gateway.gateway import Gateway
from gmail_gateway.gmail.service import GmailService
from gmail_gateway.middleware.audit_logger import AuditLogger
from gmail_gateway.middleware.rate_limiter import RateLimiter
from gmail_gateway.store.memory import InMemoryCredentialStore
from gmail_gateway.utils.errors import InvalidGrantError

REDIRECT_URI = "http://localhost:3000/auth/google/callback"
HOUR_MS = 3600 * 1000


class FakeOAuthProvider:
    """In-process stand-in for GoogleOAuthProvider that counts calls."""

    def __init__(self, identity_email: str = "user@gmail.com") -> None:
        self.identity = Identity(email=identity_email, name="Test User", picture=None)
        self.exchange_calls: list[tuple[str, str]] = []
        self.refresh_calls: list[tuple[str, str]] = []
        self.refresh_delay: threading.Event | None = None
        self._lock = threading.Lock()

    @property
    def scopes(self) -> list[str]:
        return list(GATEWAY_SCOPES)

    def exchange_code(
        self, config: TenantConfig, redirect_uri: str, code: str
    ) -> TokenGrant:
        self.exchange_calls.append((config.name, code))
        if code == "bad-code":
            raise InvalidGrantError("Authorization code is invalid or expired.")
        return TokenGrant(
            access_token=f"access-{code}",
            refresh_token=f"refresh-{code}",
            expiry_date=now_ms() + HOUR_MS,
            scope=" ".join(GATEWAY_SCOPES),
        )

    def refresh(self, config: TenantConfig, refresh_token: str) -> TokenGrant:
        with self._lock:
            self.refresh_calls.append((config.name, refresh_token))
            count = len(self.refresh_calls)
        if self.refresh_delay is not None:
            self.refresh_delay.wait(timeout=5)
        return TokenGrant(
            access_token=f"refreshed-{count}",
            refresh_token=refresh_token,
            expiry_date=now_ms() + HOUR_MS,
        )

    def fetch_identity(self, access_token: str) -> Identity:
        return self.identity


class CountingStore(InMemoryCredentialStore):
    """In-memory store that records how often ``update`` is called."""

    def __init__(self) -> None:
        super().__init__()
        self.update_calls: list[tuple[str, dict[str, Any]]] = []

    async def update(self, email: str, fields: dict[str, Any]) -> None:
        self.update_calls.append((email, dict(fields)))
        await super().update(email, fields)


@pytest.fixture
def tenants() -> list[TenantConfig]:
    """Personal and company_b configured, company_a left unset."""
    return [
        TenantConfig(
            name="personal",
            client_id="personal-id.apps.googleusercontent.com",
            client_secret="personal-secret",
            domain="@gmail.com",
        ),
        TenantConfig(name="company_a", domain="tenanta.example"),
        TenantConfig(
            name="company_b",
            client_id="company-b-id.apps.googleusercontent.com",
            client_secret="company-b-secret",
            domain="tenantb.example",
        ),
    ]


@pytest.fixture
def settings(tenants: list[TenantConfig]) -> GatewaySettings:
    return GatewaySettings(tenants=tenants, redirect_uri=REDIRECT_URI, io_timeout_seconds=2.0)


@pytest.fixture
def resolver(tenants: list[TenantConfig]) -> TenantConfigResolver:
    return TenantConfigResolver(tenants)


@pytest.fixture
def store() -> CountingStore:
    return CountingStore()


@pytest.fixture
def provider() -> FakeOAuthProvider:
    return FakeOAuthProvider()


@pytest.fixture
def token_manager(
    resolver: TenantConfigResolver, store: CountingStore, provider: FakeOAuthProvider
) -> OAuthTokenManager:
    return OAuthTokenManager(resolver, store, provider, REDIRECT_URI, timeout=2.0)  # type: ignore[arg-type]


@pytest.fixture
def make_record():
    """Factory for credential records, valid for an hour by default."""

    def _make(
        email: str = "user@gmail.com",
        expiry_date: int | None = None,
        refresh_token: str | None = "stored-refresh",
        access_token: str = "stored-access",
    ) -> UserCredentialRecord:
        return UserCredentialRecord(
            email=email,
            name="Test User",
            access_token=access_token,
            refresh_token=refresh_token,
            expiry_date=now_ms() + HOUR_MS if expiry_date is None else expiry_date,
        )

    return _make


@pytest.fixture
def mock_gmail_service() -> MagicMock:
    """Mocked Gmail v1 resource."""
    return MagicMock()


@pytest.fixture
def gateway(token_manager: OAuthTokenManager, mock_gmail_service: MagicMock) -> Gateway:
    """Gateway wired to the fake provider, in-memory store and mocked Gmail."""
    return Gateway(
        token_manager=token_manager,
        gmail=GmailService(token_manager, service_factory=lambda _: mock_gmail_service),
        rate_limiter=RateLimiter(max_requests=100, window_seconds=900),
        audit_logger=AuditLogger(enabled=False),
    )


@pytest.fixture
def sample_full_message() -> dict[str, Any]:
    """Sample full-format message response."""
    return {
        "id": "msg1",
        "threadId": "thread1",
        "labelIds": ["INBOX", "UNREAD"],
        "snippet": "Test message snippet",
        "sizeEstimate": 2048,
        "payload": {
            "mimeType": "text/plain",
            "headers": [
                {"name": "From", "value": "sender@example.com"},
                {"name": "To", "value": "user@gmail.com"},
                {"name": "Subject", "value": "Test Subject"},
                {"name": "Date", "value": "Mon, 20 Jan 2026 10:00:00 -0500"},
                {"name": "Message-ID", "value": "<orig-123@mail.example.com>"},
            ],
            "body": {"data": "VGVzdCBib2R5IGNvbnRlbnQ="},
        },
    }
