"""OAuth token lifecycle for gateway users.

This module owns the per-user credential state machine:

    NoRecord --exchange_code--> Valid --time passes--> Expired
    Expired --refresh--> Valid
    Expired --refresh without refresh token--> Error (NoRefreshTokenError)

The manager keeps no credential state of its own. Every operation reads
and writes through the injected :class:`CredentialStore`, so several
gateway instances can share one store.

Concurrency:
- Refreshes for the same email are serialized by a per-email
  ``asyncio.Lock``. Inside the lock the record is re-read, and the refresh
  is skipped when another request already renewed it.
- Provider calls block, so they run in a worker thread. Both provider and
  store calls are bounded by ``timeout`` seconds; a timeout surfaces as
  :class:`TransientError`.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeVar
from urllib.parse import urlencode

from google.oauth2.credentials import Credentials

from gmail_gateway.auth.provider import GOOGLE_AUTH_URI, GOOGLE_TOKEN_URI, GoogleOAuthProvider
from gmail_gateway.auth.records import REFRESH_FIELDS, UserCredentialRecord, now_ms
from gmail_gateway.auth.tenants import TenantConfigResolver
from gmail_gateway.config import TenantConfig
from gmail_gateway.utils.errors import (
    ConfigMissingError,
    CredentialNotFoundError,
    GatewayError,
    NoRefreshTokenError,
    ProviderError,
    StoreError,
    TransientError,
)

if TYPE_CHECKING:
    from gmail_gateway.store.base import CredentialStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 30.0


class OAuthTokenManager:
    """Issues, stores and refreshes OAuth credentials per user email.

    Args:
        resolver: Maps emails to tenant OAuth client configs.
        store: Credential persistence backend.
        provider: Performs the Google-side token calls.
        redirect_uri: Callback URL registered with every tenant's client.
        timeout: Bound in seconds for each provider or store call.

    Example:
        >>> manager = OAuthTokenManager(resolver, store, GoogleOAuthProvider(), uri)
        >>> url = manager.build_authorization_url("someone@gmail.com")
        >>> # ... user consents, callback receives ``code`` ...
        >>> record = await manager.exchange_code(code, "someone@gmail.com")
        >>> credentials = await manager.get_valid_client(record.email)
    """

    def __init__(
        self,
        resolver: TenantConfigResolver,
        store: CredentialStore,
        provider: GoogleOAuthProvider,
        redirect_uri: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._resolver = resolver
        self._store = store
        self._provider = provider
        self._redirect_uri = redirect_uri
        self._timeout = timeout
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @property
    def store(self) -> CredentialStore:
        return self._store

    @property
    def redirect_uri(self) -> str:
        return self._redirect_uri

    def _config_for(self, email: str | None) -> TenantConfig:
        config = self._resolver.resolve(email) if email else self._resolver.resolve_default()
        if not config.is_configured:
            raise ConfigMissingError(
                "OAuth client not configured",
                details={
                    "tenant": config.name,
                    "hint": "Set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET",
                },
            )
        return config

    # =========================================================================
    # Bounded I/O
    # =========================================================================

    async def _call_provider(
        self, operation: str, func: Callable[..., T], *args: Any
    ) -> T:
        """Run a blocking provider call in a worker thread under the timeout."""
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), self._timeout)
        except TimeoutError as e:
            logger.warning("Provider call %s timed out after %ss", operation, self._timeout)
            raise TransientError(
                f"Timed out during {operation}",
                operation=operation,
                details={"timeout_seconds": self._timeout},
            ) from e
        except GatewayError:
            raise
        except Exception as e:
            logger.error("Provider call %s failed: %s", operation, e)
            raise ProviderError(
                f"Provider call failed during {operation}: {e}",
                details={"error_type": type(e).__name__},
            ) from e

    async def _call_store(self, operation: str, call: Awaitable[T]) -> T:
        """Await a store call under the timeout."""
        try:
            return await asyncio.wait_for(call, self._timeout)
        except TimeoutError as e:
            logger.warning("Store call %s timed out after %ss", operation, self._timeout)
            raise TransientError(
                f"Timed out during {operation}",
                operation=operation,
                details={"timeout_seconds": self._timeout},
            ) from e
        except GatewayError:
            raise
        except Exception as e:
            logger.error("Store call %s failed: %s", operation, e)
            raise StoreError(
                f"Credential store failed during {operation}: {e}",
                details={"error_type": type(e).__name__},
            ) from e

    # =========================================================================
    # Authorization code flow
    # =========================================================================

    def build_authorization_url(self, email_hint: str | None = None) -> str:
        """Build the Google consent URL.

        Consent is always forced so Google reissues a refresh token even when
        the user has authorized the client before.

        Args:
            email_hint: Optional address used to pick the tenant. It is sent
                as ``login_hint`` and echoed back through ``state``.

        Returns:
            The full authorization URL.

        Raises:
            ConfigMissingError: If the resolved tenant has no client ID.
        """
        config = self._config_for(email_hint)

        params = {
            "client_id": config.client_id,
            "redirect_uri": self._redirect_uri,
            "response_type": "code",
            "scope": " ".join(self._provider.scopes),
            "access_type": "offline",
            "prompt": "consent",
        }
        if email_hint:
            params["login_hint"] = email_hint
            params["state"] = email_hint

        logger.debug("Created auth URL for tenant %s", config.name)
        return f"{GOOGLE_AUTH_URI}?{urlencode(params)}"

    async def exchange_code(
        self, code: str, email_hint: str | None = None
    ) -> UserCredentialRecord:
        """Exchange an authorization code and persist the resulting record.

        Args:
            code: Single-use code from the OAuth callback.
            email_hint: Address carried in ``state``; selects the tenant whose
                client issued the code.

        Returns:
            The stored credential record.

        Raises:
            InvalidGrantError: If Google reports the code as used or expired.
            ProviderError: If the exchange or identity lookup fails, or the
                identity has no email address.
            StoreError: If the upsert fails.
            TransientError: If any call times out.
        """
        config = self._config_for(email_hint)
        redirect_uri = self._redirect_uri

        grant = await self._call_provider(
            "exchange_code", self._provider.exchange_code, config, redirect_uri, code
        )
        identity = await self._call_provider(
            "fetch_identity", self._provider.fetch_identity, grant.access_token
        )
        if not identity.email:
            raise ProviderError(
                "Identity response did not include an email address",
                details={"tenant": config.name},
            )

        record = UserCredentialRecord(
            email=identity.email,
            name=identity.name,
            picture=identity.picture,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expiry_date=grant.expiry_date,
            token_type=grant.token_type,
            scope=grant.scope,
        )
        stored = await self._call_store("upsert", self._store.upsert(record))
        logger.info("Authorized %s (tenant %s)", stored.email, config.name)
        return stored

    # =========================================================================
    # Records and refresh
    # =========================================================================

    async def load_record(self, email: str) -> UserCredentialRecord:
        """Read the credential record for an email.

        Raises:
            CredentialNotFoundError: If the user never authorized.
        """
        record = await self._call_store("select", self._store.select(email))
        if record is None:
            raise CredentialNotFoundError(
                f"No credentials found for {email}. Please authorize first.",
                details={"email": email},
            )
        return record

    def is_expired(self, record: UserCredentialRecord, now: int | None = None) -> bool:
        """Return True if the access token is expired at ``now`` (epoch ms).

        Exact comparison with no skew margin; equal timestamps count as
        expired. A record without an expiry is treated as expired.
        """
        if record.expiry_date is None:
            return True
        current = now_ms() if now is None else now
        return current >= record.expiry_date

    def _lock_for(self, email: str) -> asyncio.Lock:
        # Entries vanish once no caller holds or awaits the lock
        lock = self._locks.get(email)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[email] = lock
        return lock

    async def _refresh_record(self, record: UserCredentialRecord) -> UserCredentialRecord:
        if not record.refresh_token:
            logger.warning("No refresh token stored for %s", record.email)
            raise NoRefreshTokenError(
                "No refresh token available. Please re-authorize with consent.",
                details={"email": record.email},
            )

        config = self._config_for(record.email)
        grant = await self._call_provider(
            "refresh", self._provider.refresh, config, record.refresh_token
        )

        fields = {name: getattr(grant, name) for name in REFRESH_FIELDS}
        await self._call_store("update", self._store.update(record.email, fields))
        logger.info("Refreshed access token for %s", record.email)
        return record.model_copy(update=fields)

    async def refresh(self, email: str) -> UserCredentialRecord:
        """Mint a new access token for an email and store it.

        Only ``access_token`` and ``expiry_date`` change; the refresh token
        and identity columns are left untouched.

        Raises:
            CredentialNotFoundError: If no record exists.
            NoRefreshTokenError: If the record has no refresh token. No
                provider call is made in this case.
            ProviderError: If Google rejects the refresh.
        """
        async with self._lock_for(email):
            record = await self.load_record(email)
            return await self._refresh_record(record)

    async def get_valid_client(self, email: str) -> Credentials:
        """Return credentials whose access token is currently valid.

        Refreshes (once, even under concurrent callers) when the stored token
        is expired, then reloads the record from the store.

        Raises:
            CredentialNotFoundError: If the user never authorized.
            NoRefreshTokenError: If the token is expired and cannot be renewed.
        """
        record = await self.load_record(email)

        if self.is_expired(record):
            async with self._lock_for(email):
                record = await self.load_record(email)
                if self.is_expired(record):
                    await self._refresh_record(record)
                    record = await self.load_record(email)
                else:
                    logger.debug("Token for %s already refreshed", email)

        return self._credentials_for(record)

    def _credentials_for(self, record: UserCredentialRecord) -> Credentials:
        config = self._resolver.resolve(record.email)
        expiry = None
        if record.expiry_date is not None:
            # google-auth compares against naive UTC datetimes
            expiry = datetime.fromtimestamp(record.expiry_date / 1000, UTC).replace(
                tzinfo=None
            )

        return Credentials(  # type: ignore[no-untyped-call]
            token=record.access_token,
            refresh_token=record.refresh_token,
            token_uri=GOOGLE_TOKEN_URI,
            client_id=config.client_id,
            client_secret=config.client_secret,
            scopes=self._provider.scopes,
            expiry=expiry,
        )


__all__ = ["DEFAULT_TIMEOUT_SECONDS", "OAuthTokenManager"]
