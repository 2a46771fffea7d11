"""Gateway composition root.

Builds the long-lived components once from :class:`GatewaySettings` and
hands them to both surfaces. Nothing here is a module-level singleton;
tests build a :class:`Gateway` around fakes directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from gmail_gateway.auth.oauth import OAuthTokenManager
from gmail_gateway.auth.provider import GoogleOAuthProvider
from gmail_gateway.auth.tenants import TenantConfigResolver
from gmail_gateway.config import GatewaySettings
from gmail_gateway.gmail.service import GmailService
from gmail_gateway.middleware.audit_logger import AuditLogger
from gmail_gateway.middleware.rate_limiter import RateLimiter
from gmail_gateway.store import CredentialStore, create_store

logger = logging.getLogger(__name__)


@dataclass
class Gateway:
    """Everything a request handler needs."""

    token_manager: OAuthTokenManager
    gmail: GmailService
    rate_limiter: RateLimiter
    audit_logger: AuditLogger

    @classmethod
    def from_settings(
        cls,
        settings: GatewaySettings,
        store: CredentialStore | None = None,
        provider: GoogleOAuthProvider | None = None,
    ) -> Gateway:
        """Wire the gateway from settings.

        Args:
            settings: Runtime configuration.
            store: Credential store override; built from settings if omitted.
            provider: OAuth provider override; Google if omitted.
        """
        token_manager = OAuthTokenManager(
            resolver=TenantConfigResolver.from_settings(settings),
            store=store or create_store(settings),
            provider=provider or GoogleOAuthProvider(),
            redirect_uri=settings.redirect_uri,
            timeout=settings.io_timeout_seconds,
        )
        logger.info(
            "Gateway initialized (store=%s, tenants=%s)",
            settings.store_backend,
            ", ".join(t.name for t in settings.tenants if t.is_configured) or "none",
        )
        return cls(
            token_manager=token_manager,
            gmail=GmailService(token_manager, timeout=settings.io_timeout_seconds),
            rate_limiter=RateLimiter(
                settings.rate_limit_max, settings.rate_limit_window_seconds
            ),
            audit_logger=AuditLogger(),
        )

    async def close(self) -> None:
        await self.token_manager.store.close()


__all__ = ["Gateway"]
