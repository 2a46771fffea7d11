"""Tenant configuration resolution.

Maps a user's email address to the OAuth client credentials of the tenant
that owns it. Matching is literal and case-sensitive:

1. ``@gmail.com`` suffix -> personal (default) tenant
2. tenant domain substrings, in configuration order
3. anything else -> default tenant

A matched tenant whose client ID is unset is never returned. The resolver
logs a warning naming the tenant and hands back the default config instead.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from gmail_gateway.config import DEFAULT_TENANT, GatewaySettings, TenantConfig

logger = logging.getLogger(__name__)


class TenantConfigResolver:
    """Resolves the OAuth client configuration for an email address.

    Attributes:
        tenants: Ordered tenant configs; the default tenant is matched by
            suffix, the others by substring.

    Example:
        >>> resolver = TenantConfigResolver.from_settings(settings)
        >>> resolver.resolve("someone@gmail.com").name
        'personal'
    """

    def __init__(
        self,
        tenants: Sequence[TenantConfig],
        default_name: str = DEFAULT_TENANT,
    ) -> None:
        by_name = {t.name: t for t in tenants}
        if default_name not in by_name:
            raise ValueError(f"Default tenant '{default_name}' is not configured")

        self._tenants = list(tenants)
        self._default = by_name[default_name]

    @classmethod
    def from_settings(cls, settings: GatewaySettings) -> TenantConfigResolver:
        return cls(settings.tenants)

    @property
    def tenants(self) -> list[TenantConfig]:
        return list(self._tenants)

    def resolve_default(self) -> TenantConfig:
        """Return the default tenant config (used before the email is known)."""
        logger.debug(
            "Using default config: client_id=%s, client_secret=%s",
            "Set" if self._default.client_id else "Not Set",
            "Set" if self._default.client_secret else "Not Set",
        )
        return self._default

    def resolve(self, email: str) -> TenantConfig:
        """Return the tenant config for an email address.

        Args:
            email: User email address. Compared as-is, without case folding.

        Returns:
            The matching tenant's config, or the default config when no
            tenant matches or the matched tenant has no client ID.
        """
        tenant = self._match(email)

        if tenant is self._default:
            return self._default

        if not tenant.client_id:
            logger.warning(
                "Tenant '%s' config not set for %s, using default config",
                tenant.name,
                email,
            )
            return self._default

        return tenant

    def _match(self, email: str) -> TenantConfig:
        if self._default.domain and email.endswith(self._default.domain):
            return self._default

        for tenant in self._tenants:
            if tenant is self._default or not tenant.domain:
                continue
            if tenant.domain in email:
                return tenant

        return self._default


__all__ = ["TenantConfigResolver"]
