"""Environment-driven configuration for the Gmail gateway.

All settings are read once at startup by :meth:`GatewaySettings.from_env`
(after ``python-dotenv`` has loaded any ``.env`` file) and then passed
explicitly to the components that need them.
"""

from __future__ import annotations

import logging
import os

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_TENANT = "personal"
PERSONAL_SUFFIX = "@gmail.com"

# Tenant name -> (env suffix, default domain substring)
TENANT_ENV: list[tuple[str, str, str]] = [
    ("company_a", "COMPANY_A", "stceciliacare.com"),
    ("company_b", "COMPANY_B", "summerhillcare.uk"),
]

STORE_BACKENDS = ("supabase", "sqlite", "memory")


class TenantConfig(BaseModel):
    """OAuth client credentials for one tenant.

    ``client_id`` and ``client_secret`` may be empty when the tenant is not
    configured; the resolver then falls back to the default tenant.
    """

    name: str = Field(..., description="Tenant name (e.g. 'personal')")
    client_id: str = Field(default="", description="Google OAuth client ID")
    client_secret: str = Field(default="", description="Google OAuth client secret")
    domain: str = Field(
        default="",
        description="Literal domain substring (or suffix for the default tenant)",
    )

    @property
    def is_configured(self) -> bool:
        """True when both client ID and secret are set."""
        return bool(self.client_id and self.client_secret)


class GatewaySettings(BaseModel):
    """Complete runtime configuration."""

    tenants: list[TenantConfig]
    redirect_uri: str

    store_backend: str = "memory"
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_table: str = "gmail_users"
    sqlite_path: str = ""
    token_encryption_key: str = ""

    io_timeout_seconds: float = 30.0
    rate_limit_max: int = 100
    rate_limit_window_seconds: int = 900

    host: str = "0.0.0.0"
    port: int = 3000
    transport: str = "http"

    @property
    def default_tenant(self) -> TenantConfig:
        """The tenant used when no other pattern matches."""
        return next(t for t in self.tenants if t.name == DEFAULT_TENANT)

    @classmethod
    def from_env(cls) -> GatewaySettings:
        """Build settings from environment variables."""
        port = int(os.getenv("PORT", "3000"))

        tenants = [
            TenantConfig(
                name=DEFAULT_TENANT,
                client_id=os.getenv("GOOGLE_CLIENT_ID_PERSONAL")
                or os.getenv("GOOGLE_CLIENT_ID", ""),
                client_secret=os.getenv("GOOGLE_CLIENT_SECRET_PERSONAL")
                or os.getenv("GOOGLE_CLIENT_SECRET", ""),
                domain=PERSONAL_SUFFIX,
            )
        ]
        for name, suffix, default_domain in TENANT_ENV:
            tenants.append(
                TenantConfig(
                    name=name,
                    client_id=os.getenv(f"GOOGLE_CLIENT_ID_{suffix}", ""),
                    client_secret=os.getenv(f"GOOGLE_CLIENT_SECRET_{suffix}", ""),
                    domain=os.getenv(f"TENANT_DOMAIN_{suffix}", default_domain),
                )
            )

        supabase_url = os.getenv("SUPABASE_URL", "")
        sqlite_path = os.getenv("SQLITE_PATH", "")
        backend = os.getenv("STORE_BACKEND", "").lower()
        if not backend:
            if supabase_url:
                backend = "supabase"
            elif sqlite_path:
                backend = "sqlite"
            else:
                backend = "memory"

        return cls(
            tenants=tenants,
            redirect_uri=os.getenv(
                "GOOGLE_REDIRECT_URI",
                f"http://localhost:{port}/auth/google/callback",
            ),
            store_backend=backend,
            supabase_url=supabase_url,
            supabase_key=os.getenv("SUPABASE_ANON_KEY")
            or os.getenv("SUPABASE_KEY", ""),
            supabase_table=os.getenv("SUPABASE_TABLE", "gmail_users"),
            sqlite_path=sqlite_path,
            token_encryption_key=os.getenv("TOKEN_ENCRYPTION_KEY", ""),
            io_timeout_seconds=float(os.getenv("IO_TIMEOUT_SECONDS", "30")),
            rate_limit_max=int(os.getenv("RATE_LIMIT_MAX", "100")),
            rate_limit_window_seconds=int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "900")),
            host=os.getenv("HOST", "0.0.0.0"),
            port=port,
            transport=os.getenv("TRANSPORT", "http").lower(),
        )

    def problems(self) -> list[str]:
        """Return a list of configuration problems that prevent startup."""
        found: list[str] = []

        if not self.default_tenant.is_configured:
            found.append(
                "Default tenant not configured: set GOOGLE_CLIENT_ID_PERSONAL "
                "and GOOGLE_CLIENT_SECRET_PERSONAL"
            )

        if self.store_backend not in STORE_BACKENDS:
            found.append(
                f"Unknown STORE_BACKEND '{self.store_backend}' "
                f"(expected one of {', '.join(STORE_BACKENDS)})"
            )
        if self.store_backend == "supabase" and not (
            self.supabase_url and self.supabase_key
        ):
            found.append("Supabase backend requires SUPABASE_URL and SUPABASE_ANON_KEY")
        if self.store_backend == "sqlite" and not self.sqlite_path:
            found.append("SQLite backend requires SQLITE_PATH")

        # TOKEN_ENCRYPTION_KEY is optional, but must be 64 hex chars when set
        key = self.token_encryption_key
        if key:
            try:
                valid = len(key) == 64 and bool(bytes.fromhex(key))
            except ValueError:
                valid = False
            if not valid:
                found.append("TOKEN_ENCRYPTION_KEY must be 64 hex characters (256 bits)")

        return found


__all__ = [
    "DEFAULT_TENANT",
    "PERSONAL_SUFFIX",
    "TenantConfig",
    "GatewaySettings",
]
