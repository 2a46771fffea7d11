"""Google OAuth 2.0 provider calls.

Thin blocking wrappers around google-auth-oauthlib (authorization-code
exchange), google-auth (refresh) and the People API (identity). The token
manager runs these in worker threads under a timeout; keeping them behind
one class lets tests substitute a fake provider.

Failure handling:
- ``invalid_grant`` on code exchange -> InvalidGrantError (user must
  restart the auth flow)
- any other failure -> ProviderError with the original exception chained
"""

from __future__ import annotations

import logging
from typing import Any

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build

from gmail_gateway.auth.records import Identity, TokenGrant, to_epoch_ms
from gmail_gateway.config import TenantConfig
from gmail_gateway.utils.errors import InvalidGrantError, ProviderError

logger = logging.getLogger(__name__)

# Gmail read/send/modify plus identity scopes. Google always adds "openid"
# to the granted set when userinfo scopes are requested, so it is requested
# explicitly to keep oauthlib's scope-change check quiet.
GATEWAY_SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
    "openid",
]

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


def is_invalid_grant(error: BaseException) -> bool:
    """Return True if a provider error reports an invalid/reused grant."""
    if getattr(error, "error", None) == "invalid_grant":
        return True
    return "invalid_grant" in str(error)


class GoogleOAuthProvider:
    """Performs the network side of the OAuth flows against Google."""

    def __init__(self, scopes: list[str] | None = None) -> None:
        self._scopes = scopes or GATEWAY_SCOPES

    @property
    def scopes(self) -> list[str]:
        return list(self._scopes)

    def _client_config(self, config: TenantConfig, redirect_uri: str) -> dict[str, Any]:
        # "web" client type: the callback is served by the gateway itself
        return {
            "web": {
                "client_id": config.client_id,
                "client_secret": config.client_secret,
                "auth_uri": GOOGLE_AUTH_URI,
                "token_uri": GOOGLE_TOKEN_URI,
                "redirect_uris": [redirect_uri],
            }
        }

    def exchange_code(
        self, config: TenantConfig, redirect_uri: str, code: str
    ) -> TokenGrant:
        """Exchange an authorization code for tokens.

        Raises:
            InvalidGrantError: If Google reports the code as used or expired.
            ProviderError: For any other exchange failure.
        """
        flow = Flow.from_client_config(
            self._client_config(config, redirect_uri),
            scopes=self._scopes,
            redirect_uri=redirect_uri,
        )

        try:
            flow.fetch_token(code=code)
        except Exception as e:
            if is_invalid_grant(e):
                logger.warning("Authorization code rejected: invalid_grant")
                raise InvalidGrantError(
                    "Authorization code is invalid or expired. "
                    "Please restart the authorization flow to get a new code.",
                    details={"tenant": config.name},
                ) from e
            logger.error("Failed to exchange authorization code: %s", e)
            raise ProviderError(
                f"Failed to exchange authorization code: {e}",
                details={"error_type": type(e).__name__, "tenant": config.name},
            ) from e

        credentials = flow.credentials
        raw = flow.oauth2session.token or {}
        scope = raw.get("scope")
        if isinstance(scope, list):
            scope = " ".join(scope)

        logger.info(
            "Tokens received: access_token=%s, refresh_token=%s",
            "Set" if credentials.token else "Not Set",
            "Set" if credentials.refresh_token else "Not Set",
        )
        return TokenGrant(
            access_token=credentials.token,
            refresh_token=credentials.refresh_token,
            expiry_date=to_epoch_ms(credentials.expiry) if credentials.expiry else None,
            token_type=raw.get("token_type", "Bearer"),
            scope=scope,
        )

    def refresh(self, config: TenantConfig, refresh_token: str) -> TokenGrant:
        """Mint a new access token from a stored refresh token.

        Google does not reissue the refresh token, so the returned grant
        carries the one that was passed in.

        Raises:
            ProviderError: If the refresh request fails.
        """
        credentials = Credentials(  # type: ignore[no-untyped-call]
            token=None,
            refresh_token=refresh_token,
            token_uri=GOOGLE_TOKEN_URI,
            client_id=config.client_id,
            client_secret=config.client_secret,
        )

        try:
            credentials.refresh(Request())
        except Exception as e:
            logger.error("Failed to refresh token: %s", e)
            raise ProviderError(
                f"Failed to refresh token: {e}",
                details={"error_type": type(e).__name__, "tenant": config.name},
            ) from e

        return TokenGrant(
            access_token=credentials.token,
            refresh_token=credentials.refresh_token or refresh_token,
            expiry_date=to_epoch_ms(credentials.expiry) if credentials.expiry else None,
        )

    def fetch_identity(self, access_token: str) -> Identity:
        """Look up the signed-in user's name, email and avatar.

        Raises:
            ProviderError: If the People API call fails.
        """
        credentials = Credentials(token=access_token)  # type: ignore[no-untyped-call]

        try:
            people = build("people", "v1", credentials=credentials, cache_discovery=False)
            data = (
                people.people()
                .get(resourceName="people/me", personFields="names,emailAddresses,photos")
                .execute()
            )
        except Exception as e:
            logger.error("Failed to fetch user identity: %s", e)
            raise ProviderError(
                f"Failed to fetch user identity: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        return identity_from_person(data)


def identity_from_person(data: dict[str, Any]) -> Identity:
    """Build an Identity from a People API ``people/me`` response."""

    def first(key: str, field: str) -> Any:
        items = data.get(key) or []
        return items[0].get(field) if items else None

    return Identity(
        email=first("emailAddresses", "value") or "",
        name=first("names", "displayName") or "unknown",
        picture=first("photos", "url"),
    )


__all__ = [
    "GATEWAY_SCOPES",
    "GOOGLE_AUTH_URI",
    "GOOGLE_TOKEN_URI",
    "GoogleOAuthProvider",
    "identity_from_person",
    "is_invalid_grant",
]
