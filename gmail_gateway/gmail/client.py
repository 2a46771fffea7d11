"""Authenticated Gmail API client factory."""

from __future__ import annotations

import logging

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import Resource, build

logger = logging.getLogger(__name__)


def build_gmail_service(credentials: Credentials) -> Resource:
    """Build a Gmail v1 resource for one request.

    Resources are not cached: credentials come fresh from the token manager
    on every call, so a refreshed token is always picked up.
    """
    return build("gmail", "v1", credentials=credentials, cache_discovery=False)


__all__ = ["build_gmail_service"]
