"""Tests for the REST surface."""

from __future__ import annotations

import asyncio
import time
from typing import Any
from unittest.mock import MagicMock

import pytest
from starlette.testclient import TestClient

from gmail_gateway.api import create_app
from gmail_gateway.gateway import Gateway
from gmail_gateway.middleware.rate_limiter import RateLimiter

from .conftest import FakeOAuthProvider


@pytest.fixture
def client(gateway: Gateway) -> TestClient:
    return TestClient(create_app(gateway))


@pytest.fixture
def authorized(client: TestClient) -> str:
    """Authorize user@gmail.com through the callback."""
    response = client.get("/auth/google/callback", params={"code": "setup-code"})
    assert response.status_code == 200
    return response.json()["data"]["email"]


class TestServiceRoutes:
    """Tests for health and fallback routes."""

    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "OK"
        assert body["service"] == "Gmail MCP Gateway"
        assert "timestamp" in body

    def test_unknown_route_envelope(self, client: TestClient) -> None:
        response = client.get("/nope")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Endpoint not found"}


class TestAuthRoutes:
    """Tests for /auth/google and its callback."""

    def test_auth_url(self, client: TestClient) -> None:
        response = client.get("/auth/google")

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["data"]["authUrl"].startswith("https://accounts.google.com/")
        assert "message" in body

    def test_auth_url_with_email_selects_tenant(self, client: TestClient) -> None:
        response = client.get("/auth/google", params={"email": "staff@tenantb.example"})
        assert "company-b-id" in response.json()["data"]["authUrl"]

    def test_callback_provider_error(self, client: TestClient) -> None:
        response = client.get("/auth/google/callback", params={"error": "access_denied"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "OAuth error: access_denied"}

    def test_callback_without_code(self, client: TestClient) -> None:
        response = client.get("/auth/google/callback")

        assert response.status_code == 400
        assert response.json()["error"] == "Authorization code not provided"

    def test_callback_invalid_grant(self, client: TestClient) -> None:
        response = client.get("/auth/google/callback", params={"code": "bad-code"})

        body = response.json()
        assert response.status_code == 500
        assert "invalid or expired" in body["error"]
        assert body["details"] == {"error": "invalid_grant"}

    def test_callback_success(self, client: TestClient, provider: FakeOAuthProvider) -> None:
        response = client.get(
            "/auth/google/callback", params={"code": "abc", "state": "staff@tenantb.example"}
        )

        body = response.json()
        assert response.status_code == 200
        assert body["data"] == {"email": "user@gmail.com", "name": "Test User", "picture": None}
        assert "access_token" not in str(body)
        assert provider.exchange_calls == [("company_b", "abc")]

    def test_callback_upstream_failure(
        self, client: TestClient, provider: FakeOAuthProvider, mocker
    ) -> None:
        mocker.patch.object(provider, "fetch_identity", side_effect=RuntimeError("boom"))

        response = client.get("/auth/google/callback", params={"code": "abc"})

        body = response.json()
        assert response.status_code == 500
        assert body["error"] == "OAuth callback failed"
        assert "boom" in body["details"]


class TestGmailRoutes:
    """Tests for the /api routes."""

    def test_list_requires_email(self, client: TestClient) -> None:
        response = client.get("/api/listEmails")

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Missing required fields: email",
        }

    def test_list_unauthorized_user(self, client: TestClient) -> None:
        response = client.get("/api/listEmails", params={"email": "nobody@gmail.com"})
        assert response.status_code == 404

    def test_list_emails(
        self, client: TestClient, authorized: str, mock_gmail_service: MagicMock
    ) -> None:
        mock_gmail_service.users().messages().list.return_value.execute.return_value = {
            "messages": [{"id": "m1"}]
        }
        mock_gmail_service.users().messages().get.return_value.execute.return_value = {
            "id": "m1"
        }

        response = client.get(
            "/api/listEmails", params={"email": authorized, "maxResults": "5"}
        )

        body = response.json()
        assert response.status_code == 200
        assert body["data"]["messages"] == [{"id": "m1"}]
        assert mock_gmail_service.users().messages().list.call_args.kwargs["maxResults"] == 5

    def test_read_email(
        self,
        client: TestClient,
        authorized: str,
        mock_gmail_service: MagicMock,
        sample_full_message: dict[str, Any],
    ) -> None:
        mock_gmail_service.users().messages().get.return_value.execute.return_value = (
            sample_full_message
        )

        response = client.get("/api/readEmail/msg1", params={"email": authorized})

        assert response.status_code == 200
        assert response.json()["data"]["body"] == "Test body content"

    def test_send_email(
        self, client: TestClient, authorized: str, mock_gmail_service: MagicMock
    ) -> None:
        mock_gmail_service.users().messages().send.return_value.execute.return_value = {
            "id": "s1",
            "threadId": "t1",
        }

        response = client.post(
            "/api/sendEmail",
            json={"email": authorized, "to": "a@example.com", "subject": "s", "body": "b"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "data": {"id": "s1", "threadId": "t1"},
            "message": "Email sent successfully",
        }

    def test_send_email_missing_fields(self, client: TestClient) -> None:
        response = client.post("/api/sendEmail", json={"email": "user@gmail.com"})

        assert response.status_code == 400
        assert response.json()["error"] == "Missing required fields: to, subject, body"

    def test_send_email_rejects_subject_line_breaks(
        self, client: TestClient, authorized: str, mock_gmail_service: MagicMock
    ) -> None:
        response = client.post(
            "/api/sendEmail",
            json={
                "email": authorized,
                "to": "a@example.com",
                "subject": "hi\nBcc: x@y.com",
                "body": "b",
            },
        )

        assert response.status_code == 400
        assert response.json()["error"] == "subject must not contain line breaks"
        mock_gmail_service.users().messages().send.assert_not_called()

    def test_invalid_json_body(self, client: TestClient) -> None:
        response = client.post(
            "/api/sendEmail", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400

    def test_mark_as_unread_message(self, client: TestClient, authorized: str) -> None:
        response = client.post(
            "/api/markAsRead",
            json={"email": authorized, "messageIds": ["m1"], "read": False},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["message"] == "Emails marked as unread"
        assert body["data"] == {"messageIds": ["m1"], "read": False}

    def test_delete_emails(
        self, client: TestClient, authorized: str, mock_gmail_service: MagicMock
    ) -> None:
        mock_gmail_service.users().messages().trash.return_value.execute.return_value = {
            "id": "m1"
        }

        response = client.post(
            "/api/deleteEmails", json={"email": authorized, "messageIds": ["m1"]}
        )

        assert response.json()["data"] == {"trashed": ["m1"], "count": 1}

    def test_natural_query(
        self, client: TestClient, authorized: str, mock_gmail_service: MagicMock
    ) -> None:
        mock_gmail_service.users().messages().list.return_value.execute.return_value = {}

        response = client.post(
            "/api/naturalQuery", json={"email": authorized, "query": "starred ones"}
        )

        body = response.json()
        assert response.status_code == 200
        assert body["query"] == "starred ones"
        assert body["parsedQuery"] == "is:starred"
        assert body["data"]["messages"] == []

    def test_no_refresh_token_is_401(
        self, client: TestClient, store, make_record
    ) -> None:
        asyncio.run(store.upsert(make_record(expiry_date=0, refresh_token=None)))

        response = client.get("/api/listEmails", params={"email": "user@gmail.com"})

        assert response.status_code == 401


class TestRateLimit:
    """Tests for REST rate limiting."""

    def test_too_many_requests(self, gateway: Gateway) -> None:
        gateway.rate_limiter = RateLimiter(max_requests=2, window_seconds=900)
        client = TestClient(create_app(gateway))

        for _ in range(2):
            client.get("/api/listEmails")
        response = client.get("/api/listEmails")

        assert response.status_code == 429
        assert response.json()["error"] == "Too many requests, please try again later."
        assert int(response.headers["Retry-After"]) >= 1

    def test_lifespan_sweeps_stale_buckets(self, gateway: Gateway, mocker) -> None:
        sweep = mocker.spy(gateway.rate_limiter, "cleanup_stale")

        with TestClient(create_app(gateway, sweep_interval=0.01)) as client:
            client.get("/health")
            deadline = time.monotonic() + 2
            while not sweep.called and time.monotonic() < deadline:
                time.sleep(0.01)

        assert sweep.called
