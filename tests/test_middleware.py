"""Tests for rate limiting, audit logging and input validation."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from gmail_gateway.middleware.audit_logger import AuditLogger
from gmail_gateway.middleware.rate_limiter import RateLimiter
from gmail_gateway.middleware.validator import (
    sanitize_search_query,
    validate_email,
    validate_header_value,
    validate_message_id,
    validate_message_ids,
    validate_recipients,
)
from gmail_gateway.utils.errors import RateLimitError, ValidationError


class TestRateLimiter:
    """Tests for RateLimiter."""

    def test_allows_up_to_max_requests(self) -> None:
        limiter = RateLimiter(max_requests=3, window_seconds=900)
        for _ in range(3):
            limiter.consume("ip:1.2.3.4")

        with pytest.raises(RateLimitError) as exc_info:
            limiter.consume("ip:1.2.3.4")

        assert exc_info.value.message == "Too many requests, please try again later."
        assert exc_info.value.retry_after_seconds > 0

    def test_keys_are_independent(self) -> None:
        limiter = RateLimiter(max_requests=1, window_seconds=900)
        limiter.consume("ip:1.1.1.1")
        limiter.consume("ip:2.2.2.2")

        assert limiter.remaining("ip:1.1.1.1") == 0
        assert limiter.remaining("ip:3.3.3.3") == 1

    def test_tokens_refill_over_time(self) -> None:
        limiter = RateLimiter(max_requests=2, window_seconds=10)
        with patch("gmail_gateway.middleware.rate_limiter.time.monotonic", return_value=100.0):
            limiter.consume("k")
            limiter.consume("k")
        with patch("gmail_gateway.middleware.rate_limiter.time.monotonic", return_value=105.0):
            assert limiter.remaining("k") == 1

    def test_rejects_non_positive_settings(self) -> None:
        with pytest.raises(ValueError):
            RateLimiter(max_requests=0)
        with pytest.raises(ValueError):
            RateLimiter(window_seconds=0)

    def test_cleanup_stale(self) -> None:
        limiter = RateLimiter()
        with patch("gmail_gateway.middleware.rate_limiter.time.monotonic", return_value=0.0):
            limiter.consume("old")
        with patch("gmail_gateway.middleware.rate_limiter.time.monotonic", return_value=7200.0):
            limiter.consume("new")
            assert limiter.cleanup_stale(max_age_seconds=3600) == 1


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_writes_json_line_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        AuditLogger().log_operation(
            "send_email",
            {"email": "user@gmail.com", "to": "a@example.com", "body": "<p>secret</p>"},
            email="user@gmail.com",
            caller="ip:127.0.0.1",
            result_status="success",
            duration_ms=1.5,
        )

        captured = capsys.readouterr()
        assert captured.out == ""
        entry = json.loads(captured.err)["audit"]
        assert entry["operation"] == "send_email"
        assert entry["caller"] == "ip:127.0.0.1"
        assert entry["parameters"]["body"] == "[REDACTED]"
        assert entry["parameters"]["to"] == "a@example.com"

    def test_long_secrets_partially_redacted(self) -> None:
        redacted = AuditLogger(enabled=False)._redact_sensitive(
            {"code": "4/0AbCdEfGhIjKlMnOpQrStUv", "nested": {"refresh_token": "x"}}
        )
        assert redacted["code"] == "4/0AbCdEfG...[REDACTED]"
        assert redacted["nested"]["refresh_token"] == "[REDACTED]"

    def test_auth_event(self, capsys: pytest.CaptureFixture[str]) -> None:
        AuditLogger().log_auth_event("callback", email="user@gmail.com", success=False)

        entry = json.loads(capsys.readouterr().err)["audit"]
        assert entry["operation"] == "auth"
        assert entry["action"] == "callback"
        assert entry["result_status"] == "error"

    def test_disabled_writes_nothing(self, capsys: pytest.CaptureFixture[str]) -> None:
        AuditLogger(enabled=False).log_operation("list_emails", {})
        assert capsys.readouterr().err == ""


class TestValidators:
    """Tests for input validators."""

    def test_validate_email_strips(self) -> None:
        assert validate_email("  user@gmail.com ") == "user@gmail.com"

    @pytest.mark.parametrize("value", ["", "no-at-sign", "a@b", "a b@example.com"])
    def test_validate_email_rejects(self, value: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_email(value)
        assert exc_info.value.field == "email"

    def test_validate_recipients_accepts_lists_and_names(self) -> None:
        value = "Alice <alice@example.com>, bob@example.com"
        assert validate_recipients(value) == value

    def test_validate_recipients_rejects_bad_address(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_recipients("alice@example.com, not-an-address", field="cc")
        assert exc_info.value.field == "cc"

    def test_validate_message_id(self) -> None:
        assert validate_message_id(" 18c2f0a1b2 ") == "18c2f0a1b2"
        with pytest.raises(ValidationError):
            validate_message_id("../etc/passwd")
        with pytest.raises(ValidationError):
            validate_message_id("a" * 65)

    def test_validate_message_ids_requires_items(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_message_ids([])
        assert exc_info.value.field == "messageIds"

    def test_validate_header_value(self) -> None:
        assert validate_header_value("Quarterly report", field="subject") == "Quarterly report"

    @pytest.mark.parametrize("value", ["hi\nBcc: x@y.com", "hi\r\nX-Spam: 1", "line\r"])
    def test_header_value_rejects_line_breaks(self, value: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_header_value(value, field="subject")
        assert exc_info.value.field == "subject"

    def test_sanitize_removes_drive_operators(self) -> None:
        assert sanitize_search_query("  invoice  HAS:DRIVE  from:bob ") == "invoice from:bob"

    def test_sanitize_rejects_long_query(self) -> None:
        with pytest.raises(ValidationError):
            sanitize_search_query("x" * 501)
