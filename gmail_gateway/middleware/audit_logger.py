"""Audit logging middleware for gateway operations."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class AuditEntry(BaseModel):
    """Model for an audit log entry."""

    timestamp: str = Field(
        default_factory=lambda: datetime.now(UTC).isoformat(),
        description="ISO format timestamp",
    )
    email: str | None = Field(default=None, description="Mailbox the call acted on")
    caller: str | None = Field(default=None, description="Client identifier (IP or transport)")
    operation: str = Field(..., description="Name of the operation invoked")
    action: str = Field(default="invoke", description="Action type")
    parameters: dict[str, Any] = Field(
        default_factory=dict,
        description="Operation parameters (sensitive data redacted)",
    )
    result_status: str | None = Field(
        default=None,
        description="Result status (success/error)",
    )
    error_message: str | None = Field(
        default=None,
        description="Error message if failed",
    )
    duration_ms: float | None = Field(
        default=None,
        description="Execution duration in milliseconds",
    )


class AuditLogger:
    """Audit logger that writes JSON lines to stderr.

    stderr keeps audit output clear of the MCP stdio channel.
    """

    SENSITIVE_KEYS = {
        "body",
        "code",
        "password",
        "token",
        "secret",
        "key",
        "credential",
        "access_token",
        "refresh_token",
        "client_secret",
        "authorization",
        "api_key",
        "bearer",
    }

    def __init__(self, enabled: bool = True) -> None:
        self._enabled = enabled
        logger.info("AuditLogger initialized (enabled=%s)", enabled)

    def _redact_sensitive(self, params: dict[str, Any]) -> dict[str, Any]:
        """Redact sensitive values from parameters."""
        redacted: dict[str, Any] = {}
        for key, value in params.items():
            if key.lower() in self.SENSITIVE_KEYS:
                if isinstance(value, str) and len(value) > 20:
                    redacted[key] = f"{value[:10]}...[REDACTED]"
                else:
                    redacted[key] = "[REDACTED]"
            elif isinstance(value, dict):
                redacted[key] = self._redact_sensitive(value)
            else:
                redacted[key] = value
        return redacted

    def log(self, entry: AuditEntry) -> None:
        """Write audit entry to stderr."""
        if not self._enabled:
            return

        try:
            line = json.dumps({"audit": entry.model_dump()}, default=str)
            print(line, file=sys.stderr, flush=True)
        except Exception as e:
            logger.error("Failed to write audit log: %s", e)

    def log_operation(
        self,
        operation: str,
        parameters: dict[str, Any],
        email: str | None = None,
        caller: str | None = None,
        result_status: str | None = None,
        error_message: str | None = None,
        duration_ms: float | None = None,
    ) -> None:
        """Log a gateway operation.

        Args:
            operation: Name of the operation being invoked.
            parameters: Operation parameters (will be redacted).
            email: Mailbox the operation acted on.
            caller: Client identifier.
            result_status: "success" or "error".
            error_message: Error message if failed.
            duration_ms: Execution time in milliseconds.
        """
        entry = AuditEntry(
            email=email,
            caller=caller,
            operation=operation,
            action="invoke",
            parameters=self._redact_sensitive(parameters),
            result_status=result_status,
            error_message=error_message,
            duration_ms=duration_ms,
        )
        self.log(entry)

    def log_auth_event(
        self,
        event: str,
        email: str | None = None,
        success: bool = True,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Log an authentication event.

        Args:
            event: Event type (authorize, callback, ...).
            email: User email, when known.
            success: Whether the event succeeded.
            details: Additional event details (will be redacted).
        """
        entry = AuditEntry(
            email=email,
            operation="auth",
            action=event,
            parameters=self._redact_sensitive(details or {}),
            result_status="success" if success else "error",
        )
        self.log(entry)
