"""Rate limiting middleware using token bucket algorithm."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass

from gmail_gateway.utils.errors import RateLimitError

logger = logging.getLogger(__name__)


@dataclass
class Bucket:
    """Token bucket for rate limiting."""

    tokens: float
    last_update: float
    max_tokens: float
    refill_rate: float  # tokens per second


class RateLimiter:
    """Per-caller rate limiter using token bucket algorithm.

    Each key (client IP on the REST surface, user email on the tool
    surface) has its own bucket holding ``max_requests`` tokens that refill
    evenly over ``window_seconds``. Requests consume tokens; when empty,
    requests are rejected.
    """

    def __init__(self, max_requests: int = 100, window_seconds: float = 900) -> None:
        """Initialize rate limiter.

        Args:
            max_requests: Maximum requests per window (default 100).
            window_seconds: Time window in seconds (default 900).
        """
        if max_requests <= 0 or window_seconds <= 0:
            raise ValueError("max_requests and window_seconds must be positive")

        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._refill_rate = max_requests / window_seconds
        self._buckets: dict[str, Bucket] = {}
        self._lock = threading.Lock()

        logger.info(
            "RateLimiter initialized: %d requests per %d seconds",
            max_requests,
            window_seconds,
        )

    @property
    def max_requests(self) -> int:
        return self._max_requests

    def _get_bucket(self, key: str) -> Bucket:
        if key not in self._buckets:
            self._buckets[key] = Bucket(
                tokens=float(self._max_requests),
                last_update=time.monotonic(),
                max_tokens=float(self._max_requests),
                refill_rate=self._refill_rate,
            )
        return self._buckets[key]

    def _refill(self, bucket: Bucket) -> None:
        now = time.monotonic()
        elapsed = now - bucket.last_update
        bucket.tokens = min(
            bucket.max_tokens,
            bucket.tokens + elapsed * bucket.refill_rate,
        )
        bucket.last_update = now

    def consume(self, key: str, tokens: int = 1) -> None:
        """Consume tokens for a request.

        Args:
            key: Caller identifier.
            tokens: Number of tokens to consume.

        Raises:
            RateLimitError: If not enough tokens available.
        """
        with self._lock:
            bucket = self._get_bucket(key)
            self._refill(bucket)

            if bucket.tokens < tokens:
                wait_time = (tokens - bucket.tokens) / bucket.refill_rate
                logger.warning(
                    "Rate limit exceeded for %s. Retry after %.1f seconds",
                    key,
                    wait_time,
                )
                raise RateLimitError(
                    "Too many requests, please try again later.",
                    retry_after_seconds=round(wait_time, 1),
                    details={
                        "key": key,
                        "retry_after_seconds": round(wait_time, 1),
                        "remaining": int(bucket.tokens),
                    },
                )

            bucket.tokens -= tokens

    def remaining(self, key: str) -> int:
        """Get remaining tokens for a caller, rounded down."""
        with self._lock:
            bucket = self._get_bucket(key)
            self._refill(bucket)
            return int(bucket.tokens)

    def cleanup_stale(self, max_age_seconds: float = 3600) -> int:
        """Remove buckets that haven't been used recently.

        Returns:
            Number of buckets removed.
        """
        now = time.monotonic()

        with self._lock:
            stale = [
                key
                for key, bucket in self._buckets.items()
                if now - bucket.last_update > max_age_seconds
            ]
            for key in stale:
                del self._buckets[key]

        if stale:
            logger.debug("Cleaned up %d stale rate limit buckets", len(stale))
        return len(stale)
