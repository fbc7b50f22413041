"""In-memory token-bucket rate limiter for the OAuth endpoints.

Pre-configured tiers:
  - api:    10 req/s, burst 30  (general API endpoints)
  - auth:    1 req/s, burst  5  (login, authorize)
  - token:   2 req/s, burst 10  (token exchange and refresh)

Buckets are per process. They slow down brute force against a single
instance; they are not a shared quota across instances.
"""

from __future__ import annotations

import math
import threading
import time
from collections.abc import Callable

__all__ = [
    "RateLimiter",
    "RateLimitInfo",
    "api_limiter",
    "auth_limiter",
    "token_limiter",
]


class _Bucket:
    """A single token bucket for one client."""

    __slots__ = ("tokens", "last_refill")

    def __init__(self, capacity: float, now: float):
        self.tokens: float = capacity
        self.last_refill: float = now


class RateLimitInfo:
    """Rate limit state returned by ``check()``."""

    __slots__ = ("allowed", "limit", "remaining", "reset_after")

    def __init__(self, allowed: bool, limit: int, remaining: int, reset_after: float):
        self.allowed = allowed
        self.limit = limit
        self.remaining = remaining
        self.reset_after = reset_after

    def headers(self) -> dict[str, str]:
        """Return rate-limit response headers (RFC 6585 style)."""
        h: dict[str, str] = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_after)),
        }
        if not self.allowed:
            h["Retry-After"] = str(math.ceil(self.reset_after))
        return h


class RateLimiter:
    """Token-bucket rate limiter keyed by client identifier (IP address).

    Safe to share between threadpool workers. Once more than *max_buckets*
    clients are tracked, buckets idle for longer than *max_age* seconds are
    dropped on the next check, so memory stays bounded without a separate
    cleanup job.

    Parameters
    ----------
    rate : float
        Tokens added per second.
    capacity : int
        Maximum burst size (bucket capacity).
    max_buckets : int
        Bucket count above which stale buckets are pruned during ``check()``.
    max_age : float
        Idle seconds after which a bucket counts as stale.
    clock : callable
        Monotonic time source.
    """

    def __init__(
        self,
        rate: float,
        capacity: int,
        max_buckets: int = 10_000,
        max_age: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.rate = rate
        self.capacity = capacity
        self.max_buckets = max_buckets
        self.max_age = max_age
        self._clock = clock
        self._buckets: dict[str, _Bucket] = {}
        self._lock = threading.Lock()

    def allow(self, key: str) -> bool:
        """Return True if the request is allowed, consuming one token."""
        return self.check(key).allowed

    def check(self, key: str) -> RateLimitInfo:
        """Check rate limit and return detailed info with header values."""
        with self._lock:
            now = self._clock()

            if key not in self._buckets:
                if len(self._buckets) >= self.max_buckets:
                    self._prune(now, self.max_age)
                self._buckets[key] = _Bucket(self.capacity, now)

            bucket = self._buckets[key]

            # Refill tokens since last check
            elapsed = now - bucket.last_refill
            bucket.tokens = min(self.capacity, bucket.tokens + elapsed * self.rate)
            bucket.last_refill = now

            if bucket.tokens >= 1.0:
                bucket.tokens -= 1.0
                remaining = int(bucket.tokens)
                reset_after = (self.capacity - bucket.tokens) / self.rate if self.rate > 0 else 0
                return RateLimitInfo(True, self.capacity, remaining, reset_after)

            # Denied: compute time until next token
            reset_after = (1.0 - bucket.tokens) / self.rate if self.rate > 0 else 1.0
            return RateLimitInfo(False, self.capacity, 0, reset_after)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()

    def cleanup(self, max_age: float | None = None) -> int:
        """Remove stale entries older than *max_age* seconds. Returns count removed."""
        with self._lock:
            return self._prune(self._clock(), self.max_age if max_age is None else max_age)

    def _prune(self, now: float, max_age: float) -> int:
        # Caller holds the lock
        stale = [k for k, b in self._buckets.items() if now - b.last_refill > max_age]
        for k in stale:
            del self._buckets[k]
        return len(stale)


# Pre-configured limiter instances
api_limiter = RateLimiter(rate=10.0, capacity=30)
auth_limiter = RateLimiter(rate=1.0, capacity=5)
token_limiter = RateLimiter(rate=2.0, capacity=10)
