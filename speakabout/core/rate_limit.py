"""
Rate Limiting Module

Two layers share one storage backend (RATE_LIMIT_STORAGE_URI):

- RateLimiter: fixed-window counters keyed by client identifier, called
  explicitly by handlers that need quota feedback (e.g. admin login).
- limiter: the slowapi route decorator used on public lead-capture endpoints.

With the default memory:// storage all counters are local to one process and
give no guarantee once the service is scaled horizontally. Point
RATE_LIMIT_STORAGE_URI at a shared backend (e.g. redis://) for that.
"""

import logging
import math
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request
from limits.storage import storage_from_string
from pydantic import BaseModel
from slowapi import Limiter

from speakabout.core.environment import get_rate_limit_storage_uri

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"
DEFAULT_SWEEP_INTERVAL = 60.0


class RateLimitResult(BaseModel):
    """Outcome of a rate-limit check, with feedback for the client."""
    success: bool
    limit: int
    remaining: int
    reset_time: int  # epoch milliseconds

    def retry_after(self, now_ms: Optional[int] = None) -> int:
        """Seconds until the current window resets."""
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        return max(0, math.ceil((self.reset_time - now_ms) / 1000))


# ================== Stores ==================


class RateLimitStore:
    """Counter storage for rate-limit buckets."""

    def incr(self, key: str, expires_at: float) -> int:
        """Increment the counter for key and return the new count."""
        raise NotImplementedError

    def sweep(self, now: float) -> int:
        """Drop expired buckets; return how many were removed."""
        return 0

    def reset(self) -> None:
        raise NotImplementedError


class MemoryRateLimitStore(RateLimitStore):
    """In-process store for single-instance deployments."""

    def __init__(self) -> None:
        self._buckets: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def incr(self, key: str, expires_at: float) -> int:
        with self._lock:
            count, _ = self._buckets.get(key, (0, expires_at))
            count += 1
            self._buckets[key] = (count, expires_at)
            return count

    def sweep(self, now: float) -> int:
        with self._lock:
            expired = [key for key, (_, expires_at) in self._buckets.items() if expires_at <= now]
            for key in expired:
                del self._buckets[key]
            return len(expired)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()

    def __len__(self) -> int:
        return len(self._buckets)


class LimitsRateLimitStore(RateLimitStore):
    """
    Store backed by a `limits` storage (redis://, memcached://, ...).

    The backend expires keys itself, so sweeping is a no-op.
    """

    def __init__(self, uri: str, clock: Callable[[], float] = time.time) -> None:
        self.uri = uri
        self._storage = storage_from_string(uri)
        self._clock = clock

    def incr(self, key: str, expires_at: float) -> int:
        expiry = max(1, math.ceil(expires_at - self._clock()))
        return self._storage.incr(key, expiry)

    def reset(self) -> None:
        self._storage.reset()


def build_rate_limit_store(uri: Optional[str] = None) -> RateLimitStore:
    """Build the store for a storage URI (defaults to RATE_LIMIT_STORAGE_URI)."""
    uri = uri or get_rate_limit_storage_uri()
    if uri.startswith("memory://"):
        return MemoryRateLimitStore()
    return LimitsRateLimitStore(uri)


# ================== Fixed-Window Limiter ==================


class RateLimiter:
    """Fixed-window request counter over an injected store."""

    def __init__(
        self,
        store: Optional[RateLimitStore] = None,
        clock: Callable[[], float] = time.time,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
    ) -> None:
        self.store = store or MemoryRateLimitStore()
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._last_sweep = 0.0

    def _maybe_sweep(self, now: float) -> None:
        if now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now
        removed = self.store.sweep(now)
        if removed:
            logger.debug("Swept %d expired rate-limit buckets", removed)

    def check(self, identifier: str, max_requests: int, window_ms: int) -> RateLimitResult:
        """
        Count one request for identifier in the current window.

        The request is denied once the window's count has already reached
        max_requests before this call.

        Args:
            identifier: Client key, e.g. "login:203.0.113.7"
            max_requests: Allowed requests per window
            window_ms: Window length in milliseconds

        Returns:
            RateLimitResult with remaining quota and window reset time
        """
        now = self._clock()
        self._maybe_sweep(now)

        now_ms = int(now * 1000)
        bucket = now_ms // window_ms
        reset_ms = (bucket + 1) * window_ms
        key = f"{identifier}:{bucket}"

        count = self.store.incr(key, reset_ms / 1000)
        allowed = count <= max_requests
        if not allowed:
            logger.info("Rate limit exceeded for %s (%d/%d)", identifier, count, max_requests)

        return RateLimitResult(
            success=allowed,
            limit=max_requests,
            remaining=max(0, max_requests - count),
            reset_time=reset_ms,
        )

    def reset(self) -> None:
        self.store.reset()


def get_rate_limiter(request: Request) -> RateLimiter:
    """Get the limiter injected on the application."""
    return request.app.state.rate_limiter


def check_rate_limit(request: Request, identifier: str, max_requests: int, window_ms: int) -> RateLimitResult:
    """Check identifier against the application's injected RateLimiter."""
    return get_rate_limiter(request).check(identifier, max_requests, window_ms)


# ================== Client Identity ==================


def get_client_identifier(request: Request) -> str:
    """
    Best-effort client identity.

    Order: first X-Forwarded-For hop, X-Real-IP, socket peer, then a
    fixed placeholder.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host

    return UNKNOWN_CLIENT


# Route decorator limiter, shares storage and client identity with RateLimiter
limiter = Limiter(key_func=get_client_identifier, storage_uri=get_rate_limit_storage_uri())
