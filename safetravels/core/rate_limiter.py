"""
safetravels/core/rate_limiter.py — Submission throttling
Two limiters live here:
  * FixedWindowRateLimiter: per-identity quota on report submissions. An
    explicitly owned instance is built by the app factory, never shared
    through module state.
  * slowapi `limiter`: plain request-rate limit for the read-only catalog
    endpoint, keyed by remote address.

Known weakness of fixed windows: a burst straddling a window boundary can
land up to 2 × quota submissions in a short span. This is accepted for an
abuse deterrent; it is not a hard cap.
"""
from __future__ import annotations

import hashlib
import hmac
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from slowapi import Limiter
from slowapi.util import get_remote_address

from safetravels.core.errors import ConfigurationError

# Request-rate limiter for catalog reads — imported by main.py and routers
limiter = Limiter(key_func=get_remote_address)

# ── Request-rate limits per endpoint category (slowapi syntax) ───────────────
RATE_LIMITS = {
    # Tag catalog: clients fetch it each time the report form opens
    "catalog": "60/minute",
    # Health check
    "health": "30/minute",
}

DEFAULT_WINDOW_SECONDS = 3600.0
DEFAULT_QUOTA = 3


@dataclass
class RateLimitWindow:
    count: int
    window_start: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    # Seconds until the current window resets
    retry_after: float

    @property
    def throttled(self) -> bool:
        return not self.allowed


class FixedWindowRateLimiter:
    """
    Fixed-window counter keyed by submitter identity.

    On each call: a missing or expired window (now - window_start >= window)
    is replaced by a fresh one with count 1. Inside a live window the count is
    incremented while it stays within quota. Once exhausted, further calls are
    rejected without touching the count, so retries cannot corrupt it.

    Identities are stored as salted HMAC digests; the salt is per instance
    and never leaves the process, so the map holds no raw addresses.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        quota: int = DEFAULT_QUOTA,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window_seconds <= 0:
            raise ConfigurationError("Rate limit window must be positive.")
        if quota < 1:
            raise ConfigurationError("Rate limit quota must be at least 1.")
        self.window_seconds = float(window_seconds)
        self.quota = int(quota)
        self._clock = clock
        self._salt = secrets.token_bytes(32)
        self._windows: dict[str, RateLimitWindow] = {}
        self._lock = threading.Lock()

    def _key(self, identity: str) -> str:
        return hmac.new(self._salt, identity.encode("utf-8"), hashlib.sha256).hexdigest()

    def _is_expired(self, window: RateLimitWindow, now: float) -> bool:
        return now - window.window_start >= self.window_seconds

    def check_and_record(self, identity: str, now: Optional[float] = None) -> RateLimitDecision:
        """Count one submission attempt for `identity` and decide allow/throttle."""
        if now is None:
            now = self._clock()
        key = self._key(identity)

        with self._lock:
            window = self._windows.get(key)
            if window is None or self._is_expired(window, now):
                window = RateLimitWindow(count=1, window_start=now)
                self._windows[key] = window
                return RateLimitDecision(
                    allowed=True,
                    remaining=self.quota - 1,
                    retry_after=self.window_seconds,
                )

            retry_after = max(0.0, window.window_start + self.window_seconds - now)
            if window.count >= self.quota:
                return RateLimitDecision(allowed=False, remaining=0, retry_after=retry_after)

            window.count += 1
            return RateLimitDecision(
                allowed=True,
                remaining=self.quota - window.count,
                retry_after=retry_after,
            )

    def prune(self, now: Optional[float] = None) -> int:
        """Drop expired windows. Returns how many were removed."""
        if now is None:
            now = self._clock()
        with self._lock:
            expired = [k for k, w in self._windows.items() if self._is_expired(w, now)]
            for k in expired:
                del self._windows[k]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)
