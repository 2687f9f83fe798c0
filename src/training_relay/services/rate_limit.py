"""In-process request throttling for the public endpoints."""

from __future__ import annotations

import time
from collections.abc import Callable
from functools import lru_cache
from threading import Lock

from training_relay.core.settings import settings

WINDOW_SECONDS = 60


class RateLimiter:
    """Fixed-window counter keyed by caller identity.

    Counts live in process memory and reset at the start of every window.
    """

    def __init__(
        self,
        limit: int,
        *,
        window_seconds: int = WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._window = -1
        self._counts: dict[str, int] = {}
        self._lock = Lock()

    def hit(self, key: str) -> bool:
        """Count one request for `key`.

        Returns:
            True if the request is within the allowance, False if it must be refused.
        """
        window = int(self._clock() // self.window_seconds)
        with self._lock:
            if window != self._window:
                self._window = window
                self._counts.clear()
            count = self._counts.get(key, 0) + 1
            self._counts[key] = count
            return count <= self.limit

    def reset(self) -> None:
        """Forget every counter."""
        with self._lock:
            self._counts.clear()


@lru_cache(maxsize=1)
def get_upload_limiter() -> RateLimiter:
    """Return the shared per-client upload limiter."""
    return RateLimiter(settings.rate_limit_per_client_per_minute)


@lru_cache(maxsize=1)
def get_redeem_limiter() -> RateLimiter:
    """Return the shared per-IP redemption limiter."""
    return RateLimiter(settings.rate_limit_redeem_per_ip_per_minute)
