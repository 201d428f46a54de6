"""
Fixed-window request throttling.

Admits at most ``max_requests`` per client within each window of
``window_seconds``. State lives in process memory, keyed by client address.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from .exceptions import RateLimitError

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    started_at: float
    count: int = 0


class FixedWindowRateLimiter:
    """In-memory fixed-window limiter."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    def hit(self, key: str) -> int:
        """
        Count one request for ``key``.

        Returns:
            Requests remaining in the current window.

        Raises:
            RateLimitError: If the quota for the current window is used up.
        """
        now = self._clock()
        window = self._windows.get(key)
        if window is None or now - window.started_at >= self.window_seconds:
            window = _Window(started_at=now)
            self._windows[key] = window
            self._evict_expired(now)

        if window.count >= self.max_requests:
            retry_after = max(0, int(window.started_at + self.window_seconds - now))
            logger.warning(f"[RateLimit] Quota exhausted for {key}, retry in {retry_after}s")
            raise RateLimitError(details={"retry_after": retry_after})

        window.count += 1
        return self.max_requests - window.count

    def reset(self) -> None:
        """Forget all windows."""
        self._windows.clear()

    def _evict_expired(self, now: float) -> None:
        expired = [
            key
            for key, window in self._windows.items()
            if now - window.started_at >= self.window_seconds
        ]
        for key in expired:
            del self._windows[key]
