"""Fixed-window, process-local request rate limiting.

Counters live in this process only: with several workers or instances each
one enforces its own limit.
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass
class _Window:
    count: int
    expires_at: float


class FixedWindowRateLimiter:
    """Allow at most ``max_requests`` hits per key in each window.

    A key's window starts with its first hit and lasts ``window_seconds``;
    the first hit after expiry opens a fresh window.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        prune_threshold: int = 1024,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if prune_threshold < 1:
            raise ValueError("prune_threshold must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.prune_threshold = prune_threshold
        self._next_sweep_at = float("-inf")
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> bool:
        """Record a request for ``key``. Returns False when it is over the limit.

        Once the table holds ``prune_threshold`` keys, expired windows are
        swept from here at most once per window.
        """
        now = self._clock()
        with self._lock:
            if len(self._windows) >= self.prune_threshold and now >= self._next_sweep_at:
                self._drop_expired(now)
                self._next_sweep_at = now + self.window_seconds
            window = self._windows.get(key)
            if window is None or now >= window.expires_at:
                self._windows[key] = _Window(count=1, expires_at=now + self.window_seconds)
                return True
            if window.count >= self.max_requests:
                return False
            window.count += 1
            return True

    def prune(self) -> int:
        """Drop expired windows. Returns the number of keys removed."""
        now = self._clock()
        with self._lock:
            return self._drop_expired(now)

    def _drop_expired(self, now: float) -> int:
        expired = [key for key, w in self._windows.items() if now >= w.expires_at]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
            self._next_sweep_at = float("-inf")

    def __len__(self) -> int:
        return len(self._windows)
