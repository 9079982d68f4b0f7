"""Request counting against a fixed one-minute window."""

from __future__ import annotations

import time
from typing import Callable, Optional


class SlidingWindowLimiter:
    """Counts requests in the current window and sleeps when it fills up.

    Once ``soft_limit`` requests have been made in the window, the next
    ``acquire`` sleeps until the window resets. ``max_requests`` is the
    service's hard limit and is only reported for logging.
    """

    def __init__(
        self,
        max_requests: int = 60,
        soft_limit: int = 55,
        window_seconds: float = 60.0,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.max_requests = max_requests
        self.soft_limit = min(soft_limit, max_requests)
        self.window_seconds = window_seconds
        self._clock = clock or time.monotonic
        self._sleep = sleep or time.sleep
        self.request_count = 0
        self.reset_at = self._clock() + window_seconds

    def acquire(self) -> float:
        """Register one request. Returns the number of seconds slept (0 if none)."""
        now = self._clock()
        if now >= self.reset_at:
            self.request_count = 0
            self.reset_at = now + self.window_seconds

        waited = 0.0
        if self.request_count >= self.soft_limit:
            waited = max(self.reset_at - now, 0.0)
            print(
                f"[RATE LIMIT] {self.request_count}/{self.max_requests} requests this minute, "
                f"waiting {waited:.1f}s...",
                flush=True,
            )
            if waited:
                self._sleep(waited)
            self.request_count = 0
            self.reset_at = self._clock() + self.window_seconds

        self.request_count += 1
        return waited
