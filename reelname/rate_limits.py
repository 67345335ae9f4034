"""Sliding-window request limiter shared by catalog calls."""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Callable, Optional

# TMDB documents ~40 requests per 10 seconds; stay below it.
TMDB_RATE_LIMIT_QUOTA = 35
TMDB_RATE_LIMIT_WINDOW_SECONDS = 10.0


class SlidingWindowLimiter:
    """
    Allow at most ``quota`` acquisitions inside any rolling ``window_seconds``.

    The lock only guards bookkeeping. Callers that must wait sleep outside it
    and re-check afterwards, so a single sleep never exceeds the window.
    """

    def __init__(
        self,
        quota: int = TMDB_RATE_LIMIT_QUOTA,
        window_seconds: float = TMDB_RATE_LIMIT_WINDOW_SECONDS,
        on_wait: Optional[Callable[[float], None]] = None,
    ) -> None:
        if quota < 1:
            raise ValueError("quota must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.quota = quota
        self.window_seconds = float(window_seconds)
        self._on_wait = on_wait
        self._request_starts: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _prune_window(self, now: float) -> None:
        while self._request_starts and self._request_starts[0] + self.window_seconds <= now:
            self._request_starts.popleft()

    @property
    def in_window(self) -> int:
        self._prune_window(time.monotonic())
        return len(self._request_starts)

    async def acquire(self) -> float:
        """
        Reserve one request slot.

        Returns the total wait time applied (seconds).
        """
        waited = 0.0
        while True:
            async with self._lock:
                now = time.monotonic()
                self._prune_window(now)
                if len(self._request_starts) < self.quota:
                    self._request_starts.append(now)
                    return waited
                wait = self._request_starts[0] + self.window_seconds - now
            wait = min(max(wait, 0.0), self.window_seconds)
            if self._on_wait is not None:
                self._on_wait(wait)
            await asyncio.sleep(wait)
            waited += wait

    def reset(self) -> None:
        self._request_starts.clear()
