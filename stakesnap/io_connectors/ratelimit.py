"""Token-bucket rate limiter shared by the fetch worker pool."""

from __future__ import annotations

import threading
import time
from typing import Callable


class TokenBucket:
    """K requests per fixed interval, refilled continuously.

    The bucket starts full so the first K requests go out immediately. All
    state changes happen under one lock; sleeping happens outside it so other
    workers can keep checking the bucket.
    """

    def __init__(
        self,
        capacity: int,
        interval_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.capacity = capacity
        self.interval_seconds = interval_seconds
        self._rate = capacity / interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._tokens = float(capacity)
        self._last = clock()

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self._last)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self._rate)
        self._last = now

    def try_acquire(self) -> float:
        """Take a token if one is available.

        Returns:
            0.0 on success, otherwise the seconds to wait before retrying.
        """

        with self._lock:
            self._refill(self._clock())
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return 0.0
            return (1.0 - self._tokens) / self._rate

    def acquire(self) -> None:
        """Block until a token is taken."""

        while True:
            wait = self.try_acquire()
            if wait <= 0.0:
                return
            self._sleep(wait)
