"""Token-bucket throttle for AI calls made in sequence.

Blocking counterpart of a sliding-window limiter: instead of rejecting a
request, ``acquire()`` sleeps until a token is available. Clock and sleep
are injectable so tests run deterministically without real delays.

Usage:
    bucket = TokenBucket(capacity=5, refill_per_second=0.5)
    for item in backlog:
        bucket.acquire()
        process(item)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class TokenBucket:
    """Allows bursts of ``capacity`` calls, then ``refill_per_second`` calls/s.

    Args:
        capacity: Maximum number of tokens (burst size).
        refill_per_second: Tokens added per second of elapsed time.
        clock: Monotonic clock returning seconds.
        sleep: Function used to wait.
    """

    def __init__(
        self,
        capacity: int = 5,
        refill_per_second: float = 0.5,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if refill_per_second <= 0:
            raise ValueError("refill_per_second must be positive")
        self._capacity = float(capacity)
        self._rate = refill_per_second
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._updated = clock()

    @property
    def available(self) -> float:
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
        self._updated = now

    def try_acquire(self) -> bool:
        """Take a token if one is available, without waiting."""
        self._refill()
        if self._tokens >= 1:
            self._tokens -= 1
            return True
        return False

    def acquire(self) -> float:
        """Take a token, sleeping until one is available.

        Returns:
            Total seconds spent waiting.
        """
        waited = 0.0
        while not self.try_acquire():
            wait = (1 - self._tokens) / self._rate
            logger.debug("Throttle: waiting %.2fs for a token", wait)
            self._sleep(wait)
            waited += wait
        return waited
