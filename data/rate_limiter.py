"""
Token bucket rate limiter shared by market data requests.
"""

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class TokenBucket:
    """
    Thread-safe token bucket.

    Tokens refill continuously at ``rate`` per second up to ``capacity``.
    ``acquire()`` blocks until a token is available.
    """

    def __init__(
        self,
        rate: float,
        capacity: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        if rate <= 0:
            raise ValueError("rate must be positive")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")

        self.rate = rate
        self.capacity = capacity
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._updated_at = clock()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._updated_at
        if elapsed > 0:
            self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._updated_at = now

    def try_acquire(self) -> bool:
        """Take a token if one is available, without waiting."""
        with self._lock:
            self._refill()
            if self._tokens >= 1:
                self._tokens -= 1
                return True
            return False

    def acquire(self) -> float:
        """Take a token, sleeping as needed. Returns the total time waited."""
        waited = 0.0
        while True:
            with self._lock:
                self._refill()
                if self._tokens >= 1:
                    self._tokens -= 1
                    return waited
                wait = (1 - self._tokens) / self.rate

            logger.debug(f"Rate limited, waiting {wait:.3f}s")
            self._sleep(wait)
            waited += wait
