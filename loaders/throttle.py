"""
Shared request throttle.

One owned timestamp of the last outbound request enforces a minimum spacing
across every provider. The read-check-sleep-write runs under a lock, so
concurrent workers queue behind it and departures are serialized.
"""

import time
import logging
import threading
from typing import Callable, Optional

log = logging.getLogger(__name__)


class RateLimiter:
    """
    Timestamp-guarded rate limiter.

    Usage:
        limiter = RateLimiter(min_interval=0.5)
        limiter.acquire()   # blocks until this caller may dispatch
    """

    def __init__(
        self,
        min_interval: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if min_interval < 0:
            raise ValueError("min_interval must be non-negative")
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_request_time: Optional[float] = None
        self.total_wait = 0.0
        self.dispatched = 0

    def acquire(self) -> float:
        """
        Wait until at least ``min_interval`` has passed since the previous
        dispatch, then claim the slot.

        Returns:
            The dispatch timestamp on the limiter clock
        """
        with self._lock:
            now = self._clock()
            if self._last_request_time is not None:
                target = self._last_request_time + self.min_interval
                while now < target:
                    wait = target - now
                    self.total_wait += wait
                    self._sleep(wait)
                    now = self._clock()
            self._last_request_time = now
            self.dispatched += 1
            return now

    def reset(self) -> None:
        with self._lock:
            self._last_request_time = None
