"""Fixed-window rate limiting.

Two flavours share the same window rule (elapsed >= window resets the
count):

- ``ConnectionRateLimiter`` keeps its counters on the connection record
  itself, so they die with the connection.
- ``SourceRateLimiter`` keeps one ``RateBucket`` per source address and
  drops buckets that have been idle for many windows.
"""
import time
from dataclasses import dataclass
from typing import Callable, Dict

from logging_config import get_logger

logger = get_logger(__name__)

# Buckets idle for this many windows are garbage collected
STALE_WINDOWS = 10


@dataclass
class RateBucket:
    count: int
    window_start: float


class ConnectionRateLimiter:
    def __init__(self, window: float, max_count: int, clock: Callable[[], float] = time.monotonic):
        self.window = window
        self.max_count = max_count
        self.clock = clock

    def allow(self, connection) -> bool:
        """Count one inbound frame for ``connection``; False once it is over the ceiling."""
        now = self.clock()
        if now - connection.rate_window_start >= self.window:
            connection.rate_window_start = now
            connection.rate_count = 0
        connection.rate_count += 1
        return connection.rate_count <= self.max_count


class SourceRateLimiter:
    def __init__(self, window: float, max_count: int, clock: Callable[[], float] = time.monotonic):
        self.window = window
        self.max_count = max_count
        self.clock = clock
        self._buckets: Dict[str, RateBucket] = {}
        self._last_cleanup = clock()

    def hit(self, source: str) -> bool:
        now = self.clock()
        if now - self._last_cleanup >= self.window:
            self._cleanup(now)

        bucket = self._buckets.get(source)
        if bucket is None or now - bucket.window_start >= self.window:
            self._buckets[source] = RateBucket(count=1, window_start=now)
            return True

        bucket.count += 1
        return bucket.count <= self.max_count

    def _cleanup(self, now: float) -> None:
        stale_after = self.window * STALE_WINDOWS
        expired = [key for key, bucket in self._buckets.items() if now - bucket.window_start > stale_after]
        for key in expired:
            del self._buckets[key]
        if expired:
            logger.debug(f"Dropped {len(expired)} stale source rate buckets")
        self._last_cleanup = now

    def __len__(self) -> int:
        return len(self._buckets)
