import hashlib
import json
import time
from collections import OrderedDict
from typing import Any, Callable


def fingerprint(payload: Any) -> str:
    """SHA-256 of the canonical JSON form of a signal payload."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class DedupCache:
    """Bounded LRU set of fingerprints whose entries expire after ``ttl`` seconds.

    The OrderedDict keeps the least recently used entry at the front. Since
    entries are appended on insert, the front is also (roughly) the oldest, so
    expired entries are purged from there on every access.
    """

    def __init__(self, max_size: int, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.max_size = max_size
        self.ttl = ttl
        self.clock = clock
        self._entries: "OrderedDict[str, float]" = OrderedDict()

    def has(self, key: str) -> bool:
        now = self.clock()
        self._purge_front(now)
        inserted_at = self._entries.get(key)
        if inserted_at is None:
            return False
        if now - inserted_at >= self.ttl:
            del self._entries[key]
            return False
        self._entries.move_to_end(key)
        return True

    def add(self, key: str) -> None:
        now = self.clock()
        self._purge_front(now)
        self._entries[key] = now
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def purge(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        now = self.clock()
        expired = [key for key, inserted_at in self._entries.items() if now - inserted_at >= self.ttl]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _purge_front(self, now: float) -> None:
        while self._entries:
            key, inserted_at = next(iter(self._entries.items()))
            if now - inserted_at < self.ttl:
                break
            del self._entries[key]

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def __len__(self) -> int:
        return len(self._entries)
