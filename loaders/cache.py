"""
Bounded in-memory TTL cache for upstream results.

Keys are a query-type tag plus coordinates quantized to a fixed number of
decimals, so nearby repeated queries share an entry. Entries expire after a
fixed TTL; when the cache is full the oldest entry (by last use for LRU, by
insertion for FIFO) is evicted.
"""

import time
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

log = logging.getLogger(__name__)


class EvictionPolicy(Enum):
    """Which entry goes first when the cache is full."""
    LRU = "lru"
    FIFO = "fifo"


@dataclass
class CacheEntry:
    key: str
    value: Any
    timestamp: float  # seconds, from the cache clock


def make_cache_key(kind: str, lat: float, lng: float, precision: int = 3) -> str:
    """Quantized cache key, e.g. ``solar_23.811_90.413``."""
    return f"{kind}_{lat:.{precision}f}_{lng:.{precision}f}"


class TTLCache:
    """
    Thread-safe bounded cache with per-entry expiry.

    Usage:
        cache = TTLCache(max_entries=1000, ttl_seconds=86400)
        cache.set("solar_23.811_90.413", sample)
        cache.get("solar_23.811_90.413")
    """

    def __init__(
        self,
        max_entries: int = 1000,
        ttl_seconds: float = 86400.0,
        policy: EvictionPolicy = EvictionPolicy.LRU,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self.policy = policy
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on miss or expiry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if self._clock() - entry.timestamp >= self.ttl_seconds:
                del self._entries[key]
                self.misses += 1
                log.debug(f"Cache expired: {key}")
                return None
            if self.policy is EvictionPolicy.LRU:
                self._entries.move_to_end(key)
            self.hits += 1
            log.debug(f"Cache hit: {key}")
            return entry.value

    def set(self, key: str, value: Any) -> None:
        """Store a value; evicts the oldest entries when over capacity."""
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            self._entries[key] = CacheEntry(key, value, self._clock())
            while len(self._entries) > self.max_entries:
                oldest, _ = self._entries.popitem(last=False)
                self.evictions += 1
                log.debug(f"Cache evicted: {oldest}")

    def purge_expired(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if now - e.timestamp >= self.ttl_seconds]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and self._clock() - entry.timestamp < self.ttl_seconds

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "max_entries": self.max_entries,
                "ttl_seconds": self.ttl_seconds,
                "policy": self.policy.value,
                "hits": self.hits,
                "misses": self.misses,
                "evictions": self.evictions,
            }
