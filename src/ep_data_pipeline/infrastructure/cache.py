"""In-memory response cache with TTL expiry and LRU eviction.

Usage example:
    from ep_data_pipeline.infrastructure.cache import ResponseCache

    cache = ResponseCache(max_size=500, ttl_seconds=900)
    cache.set("key", {"value": 1})
    cached = cache.get("key")
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing_extensions import override

from ..protocols import Cache, Clock, JsonObject


@dataclass(frozen=True)
class CacheStats:
    """Cache occupancy and best-effort hit tracking."""

    size: int
    max_size: int
    hits: int = 0
    misses: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0


@dataclass
class CacheEntry:
    key: str
    value: JsonObject
    stored_at: float
    ttl_seconds: float

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl_seconds


@dataclass
class ResponseCache(Cache):
    """Bounded LRU cache whose entries expire after `ttl_seconds`.

    A hit moves the entry to the most-recent end and restarts its TTL, so
    frequently read keys stay warm. Expired entries are never returned.
    """

    max_size: int = 500
    ttl_seconds: float = 900.0
    clock: Clock = time.monotonic
    _entries: OrderedDict[str, CacheEntry] = field(default_factory=OrderedDict, init=False)
    _hits: int = field(default=0, init=False)
    _misses: int = field(default=0, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_size < 1:
            raise ValueError("max_size must be at least 1")

    @property
    @override
    def size(self) -> int:
        return len(self._entries)

    @override
    def get(self, key: str) -> JsonObject | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            now = self.clock()
            if entry.is_expired(now):
                del self._entries[key]
                self._misses += 1
                return None
            # Reads refresh recency and age.
            entry.stored_at = now
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    @override
    def set(self, key: str, value: JsonObject) -> None:
        with self._lock:
            now = self.clock()
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                self._entries.popitem(last=False)
            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                stored_at=now,
                ttl_seconds=self.ttl_seconds,
            )

    def has(self, key: str) -> bool:
        """Check for a fresh entry without touching recency or hit counters."""
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self.clock())

    def keys(self) -> list[str]:
        """Return keys from least to most recently used."""
        with self._lock:
            return list(self._entries)

    @override
    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    @override
    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                max_size=self.max_size,
                hits=self._hits,
                misses=self._misses,
            )
