"""
Memory Cache - In-process LRU cache with TTL support.
"""

from __future__ import annotations

import fnmatch
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from .backend import CacheBackend, CacheEntry, CacheStats


logger = logging.getLogger("MemoryCache")


class MemoryCache(CacheBackend):
    """
    Thread-safe in-memory cache.

    Entries expire lazily on access; the least recently used entry is evicted
    once ``max_size`` is reached.

    Example:
        >>> cache = MemoryCache(max_size=100, default_ttl=60)
        >>> cache.set("query_project_1", ["OPS-1"])
        >>> cache.get("query_project_1")
        ['OPS-1']
    """

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl: float | None = 300.0,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache.

        Args:
            max_size: Maximum number of entries before LRU eviction.
            default_ttl: TTL in seconds when set() gets none (None = forever).
            clock: Time source, injectable for tests.
        """
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._stats = CacheStats()
        self._lock = threading.RLock()

    @property
    def name(self) -> str:
        return "memory"

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                self._stats.record_miss()
                return default

            self._entries.move_to_end(key)
            entry.record_hit()
            self._stats.record_hit()
            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        effective_ttl = self._default_ttl if ttl is None else ttl
        now = self._clock()
        expires_at = now + effective_ttl if effective_ttl is not None else None

        with self._lock:
            if key in self._entries:
                del self._entries[key]
            while len(self._entries) >= self._max_size:
                evicted, _ = self._entries.popitem(last=False)
                self._stats.record_eviction()
                logger.debug(f"Evicted {evicted}")

            self._entries[key] = CacheEntry(value=value, created_at=now, expires_at=expires_at)
            self._stats.record_set()

    def delete(self, key: str) -> bool:
        with self._lock:
            if self._live_entry(key) is None:
                return False
            del self._entries[key]
            self._stats.record_delete()
            return True

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._live_entry(key) is not None

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> CacheStats:
        return self._stats

    @property
    def supports_scan(self) -> bool:
        return True

    def scan(self, pattern: str) -> list[str]:
        with self._lock:
            return [
                key
                for key in list(self._entries)
                if self._live_entry(key) is not None and fnmatch.fnmatchcase(key, pattern)
            ]

    def cleanup_expired(self) -> int:
        """Drop every expired entry now. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired_at(now)]
            for key in expired:
                del self._entries[key]
                self._stats.record_expiration()
            return len(expired)

    def _live_entry(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired_at(self._clock()):
            del self._entries[key]
            self._stats.record_expiration()
            return None
        return entry
