"""
Cache Backend - Abstract interface for cache storage.

A backend stores plain key/value entries with an optional expiry. Tag
bookkeeping lives one level up, in ResultCache.

Backend failures (store unreachable, corrupt payload) raise
ClassifiedError(kind=CACHE_BACKEND_ERROR). A miss is never an error and an
error is never reported as a miss.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class CacheEntry:
    """A stored value plus its timing metadata."""

    value: Any
    created_at: float = field(default_factory=time.time)
    expires_at: float | None = None
    hit_count: int = 0

    def is_expired_at(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    @property
    def is_expired(self) -> bool:
        return self.is_expired_at(time.time())

    @property
    def ttl_remaining(self) -> float | None:
        """Seconds until expiry, or None for entries that never expire."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.time())

    @property
    def age(self) -> float:
        return time.time() - self.created_at

    def record_hit(self) -> None:
        self.hit_count += 1


@dataclass
class CacheStats:
    """Counters for cache activity."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    evictions: int = 0
    expirations: int = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        total = self.total_requests
        if total == 0:
            return 0.0
        return self.hits / total

    @property
    def miss_rate(self) -> float:
        total = self.total_requests
        if total == 0:
            return 0.0
        return self.misses / total

    def record_hit(self) -> None:
        self.hits += 1

    def record_miss(self) -> None:
        self.misses += 1

    def record_set(self) -> None:
        self.sets += 1

    def record_delete(self) -> None:
        self.deletes += 1

    def record_eviction(self) -> None:
        self.evictions += 1

    def record_expiration(self) -> None:
        self.expirations += 1

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.sets = 0
        self.deletes = 0
        self.evictions = 0
        self.expirations = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "total_requests": self.total_requests,
            "hit_rate": self.hit_rate,
        }


class CacheBackend(ABC):
    """
    Abstract key/value store with per-entry expiry.

    Implementations:
    - MemoryCache: in-process LRU
    - RedisCache: shared Redis instance
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short backend name for stats and logs."""
        ...

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value, or ``default`` on a miss."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a value; ``ttl`` None means the backend default."""
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete an entry. Returns True if something was deleted."""
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Whether a live (non-expired) entry exists."""
        ...

    @abstractmethod
    def clear(self) -> int:
        """Delete every entry. Returns the number deleted, if known."""
        ...

    @property
    @abstractmethod
    def size(self) -> int:
        """Number of stored entries."""
        ...

    @abstractmethod
    def get_stats(self) -> CacheStats:
        """Activity counters."""
        ...

    @property
    def supports_scan(self) -> bool:
        """Whether scan() can enumerate keys by pattern."""
        return False

    def scan(self, pattern: str) -> list[str]:
        """
        List stored keys matching a glob pattern.

        Only meaningful when ``supports_scan`` is True; other backends return
        an empty list.
        """
        return []
