"""
Cache Module - Caching layer for queries and ticket-system calls.

Provides:
- CacheBackend: Abstract interface for cache storage
- MemoryCache: In-memory LRU cache with TTL support
- RedisCache: Redis-based cache shared between workers
- ResultCache: Cache-aside with key prefixing and tag invalidation

Example:
    >>> from ttsync.adapters.cache import MemoryCache, ResultCache
    >>>
    >>> cache = ResultCache(MemoryCache(max_size=1000), prefix="query_")
    >>> tickets = cache.remember("project_1_subtickets", 60, fetch)
"""

from ttsync.core.ports.config_provider import CacheBackendType, CacheConfig

from .backend import CacheBackend, CacheEntry, CacheStats
from .memory import MemoryCache
from .result_cache import ResultCache


# Redis cache is optional - import only if redis is available
try:
    from .redis_cache import RedisCache, create_redis_cache

    _HAS_REDIS = True
except ImportError:
    _HAS_REDIS = False
    RedisCache = None  # type: ignore[misc,assignment]
    create_redis_cache = None  # type: ignore[assignment]

__all__ = [
    "CacheBackend",
    "CacheEntry",
    "CacheStats",
    "MemoryCache",
    "RedisCache",
    "ResultCache",
    "create_backend",
    "create_redis_cache",
    "has_redis_support",
]


def has_redis_support() -> bool:
    """Check if Redis cache support is available."""
    return _HAS_REDIS


def create_backend(config: CacheConfig) -> CacheBackend:
    """
    Build the configured backing store.

    Raises:
        ImportError: If the redis backend is requested but not installed.
    """
    if config.backend is CacheBackendType.REDIS:
        if not _HAS_REDIS:
            raise ImportError(
                "Redis support not installed. Install with: pip install ttsync[redis]"
            )
        return create_redis_cache(
            url=config.redis_url,
            default_ttl=config.default_ttl,
            socket_timeout=config.redis_timeout,
        )
    return MemoryCache(max_size=config.max_size, default_ttl=config.default_ttl)
