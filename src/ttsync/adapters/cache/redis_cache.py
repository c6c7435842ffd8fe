"""
Redis Cache - Redis-backed cache for deployments with several workers.

Values are stored as JSON. Every Redis call is bounded by the client's socket
timeout; connection problems and timeouts surface as
ClassifiedError(kind=CACHE_BACKEND_ERROR), never as misses.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis

from ttsync.core.exceptions import ClassifiedError

from .backend import CacheBackend, CacheStats


logger = logging.getLogger("RedisCache")

_BACKEND_ERRORS = (redis.RedisError, OSError)


class RedisCache(CacheBackend):
    """
    Cache backend on top of a redis-py client.

    Keys are namespaced with ``key_prefix`` inside Redis; callers never see
    the prefix.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        key_prefix: str = "ttsync:",
        default_ttl: float | None = 300.0,
    ):
        self._redis = redis_client
        self._key_prefix = key_prefix
        self._default_ttl = default_ttl
        self._stats = CacheStats()

    @property
    def name(self) -> str:
        return "redis"

    def get(self, key: str, default: Any = None) -> Any:
        try:
            raw = self._redis.get(self._full_key(key))
        except _BACKEND_ERRORS as e:
            raise ClassifiedError.cache_backend_error(f"Redis GET failed for {key}", cause=e) from e

        if raw is None:
            self._stats.record_miss()
            return default

        self._stats.record_hit()
        return self._deserialize(key, raw)

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        effective_ttl = self._default_ttl if ttl is None else ttl
        payload = self._serialize(key, value)

        try:
            if effective_ttl is not None:
                # Redis expiry granularity is one second
                self._redis.setex(self._full_key(key), max(1, int(round(effective_ttl))), payload)
            else:
                self._redis.set(self._full_key(key), payload)
        except _BACKEND_ERRORS as e:
            raise ClassifiedError.cache_backend_error(f"Redis SET failed for {key}", cause=e) from e

        self._stats.record_set()

    def delete(self, key: str) -> bool:
        try:
            deleted = self._redis.delete(self._full_key(key))
        except _BACKEND_ERRORS as e:
            raise ClassifiedError.cache_backend_error(
                f"Redis DELETE failed for {key}", cause=e
            ) from e

        if deleted:
            self._stats.record_delete()
        return bool(deleted)

    def exists(self, key: str) -> bool:
        try:
            return bool(self._redis.exists(self._full_key(key)))
        except _BACKEND_ERRORS as e:
            raise ClassifiedError.cache_backend_error(
                f"Redis EXISTS failed for {key}", cause=e
            ) from e

    def clear(self) -> int:
        """Delete every key under this cache's prefix (not the whole database)."""
        keys = self._scan_full(f"{self._key_prefix}*")
        if not keys:
            return 0
        try:
            return int(self._redis.delete(*keys))
        except _BACKEND_ERRORS as e:
            raise ClassifiedError.cache_backend_error("Redis clear failed", cause=e) from e

    @property
    def size(self) -> int:
        return len(self._scan_full(f"{self._key_prefix}*"))

    def get_stats(self) -> CacheStats:
        return self._stats

    @property
    def supports_scan(self) -> bool:
        return True

    def scan(self, pattern: str) -> list[str]:
        prefix_length = len(self._key_prefix)
        return [key[prefix_length:] for key in self._scan_full(self._full_key(pattern))]

    def ping(self) -> bool:
        """Health check; False instead of raising."""
        try:
            return bool(self._redis.ping())
        except _BACKEND_ERRORS as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    # -------------------------------------------------------------------------
    # Private Methods
    # -------------------------------------------------------------------------

    def _full_key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    def _scan_full(self, pattern: str) -> list[str]:
        try:
            return [
                key.decode("utf-8") if isinstance(key, bytes) else key
                for key in self._redis.scan_iter(match=pattern)
            ]
        except _BACKEND_ERRORS as e:
            raise ClassifiedError.cache_backend_error(
                f"Redis SCAN failed for {pattern}", cause=e
            ) from e

    def _serialize(self, key: str, value: Any) -> str:
        try:
            return json.dumps(value)
        except (TypeError, ValueError) as e:
            raise ClassifiedError.cache_backend_error(
                f"Value for {key} is not JSON serializable", cause=e
            ) from e

    def _deserialize(self, key: str, raw: bytes | str) -> Any:
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            raise ClassifiedError.cache_backend_error(
                f"Corrupt cache payload for {key}", cause=e
            ) from e


def create_redis_cache(
    url: str = "redis://localhost:6379/0",
    key_prefix: str = "ttsync:",
    default_ttl: float | None = 300.0,
    socket_timeout: float = 5.0,
) -> RedisCache:
    """
    Create a RedisCache from a connection URL.

    Args:
        url: redis:// or rediss:// URL.
        key_prefix: Namespace for every key this cache writes.
        default_ttl: TTL for set() calls without one.
        socket_timeout: Bound for connect and every command, in seconds.
    """
    client = redis.Redis.from_url(
        url,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
    )
    return RedisCache(redis_client=client, key_prefix=key_prefix, default_ttl=default_ttl)
