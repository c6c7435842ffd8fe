"""
Result Cache - Cache-aside layer with tag-based group invalidation.

Sits in front of expensive local queries and remote calls. Every key is
namespaced with a fixed prefix so unrelated users of the same backend cannot
collide.

The tag index maps a tag to the set of prefixed keys registered under it. It
is process-local, starts empty and is never persisted. A key is listed under
a tag only while the backend still holds the entry:

- tag() refuses keys the backend does not hold
- delete(), invalidate_tag(), invalidate_entity() and clear() remove
  memberships together with the entries
- a read that finds an entry gone prunes the key from every tag
"""

from __future__ import annotations

import fnmatch
import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from ttsync.core.result import Err, Ok, Result

from .backend import CacheBackend


T = TypeVar("T")

logger = logging.getLogger("ResultCache")

_MISSING = object()


class ResultCache:
    """
    Read-through cache with tag index.

    Example:
        >>> cache = ResultCache(MemoryCache())
        >>> cache.remember("project_1_subtickets", 60, lambda: ["OPS-1"])
        ['OPS-1']
        >>> cache.tag("project_1_subtickets", "project_1")
        >>> cache.invalidate_tag("project_1")
        1
    """

    DEFAULT_PREFIX = "query_"
    DEFAULT_TTL = 300.0  # 5 minutes

    def __init__(
        self,
        backend: CacheBackend,
        prefix: str = DEFAULT_PREFIX,
        default_ttl: float = DEFAULT_TTL,
    ):
        """
        Initialize the cache.

        Args:
            backend: Backing key/value store.
            prefix: Namespace prepended to every key.
            default_ttl: TTL used by warm_up() and by set() without one.
        """
        self._backend = backend
        self._prefix = prefix
        self._default_ttl = default_ttl
        self._tags: dict[str, set[str]] = {}
        self._tags_lock = threading.Lock()

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    @property
    def prefix(self) -> str:
        return self._prefix

    # -------------------------------------------------------------------------
    # Read-through
    # -------------------------------------------------------------------------

    def remember(self, key: str, ttl: float | None, compute: Callable[[], T]) -> T:
        """
        Return the cached value for ``key``, computing and storing it on a miss.

        ``compute`` runs at most once per call. If it raises, the exception
        propagates and nothing is stored. Concurrent callers may compute the
        same key twice; the last write wins.

        Args:
            key: Unprefixed cache key.
            ttl: Lifetime in seconds (None = default TTL).
            compute: Zero-argument producer of the value.
        """
        cache_key = self._cache_key(key)
        value = self._backend.get(cache_key, _MISSING)

        if value is not _MISSING:
            logger.debug(f"Cache hit: {cache_key}")
            return value  # type: ignore[no-any-return]

        logger.debug(f"Cache miss: {cache_key}")
        self._prune(cache_key)

        value = compute()
        self._backend.set(cache_key, value, ttl=self._ttl(ttl))

        logger.debug(f"Cache set: {cache_key}")
        return value

    def warm_up(self, computations: Mapping[str, Callable[[], Any]]) -> dict[str, Result]:
        """
        Populate several keys, each independently of the others.

        Returns:
            Per key, Ok(value) or Err(exception). One failure never stops the
            remaining computations.
        """
        outcomes: dict[str, Result] = {}
        for key, compute in computations.items():
            try:
                outcomes[key] = Ok(self.remember(key, self._default_ttl, compute))
            except Exception as e:
                logger.warning(f"Cache warm-up failed for {key}: {e}")
                outcomes[key] = Err(e)

        logger.debug(f"Cache warmed up: {len(outcomes)} keys")
        return outcomes

    # -------------------------------------------------------------------------
    # Primitives
    # -------------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        cache_key = self._cache_key(key)
        value = self._backend.get(cache_key, _MISSING)

        if value is _MISSING:
            logger.debug(f"Cache miss: {cache_key}")
            self._prune(cache_key)
            return default

        logger.debug(f"Cache hit: {cache_key}")
        return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        cache_key = self._cache_key(key)
        self._backend.set(cache_key, value, ttl=self._ttl(ttl))
        logger.debug(f"Cache set: {cache_key}")

    def has(self, key: str) -> bool:
        cache_key = self._cache_key(key)
        if self._backend.exists(cache_key):
            return True
        self._prune(cache_key)
        return False

    def delete(self, key: str) -> bool:
        cache_key = self._cache_key(key)
        deleted = self._delete_keys([cache_key])
        logger.debug(f"Cache delete: {cache_key}")
        return deleted > 0

    # -------------------------------------------------------------------------
    # Tags and invalidation
    # -------------------------------------------------------------------------

    def tag(self, key: str, *tags: str) -> None:
        """
        Register ``key`` under each tag. Registering twice is a no-op.

        Keys the backend does not hold are not registered.
        """
        cache_key = self._cache_key(key)
        if not self._backend.exists(cache_key):
            logger.debug(f"Not tagging absent key: {cache_key}")
            return

        with self._tags_lock:
            for tag in tags:
                self._tags.setdefault(tag, set()).add(cache_key)

        logger.debug(f"Cache tagged: {cache_key} -> {', '.join(tags)}")

    def tags_for(self, key: str) -> set[str]:
        """Tags ``key`` is currently registered under."""
        cache_key = self._cache_key(key)
        with self._tags_lock:
            return {tag for tag, members in self._tags.items() if cache_key in members}

    def invalidate_tag(self, tag: str) -> int:
        """
        Delete every entry registered under ``tag`` and forget the tag.

        Returns:
            Number of backend entries deleted. Unknown tags return 0.
        """
        with self._tags_lock:
            members = set(self._tags.get(tag, ()))
        if not members:
            with self._tags_lock:
                self._tags.pop(tag, None)
            return 0

        count = self._delete_keys(members)
        with self._tags_lock:
            self._tags.pop(tag, None)

        logger.debug(f"Tag invalidated: {tag} ({count} entries)")
        return count

    def invalidate_entity(self, entity_type: type | str, entity_id: int | str) -> int:
        """
        Delete every known entry belonging to one entity.

        Matches keys of the form ``<entity>_<id>_*`` where ``<entity>`` is the
        lower-cased class name. Keys are found through the tag index and, on
        backends that can scan, through the backend too; keys that were never
        tagged are unreachable on backends that cannot.
        """
        pattern = f"{self._entity_prefix(entity_type)}_{entity_id}_*"
        count = self._clear_by_pattern(pattern)
        logger.debug(f"Entity cache invalidated: {pattern} ({count} entries)")
        return count

    def clear(self, pattern: str | None = None) -> int:
        """
        Wipe the cache, or only keys matching a glob pattern.

        Args:
            pattern: Unprefixed glob. None wipes the whole backend.
        """
        if pattern is None:
            count = self._backend.clear()
            with self._tags_lock:
                self._tags.clear()
            logger.debug("Cache cleared")
            return count

        return self._clear_by_pattern(pattern)

    def get_stats(self) -> dict[str, Any]:
        with self._tags_lock:
            tags = sorted(self._tags)
        return {
            "backend": self._backend.name,
            "prefix": self._prefix,
            "tags": tags,
            "tag_count": len(tags),
            "size": self._backend.size,
            **self._backend.get_stats().to_dict(),
        }

    # -------------------------------------------------------------------------
    # Private Methods
    # -------------------------------------------------------------------------

    def _cache_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _ttl(self, ttl: float | None) -> float:
        return self._default_ttl if ttl is None else ttl

    @staticmethod
    def _entity_prefix(entity_type: type | str) -> str:
        name = entity_type if isinstance(entity_type, str) else entity_type.__name__
        return name.rsplit(".", 1)[-1].lower()

    def _clear_by_pattern(self, pattern: str) -> int:
        full_pattern = self._cache_key(pattern)

        with self._tags_lock:
            known = {
                key
                for members in self._tags.values()
                for key in members
                if fnmatch.fnmatchcase(key, full_pattern)
            }
        if self._backend.supports_scan:
            known.update(self._backend.scan(full_pattern))

        count = self._delete_keys(known)
        logger.debug(f"Cache cleared by pattern: {full_pattern} ({count} entries)")
        return count

    def _delete_keys(self, cache_keys: set[str] | list[str]) -> int:
        """Delete entries, then drop them from every tag (empty tags go too)."""
        count = 0
        removed: list[str] = []
        try:
            for cache_key in cache_keys:
                if self._backend.delete(cache_key):
                    count += 1
                removed.append(cache_key)
        finally:
            self._forget(removed)
        return count

    def _prune(self, cache_key: str) -> None:
        self._forget([cache_key])

    def _forget(self, cache_keys: list[str]) -> None:
        if not cache_keys:
            return
        with self._tags_lock:
            for tag in list(self._tags):
                members = self._tags[tag]
                members.difference_update(cache_keys)
                if not members:
                    del self._tags[tag]
