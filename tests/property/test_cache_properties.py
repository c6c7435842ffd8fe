"""
Property-based tests for ResultCache.

Properties:
- Cache-aside: compute runs once per key within the TTL
- Tag totality: invalidating a tag removes every key tagged with it
- Tag isolation: keys outside the tag survive
"""

from hypothesis import given
from hypothesis import strategies as st

from ttsync.adapters.cache import MemoryCache, ResultCache


# =============================================================================
# Strategies
# =============================================================================

keys = st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789_-", min_size=1, max_size=20)

key_sets = st.sets(keys, min_size=1, max_size=15)

values = st.one_of(
    st.none(),
    st.integers(),
    st.text(max_size=20),
    st.lists(st.text(max_size=10), max_size=5),
)


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def make_cache():
    clock = Clock()
    return ResultCache(MemoryCache(max_size=1000, clock=clock)), clock


# =============================================================================
# Properties
# =============================================================================


class TestCacheAsideProperties:
    """remember() computes once per key and TTL window."""

    @given(keys, values, st.floats(min_value=1, max_value=10_000))
    def test_compute_runs_once_within_ttl(self, key, value, ttl):
        cache, clock = make_cache()
        calls = []

        def compute():
            calls.append(1)
            return value

        assert cache.remember(key, ttl, compute) == value
        clock.now += ttl / 2
        assert cache.remember(key, ttl, compute) == value

        assert len(calls) == 1

    @given(keys, values, st.floats(min_value=1, max_value=10_000))
    def test_compute_runs_again_after_ttl(self, key, value, ttl):
        cache, clock = make_cache()
        calls = []

        def compute():
            calls.append(1)
            return value

        cache.remember(key, ttl, compute)
        clock.now += ttl
        cache.remember(key, ttl, compute)

        assert len(calls) == 2

    @given(keys, values)
    def test_compute_runs_again_after_delete(self, key, value):
        cache, _ = make_cache()
        calls = []

        def compute():
            calls.append(1)
            return value

        cache.remember(key, 60, compute)
        cache.delete(key)
        cache.remember(key, 60, compute)

        assert len(calls) == 2


class TestTagProperties:
    """invalidate_tag() is total over its members and nothing else."""

    @given(key_sets, key_sets)
    def test_invalidation_is_total_and_isolated(self, tagged, untagged):
        untagged = untagged - tagged
        cache, _ = make_cache()

        for key in tagged | untagged:
            cache.set(key, key)
        for key in tagged:
            cache.tag(key, "T")

        assert cache.invalidate_tag("T") == len(tagged)

        assert not any(cache.has(key) for key in tagged)
        assert all(cache.has(key) for key in untagged)
        assert cache.invalidate_tag("T") == 0
