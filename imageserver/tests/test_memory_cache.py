"""Tests for MemoryCache."""

import threading

import pytest

from imageserver.memory_cache import CacheEntryOptions, CachePriority, MemoryCache


class FakeClock:
    """Manually advanced clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return MemoryCache(clock=clock)


class TestMemoryCache:
    """Tests for MemoryCache class."""

    def test_set_and_get(self, cache):
        """Test a stored value is returned."""
        cache.set('a', 1)

        assert cache.try_get('a') == (1, True)
        assert cache.get('a') == 1
        assert 'a' in cache

    def test_miss(self, cache):
        """Test missing keys report not found."""
        assert cache.try_get('missing') == (None, False)
        assert cache.get('missing', 'default') == 'default'

    def test_falsy_values_are_hits(self, cache):
        """Test a cached False is distinguishable from a miss."""
        cache.set('flag', False)

        assert cache.try_get('flag') == (False, True)

    def test_absolute_expiration(self, cache, clock):
        """Test absolute entries expire regardless of reads."""
        cache.set('a', 1, CacheEntryOptions(absolute_seconds=120))

        clock.advance(100)
        assert cache.get('a') == 1
        clock.advance(20)
        assert cache.try_get('a') == (None, False)
        assert len(cache) == 0

    def test_sliding_expiration_renewed_by_reads(self, cache, clock):
        """Test reads push sliding expiration forward."""
        cache.set('a', 1, CacheEntryOptions(sliding_seconds=600))

        for _ in range(3):
            clock.advance(500)
            assert cache.get('a') == 1

        clock.advance(600)
        assert cache.try_get('a') == (None, False)

    def test_no_expiration(self, cache, clock):
        """Test entries without expiration persist."""
        cache.set('a', 1)
        clock.advance(10 ** 6)

        assert cache.get('a') == 1

    def test_overwrite_resets_entry(self, cache, clock):
        """Test set replaces the value and its lifetime."""
        cache.set('a', 1, CacheEntryOptions(absolute_seconds=10))
        clock.advance(9)
        cache.set('a', 2, CacheEntryOptions(absolute_seconds=10))
        clock.advance(5)

        assert cache.get('a') == 2

    def test_remove(self, cache):
        """Test remove reports whether an entry existed."""
        cache.set('a', 1)

        assert cache.remove('a') is True
        assert cache.remove('a') is False
        assert 'a' not in cache

    def test_clear(self, cache):
        """Test clear empties the cache."""
        cache.set('a', 1)
        cache.set('b', 2)
        cache.clear()

        assert len(cache) == 0


class TestCompaction:
    """Tests for size-limited eviction."""

    def test_low_priority_evicted_first(self, clock):
        """Test low priority entries go before normal and high ones."""
        cache = MemoryCache(size_limit=2, clock=clock)
        cache.set('high', 1, CacheEntryOptions(priority=CachePriority.HIGH))
        clock.advance(1)
        cache.set('low', 2, CacheEntryOptions(priority=CachePriority.LOW))
        clock.advance(1)
        cache.set('normal', 3)

        assert 'low' not in cache
        assert 'high' in cache
        assert 'normal' in cache

    def test_least_recently_used_within_priority(self, clock):
        """Test ties on priority evict the least recently used entry."""
        cache = MemoryCache(size_limit=2, clock=clock)
        cache.set('a', 1)
        clock.advance(1)
        cache.set('b', 2)
        clock.advance(1)
        cache.get('a')
        clock.advance(1)
        cache.set('c', 3)

        assert 'b' not in cache
        assert 'a' in cache
        assert 'c' in cache

    def test_expired_entries_dropped_first(self, clock):
        """Test expired entries are removed before live ones are evicted."""
        cache = MemoryCache(size_limit=2, clock=clock)
        cache.set('high', 1, CacheEntryOptions(priority=CachePriority.HIGH))
        cache.set('stale', 2, CacheEntryOptions(absolute_seconds=5, priority=CachePriority.HIGH))
        clock.advance(10)
        cache.set('new', 3, CacheEntryOptions(priority=CachePriority.LOW))

        assert len(cache) == 2
        assert 'high' in cache
        assert 'new' in cache


class TestConcurrency:
    """Tests for concurrent access."""

    def test_concurrent_writers(self):
        """Test concurrent set/get/remove calls leave the cache consistent."""
        cache = MemoryCache(size_limit=50)
        errors = []

        def worker(n):
            try:
                for i in range(200):
                    key = f"{n}:{i % 20}"
                    cache.set(key, i)
                    cache.try_get(key)
                    if i % 7 == 0:
                        cache.remove(key)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(cache) <= 50
