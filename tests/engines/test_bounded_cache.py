"""Tests for BoundedCache (instance-owned LRU)."""

import pytest

from inventory_engines.cache import BoundedCache


def test_least_recently_used_entry_is_evicted():
    cache = BoundedCache(max_size=2)
    cache.put("a", 1)
    cache.put("b", 2)
    assert cache.get("a") == 1  # "b" is now least recent
    cache.put("c", 3)

    assert "b" not in cache
    assert "a" in cache and "c" in cache
    assert cache.stats().evictions == 1
    assert len(cache) == 2


def test_hit_and_miss_counters():
    cache = BoundedCache(max_size=4)
    cache.get("missing")
    cache.put("k", "v")
    cache.get("k")
    cache.get("k")

    stats = cache.stats()
    assert (stats.hits, stats.misses) == (2, 1)
    assert stats.hit_rate == pytest.approx(2 / 3)


def test_get_or_compute_runs_once():
    cache = BoundedCache(max_size=4)
    calls = []

    def compute():
        calls.append(1)
        return 42

    assert cache.get_or_compute("x", compute) == 42
    assert cache.get_or_compute("x", compute) == 42
    assert len(calls) == 1


def test_cached_none_is_still_a_hit():
    cache = BoundedCache(max_size=4)
    cache.put("nothing", None)

    assert cache.get_or_compute("nothing", lambda: "computed") is None


def test_zero_size_disables_storage():
    cache = BoundedCache(max_size=0)
    cache.put("a", 1)

    assert len(cache) == 0
    assert cache.get("a") is None


def test_clear_empties_cache():
    cache = BoundedCache(max_size=4)
    cache.put("a", 1)
    cache.clear()

    assert len(cache) == 0


def test_negative_size_rejected():
    with pytest.raises(ValueError):
        BoundedCache(max_size=-1)


def test_instances_are_independent():
    first, second = BoundedCache(), BoundedCache()
    first.put("shared", 1)

    assert "shared" not in second
