"""Tests for TTLCache — driven by a fake clock, no sleeping."""
import sys
import os

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from linguaflow.services.ttl_cache import TTLCache, cache_key


class _Clock:
    def __init__(self):
        self.t = 0.0

    def __call__(self):
        return self.t


@pytest.fixture
def clock():
    return _Clock()


@pytest.fixture
def cache(clock):
    return TTLCache(ttl_seconds=300, clock=clock)


def test_hit_within_ttl(cache, clock):
    cache.set("questions:1", ["q"])
    clock.t = 299.9
    assert cache.get("questions:1") == (["q"], True)


def test_miss_at_ttl_boundary(cache, clock):
    cache.set("questions:1", ["q"])
    clock.t = 300
    assert cache.get("questions:1") == (None, False)


def test_cached_none_is_a_hit(cache):
    cache.set("k", None)
    assert cache.get("k") == (None, True)


def test_set_purges_expired_entries(cache, clock):
    cache.set("a", 1)
    clock.t = 400
    cache.set("b", 2)
    assert len(cache) == 1


def test_invalidate_key_does_not_touch_sibling_ids(cache):
    cache.set(cache_key("questions", 1), "one")
    cache.set(cache_key("questions", 10), "ten")
    cache.set(cache_key("questions", 1, "page2"), "one-p2")
    assert cache.invalidate("questions:1") == 2
    assert cache.get("questions:10") == ("ten", True)


def test_invalidate_namespace_leaves_other_namespace(cache):
    cache.set("questions:1", "q")
    cache.set("topics:s1", "t")
    cache.invalidate("questions:")
    assert cache.get("questions:1") == (None, False)
    assert cache.get("topics:s1") == ("t", True)


def test_get_or_load(cache, clock):
    calls = []

    def loader():
        calls.append(1)
        return len(calls)

    assert cache.get_or_load("k", loader) == 1
    assert cache.get_or_load("k", loader) == 1
    clock.t = 301
    assert cache.get_or_load("k", loader) == 2


def test_loader_errors_are_not_cached(cache):
    def boom():
        raise RuntimeError("db down")

    with pytest.raises(RuntimeError):
        cache.get_or_load("k", boom)
    assert cache.get("k") == (None, False)


def test_stats_and_clear(cache, clock):
    cache.set("a", 1)
    clock.t = 500
    assert cache.stats() == {"entries": 1, "expired": 1, "ttl_seconds": 300}
    cache.clear()
    assert len(cache) == 0


def test_ttl_must_be_positive():
    with pytest.raises(ValueError):
        TTLCache(ttl_seconds=0)
