"""
Tests for the response cache.
"""
import pytest

from usage_monitor.services.cache import ResponseCache, get_or_compute, safe_clear


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class BrokenCache(ResponseCache):
    def get(self, key, default=None):
        raise RuntimeError("cache backend down")

    def set(self, key, value):
        raise RuntimeError("cache backend down")

    def clear(self):
        raise RuntimeError("cache backend down")


class TestResponseCache:
    def test_hit_within_ttl_and_expiry(self):
        clock = FakeClock()
        cache = ResponseCache(ttl_seconds=30, max_entries=10, clock=clock)
        cache.set("k", "v")
        clock.now += 29
        assert cache.get("k") == "v"
        clock.now += 1
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_oldest_insertion_evicted_first(self):
        cache = ResponseCache(ttl_seconds=30, max_entries=2, clock=FakeClock())
        cache.set("a", 1)
        cache.set("b", 2)
        # A read does not refresh position
        assert cache.get("a") == 1
        cache.set("c", 3)
        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3

    def test_reset_key_counts_as_new_insertion(self):
        cache = ResponseCache(ttl_seconds=30, max_entries=2, clock=FakeClock())
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)
        cache.set("c", 3)
        assert cache.get("b") is None
        assert cache.get("a") == 10

    def test_clear(self):
        cache = ResponseCache()
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.clear() == 2
        assert len(cache) == 0

    def test_make_key_is_order_independent(self):
        assert ResponseCache.make_key("overview", {"a": 1, "b": 2}) == ResponseCache.make_key("overview", {"b": 2, "a": 1})
        assert ResponseCache.make_key("overview", {"a": 1}) != ResponseCache.make_key("explore", {"a": 1})

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            ResponseCache(ttl_seconds=0)
        with pytest.raises(ValueError):
            ResponseCache(max_entries=0)


class TestGetOrCompute:
    def test_computes_once_within_ttl(self):
        cache = ResponseCache()
        calls = []

        def compute():
            calls.append(1)
            return {"value": len(calls)}

        assert get_or_compute(cache, "k", compute) == {"value": 1}
        assert get_or_compute(cache, "k", compute) == {"value": 1}
        assert len(calls) == 1

    def test_cache_faults_degrade_to_recompute(self):
        cache = BrokenCache()
        assert get_or_compute(cache, "k", lambda: 42) == 42
        assert safe_clear(cache) == 0

    def test_compute_errors_propagate_and_are_not_stored(self):
        cache = ResponseCache()

        def failing():
            raise RuntimeError("database down")

        with pytest.raises(RuntimeError):
            get_or_compute(cache, "k", failing)
        assert len(cache) == 0

    def test_without_cache(self):
        assert get_or_compute(None, "k", lambda: "fresh") == "fresh"
        assert safe_clear(None) == 0
