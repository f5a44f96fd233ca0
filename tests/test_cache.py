"""Tests for the TTL cache."""

from theorogram.services.cache import MemoryCache, theory_key


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_get_before_and_after_expiry():
    clock = FakeClock()
    cache = MemoryCache(default_ttl=60, clock=clock)
    cache.set("theory:1", "value")

    clock.now += 59
    assert cache.get("theory:1") == "value"

    clock.now += 1
    assert cache.get("theory:1") is None


def test_per_entry_ttl_overrides_default():
    clock = FakeClock()
    cache = MemoryCache(default_ttl=60, clock=clock)
    cache.set("short", 1, ttl=5)

    clock.now += 10
    assert cache.get("short") is None


def test_delete_and_clear():
    cache = MemoryCache(default_ttl=60)
    cache.set("a", 1)
    cache.set("b", 2)

    cache.delete("a")
    cache.delete("missing")
    assert cache.get("a") is None
    assert cache.get("b") == 2

    cache.clear()
    assert cache.get("b") is None


def test_invalidate_pattern():
    cache = MemoryCache(default_ttl=60)
    cache.set("theories:list:20:0", [])
    cache.set("theories:list:20:20", [])
    cache.set("user:ada", {})

    assert cache.invalidate_pattern("theories:list") == 2
    assert cache.get("user:ada") == {}


def test_invalidate_theory_drops_item_and_lists():
    cache = MemoryCache(default_ttl=60)
    cache.set(theory_key("t1"), "t1")
    cache.set(theory_key("t2"), "t2")
    cache.set("theories:list:20:0", ["t1"])

    cache.invalidate_theory("t1")

    assert cache.get(theory_key("t1")) is None
    assert cache.get(theory_key("t2")) == "t2"
    assert cache.get("theories:list:20:0") is None
