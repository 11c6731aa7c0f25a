"""
TTL cache tests. The clock is injected, so nothing here sleeps.
"""
from oms.utils.response_cache import TTLCache


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class TestTTLCache:

    def test_hit_before_expiry(self):
        clock = FakeClock()
        cache = TTLCache(default_ttl=300, clock=clock)
        cache.set("shipping_methods:FR", ["m1"])

        clock.advance(299)
        assert cache.get("shipping_methods:FR") == ["m1"]

    def test_miss_at_expiry(self):
        clock = FakeClock()
        cache = TTLCache(default_ttl=300, clock=clock)
        cache.set("shipping_methods:FR", ["m1"])

        clock.advance(300)
        assert cache.get("shipping_methods:FR") is None
        assert len(cache) == 0

    def test_per_entry_ttl(self):
        clock = FakeClock()
        cache = TTLCache(default_ttl=300, clock=clock)
        cache.set("short", 1, ttl=10)
        cache.set("long", 2)

        clock.advance(11)
        assert cache.get("short") is None
        assert cache.get("long") == 2

    def test_invalidate_prefix(self):
        cache = TTLCache(clock=FakeClock())
        cache.set("shipping_methods:FR", 1)
        cache.set("shipping_methods:ALL", 2)
        cache.set("other:FR", 3)

        assert cache.invalidate("shipping_methods:") == 2
        assert cache.get("other:FR") == 3
        assert cache.get("shipping_methods:FR") is None

    def test_max_entries_evicts_expired_first(self):
        clock = FakeClock()
        cache = TTLCache(default_ttl=100, max_entries=2, clock=clock)
        cache.set("a", 1, ttl=5)
        cache.set("b", 2)
        clock.advance(6)

        cache.set("c", 3)
        assert cache.get("b") == 2
        assert cache.get("c") == 3
        assert len(cache) == 2

    def test_max_entries_evicts_soonest_to_expire(self):
        clock = FakeClock()
        cache = TTLCache(default_ttl=100, max_entries=2, clock=clock)
        cache.set("a", 1, ttl=50)
        cache.set("b", 2, ttl=80)

        cache.set("c", 3)
        assert cache.get("a") is None
        assert cache.get("b") == 2

    def test_instances_do_not_share_state(self):
        first, second = TTLCache(clock=FakeClock()), TTLCache(clock=FakeClock())
        first.set("k", 1)
        assert second.get("k") is None
