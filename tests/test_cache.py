from cache import TtlCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestTtlCache:
    def test_hit_before_expiry(self):
        clock = FakeClock()
        cache = TtlCache(60, clock=clock)
        cache.set("k", {"v": 1})
        clock.advance(59.9)
        assert cache.get("k") == {"v": 1}

    def test_expires_after_ttl(self):
        clock = FakeClock()
        cache = TtlCache(60, clock=clock)
        cache.set("k", "value")
        clock.advance(60)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_set_refreshes_timestamp(self):
        clock = FakeClock()
        cache = TtlCache(10, clock=clock)
        cache.set("k", "old")
        clock.advance(8)
        cache.set("k", "new")
        clock.advance(8)
        assert cache.get("k") == "new"

    def test_evicts_least_recently_used(self):
        cache = TtlCache(60, max_size=2, clock=FakeClock())
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.get("a") == 1
        cache.set("c", 3)
        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("c") == 3

    def test_zero_ttl_never_hits(self):
        cache = TtlCache(0, clock=FakeClock())
        cache.set("k", 1)
        assert cache.get("k") is None

    def test_invalidate_and_clear(self):
        cache = TtlCache(60, clock=FakeClock())
        cache.set("a", 1)
        cache.set("b", 2)
        cache.invalidate("a")
        assert cache.get("a") is None
        cache.clear()
        assert len(cache) == 0

    def test_missing_key(self):
        assert TtlCache(60).get("nope") is None
