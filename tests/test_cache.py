from prospect_search.services.cache import ResponseCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestResponseCache:
    def setup_method(self):
        self.clock = FakeClock()
        self.cache = ResponseCache(ttl=60, clock=self.clock)

    def test_hit_before_expiry(self):
        self.cache.set("k", {"data": []})
        self.clock.now += 59
        assert self.cache.get("k") == {"data": []}

    def test_miss_after_expiry(self):
        self.cache.set("k", 1)
        self.clock.now += 60
        assert self.cache.get("k") is None
        assert len(self.cache) == 0

    def test_expired_entries_purged_on_write(self):
        self.cache.set("old", 1)
        self.clock.now += 120
        self.cache.set("new", 2)
        assert len(self.cache) == 1

    def test_disabled_with_zero_ttl(self):
        cache = ResponseCache(ttl=0, clock=self.clock)
        cache.set("k", 1)
        assert cache.get("k") is None

    def test_clear(self):
        self.cache.set("k", 1)
        self.cache.clear()
        assert self.cache.get("k") is None
