"""Tests for the raw-result LRU cache."""

from conftest import make_metrics, make_record

from tiktok_scraper.cache import ResultCache, cache_key


class FakeClock:
    def __init__(self, now: int = 1_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class TestCacheKey:
    def test_trims_and_lowercases_search(self):
        assert cache_key("  Funny Cats ", 5) == "funny cats+5"

    def test_max_count_is_part_of_key(self):
        assert cache_key("cats", 5) != cache_key("cats", 6)


class TestResultCache:
    def test_set_and_get(self):
        cache = ResultCache()
        cache.set("a+1", [make_record("u1")], make_metrics())

        entry = cache.get("a+1")

        assert entry is not None
        assert [item.url for item in entry.items] == ["u1"]
        assert cache.get("missing") is None

    def test_evicts_least_recently_used(self):
        """Reading a key refreshes it, so the untouched one goes first."""
        cache = ResultCache(max_entries=2)
        cache.set("a", [], make_metrics())
        cache.set("b", [], make_metrics())
        cache.get("a")
        cache.set("c", [], make_metrics())

        assert cache.keys() == ["a", "c"]
        assert cache.get("b") is None

    def test_overwrite_moves_key_to_most_recent(self):
        cache = ResultCache(max_entries=2)
        cache.set("a", [], make_metrics())
        cache.set("b", [], make_metrics())
        cache.set("a", [make_record("new")], make_metrics())
        cache.set("c", [], make_metrics())

        assert cache.keys() == ["a", "c"]
        assert cache.get("a").items[0].url == "new"

    def test_zero_capacity_retains_nothing(self):
        cache = ResultCache(max_entries=0)
        cache.set("a", [], make_metrics())
        assert len(cache) == 0

    def test_ttl_boundary(self):
        clock = FakeClock(1_000)
        cache = ResultCache(ttl_ms=500, clock=clock)
        cache.set("a", [], make_metrics())

        clock.now = 1_000 + 499
        assert cache.get("a") is not None

        clock.now = 1_000 + 501
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_zero_ttl_never_expires(self):
        clock = FakeClock(0)
        cache = ResultCache(ttl_ms=0, clock=clock)
        cache.set("a", [], make_metrics())
        clock.now = 10**12
        assert cache.get("a") is not None

    def test_created_at_comes_from_clock(self):
        cache = ResultCache(clock=FakeClock(42))
        assert cache.set("a", [], make_metrics()).created_at == 42

    def test_delete_and_clear(self):
        cache = ResultCache()
        cache.set("a", [], make_metrics())
        cache.set("b", [], make_metrics())

        assert cache.delete("a") is True
        assert cache.delete("a") is False
        assert cache.clear() == 1
        assert len(cache) == 0
