"""Tests for the TTL policy, cache-key normalisation and the response cache."""

import os

import pytest

from xtreamweb.database import DB_NAME, Database
from xtreamweb.services.cache_service import CacheService, generate_cache_key
from xtreamweb.services.ttl_policy import (
    CATEGORIES_TTL,
    SERIES_INFO_TTL,
    SERIES_TTL,
    STREAMS_TTL,
    get_ttl,
)

BASE = "http://provider.example.com/player_api.php?username=u&password=p"
HOUR_MS = 60 * 60 * 1000


class FakeClock:
    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, hours: float = 0) -> None:
        self.now += int(hours * HOUR_MS)


@pytest.fixture()
def db(tmp_path):
    database = Database(os.path.join(tmp_path, DB_NAME))
    database.init()
    yield database
    database.close()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def cache(db, clock):
    return CacheService(db, clock=clock)


# ---------------------------------------------------------------------------
# TTL policy
# ---------------------------------------------------------------------------

class TestTtlPolicy:

    def test_categories_are_long_lived(self):
        assert get_ttl(f"{BASE}&action=get_vod_categories") == CATEGORIES_TTL
        assert get_ttl(f"{BASE}&action=get_series_categories") == CATEGORIES_TTL
        assert CATEGORIES_TTL == 24 * 3600

    def test_categories_win_over_other_markers(self):
        key = f"{BASE}&action=get_series_categories&extra=get_series_info"
        assert get_ttl(key) == CATEGORIES_TTL

    def test_series_info_before_series_listing(self):
        assert get_ttl(f"{BASE}&action=get_series_info&series_id=7") == SERIES_INFO_TTL
        assert SERIES_INFO_TTL == 6 * 3600

    def test_series_listing(self):
        assert get_ttl(f"{BASE}&action=get_series") == SERIES_TTL
        assert SERIES_TTL == 12 * 3600

    def test_default_is_streams_ttl(self):
        assert get_ttl(f"{BASE}&action=get_vod_streams") == STREAMS_TTL
        assert get_ttl("anything-else") == STREAMS_TTL


# ---------------------------------------------------------------------------
# Cache key
# ---------------------------------------------------------------------------

class TestGenerateCacheKey:

    def test_equivalent_encodings_collapse(self):
        a = generate_cache_key("HTTP://Provider.Example.com:80/player_api.php?action=get_series&username=u")
        b = generate_cache_key("http://provider.example.com/player_api.php?username=u&action=get%5Fseries")
        assert a == b

    def test_space_encodings_collapse(self):
        a = generate_cache_key("http://h.example/p?q=a+b")
        b = generate_cache_key("http://h.example/p?q=a%20b")
        assert a == b

    def test_fragment_dropped_and_path_defaulted(self):
        assert generate_cache_key("http://h.example#frag") == "http://h.example/"

    def test_non_default_port_kept(self):
        assert generate_cache_key("http://h.example:8080/x").startswith("http://h.example:8080/")

    def test_key_keeps_action_marker(self):
        key = generate_cache_key(f"{BASE}&action=get_vod_categories")
        assert "get_vod_categories" in key

    @pytest.mark.parametrize("bad", ["", "   ", "not a url", "/relative/path", "http://host:99999/x", "http://[bad"])
    def test_malformed_urls_rejected(self, bad):
        with pytest.raises(ValueError):
            generate_cache_key(bad)


# ---------------------------------------------------------------------------
# Response cache
# ---------------------------------------------------------------------------

def test_set_then_get(cache):
    cache.set("k", [{"a": 1}])
    assert cache.get("k") == [{"a": 1}]


def test_get_missing_returns_none(cache):
    assert cache.get("nope") is None


def test_hit_updates_statistics(cache, clock):
    cache.set("k", {"x": 1})
    clock.advance(1)
    cache.get("k")
    cache.get("k")
    entry = cache.get_entry("k")
    assert entry.hit_count == 2
    assert entry.last_accessed_at == clock.now
    assert cache.stats().total_hits == 2


def test_get_entry_has_no_side_effects(cache):
    cache.set("k", 1)
    cache.get_entry("k")
    assert cache.get_entry("k").hit_count == 0


def test_set_overwrites_and_resets_hits(cache, clock):
    cache.set("k", "old")
    cache.get("k")
    clock.advance(1)
    cache.set("k", "new")
    entry = cache.get_entry("k")
    assert entry.value == "new"
    assert entry.hit_count == 0
    assert entry.created_at == clock.now
    assert cache.stats().total_entries == 1


def test_expires_at_follows_ttl(cache, clock):
    key = f"{BASE}&action=get_vod_categories"
    cache.set(key, [])
    entry = cache.get_entry(key)
    assert entry.expires_at - entry.created_at == CATEGORIES_TTL * 1000
    assert entry.expires_at > entry.created_at


def test_expired_entry_removed_on_get(cache, clock):
    key = f"{BASE}&action=get_vod_streams"
    cache.set(key, [1, 2, 3])
    before = cache.stats().total_entries
    clock.advance(13)
    assert cache.get(key) is None
    assert cache.stats().total_entries == before - 1
    assert cache.get(key) is None


def test_entry_valid_until_expiry(cache, clock):
    key = f"{BASE}&action=get_series_info&series_id=1"
    cache.set(key, {"info": {}})
    clock.advance(6)
    assert cache.get(key) == {"info": {}}
    clock.advance(0.001)
    assert cache.get(key) is None


def test_none_is_not_cached(cache):
    cache.set("k", None)
    assert cache.get_entry("k") is None


def test_clear(cache):
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.clear() == 2
    assert cache.stats().total_entries == 0


def test_clear_expired_only_removes_stale(cache, clock):
    cache.set(f"{BASE}&action=get_series_info", {})      # 6h
    cache.set(f"{BASE}&action=get_vod_categories", [])   # 24h
    clock.advance(7)
    assert cache.clear_expired() == 1
    assert cache.stats().total_entries == 1


def test_invalidate_pattern_is_case_sensitive_substring(cache):
    cache.set(f"{BASE}&action=get_vod_streams", [])
    cache.set(f"{BASE}&action=get_vod_streams&category_id=3", [])
    cache.set(f"{BASE}&action=get_series", [])
    assert cache.invalidate_pattern("GET_VOD_STREAMS") == 0
    assert cache.invalidate_pattern("get_vod_streams") == 2
    assert cache.stats().total_entries == 1


def test_invalidate_pattern_treats_wildcards_literally(cache):
    cache.set("http://h/a_b", 1)
    cache.set("http://h/axb", 1)
    assert cache.invalidate_pattern("a_b") == 1
    assert cache.invalidate_pattern("%") == 0


def test_invalidate_empty_pattern_rejected(cache):
    with pytest.raises(ValueError):
        cache.invalidate_pattern("")


def test_stats(cache, clock):
    cache.set(f"{BASE}&action=get_series_info", {"a": "é"})
    cache.set(f"{BASE}&action=get_vod_categories", [1])
    clock.advance(7)
    stats = cache.stats()
    assert stats.total_entries == 2
    assert stats.expired_entries == 1
    assert stats.total_entries >= stats.expired_entries
    # '{"a":"é"}' is 10 bytes in UTF-8, '[1]' is 3
    assert stats.total_size_bytes == 13


def test_stats_serialise_camel_case(cache):
    data = cache.stats().model_dump(by_alias=True)
    assert set(data) == {"totalEntries", "expiredEntries", "totalHits", "totalSizeBytes"}


# ---------------------------------------------------------------------------
# Fault isolation
# ---------------------------------------------------------------------------

def test_storage_failure_degrades_to_no_cache(db, clock):
    cache = CacheService(db, clock=clock)
    cache.set("k", 1)
    db.close()
    assert cache.get("k") is None
    cache.set("k", 2)
    assert cache.clear() == 0
    assert cache.clear_expired() == 0
    assert cache.invalidate_pattern("k") == 0
    assert cache.stats().total_entries == 0


def test_unserialisable_value_is_ignored(cache):
    cache.set("k", {"bad": object()})
    assert cache.get("k") is None
