"""Unit tests for the process-local TTL cache."""

from unittest.mock import patch

from core.cache import TTLCache, all_cache_stats


def test_get_returns_value_before_expiry():
    cache = TTLCache(60, name="t")
    cache.set("k", {"v": 1})
    assert cache.get("k") == {"v": 1}
    assert cache.hits == 1


def test_missing_key_counts_as_miss():
    cache = TTLCache(60)
    assert cache.get("nope") is None
    assert cache.misses == 1


def test_expired_entry_is_evicted_on_read():
    cache = TTLCache(10)
    with patch("core.cache.time.monotonic", return_value=100.0):
        cache.set("k", "v")
    with patch("core.cache.time.monotonic", return_value=111.0):
        assert cache.get("k") is None
    assert len(cache) == 0


def test_delete_prefix_only_drops_matching_keys():
    cache = TTLCache(60)
    cache.set("user-1:*", [])
    cache.set("user-1:WORDLE", [])
    cache.set("user-2:*", [])

    assert cache.delete_prefix("user-1:") == 2
    assert cache.get("user-2:*") == []


def test_stats_shape():
    cache = TTLCache(30, name="things")
    cache.set("a", 1)
    stats = cache.stats()
    assert stats == {"name": "things", "size": 1, "ttl_seconds": 30, "hits": 0, "misses": 0}


def test_all_cache_stats_lists_named_caches():
    names = {entry["name"] for entry in all_cache_stats()}
    assert names == {"templates", "word_usage"}
