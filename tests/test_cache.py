# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for the classification result cache.

Tests: store/get/invalidate, LRU eviction, TTL expiry (injected clock),
URL normalization, CacheStats counters, cross-thread access.
"""

from __future__ import annotations

import threading

import pytest

from docdetect import ClassificationResult, Source
from docdetect.cache import CacheEntry, CacheStats, ResultCache, normalize_cache_url
from tests._fakes import FakeClock

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _result(url: str = "https://example.com/docs", **overrides) -> ClassificationResult:
    defaults = {
        "url": url,
        "is_documentation": True,
        "confidence": 0.85,
        "source": Source.URL_PATTERN,
    }
    defaults.update(overrides)
    return ClassificationResult(**defaults)


# =========================================================================
# URL normalization
# =========================================================================


class TestNormalizeCacheUrl:
    def test_lowercase_scheme_and_netloc(self):
        assert normalize_cache_url("HTTPS://Example.COM/Path") == "https://example.com/Path"

    def test_fragment_removed(self):
        assert normalize_cache_url("https://example.com/page#section") == "https://example.com/page"

    def test_query_params_sorted(self):
        assert normalize_cache_url("https://example.com/s?z=1&a=2") == "https://example.com/s?a=2&z=1"

    def test_duplicate_query_params_preserved(self):
        result = normalize_cache_url("https://example.com/s?a=1&a=2")
        assert "a=1" in result
        assert "a=2" in result

    def test_encoded_separator_not_decoded(self):
        encoded = normalize_cache_url("https://example.com/page?a=b%26c=d")
        split = normalize_cache_url("https://example.com/page?a=b&c=d")
        assert encoded == "https://example.com/page?a=b%26c=d"
        assert split == "https://example.com/page?a=b&c=d"
        assert encoded != split

    def test_percent_encoding_kept_verbatim(self):
        assert normalize_cache_url("https://example.com/s?q=a%20b&p=1") == "https://example.com/s?p=1&q=a%20b"

    def test_trailing_slash_preserved(self):
        assert normalize_cache_url("https://example.com/path/") == "https://example.com/path/"
        assert normalize_cache_url("https://example.com/path") == "https://example.com/path"

    def test_surrounding_whitespace_ignored(self):
        assert normalize_cache_url("  https://example.com/a ") == "https://example.com/a"

    def test_invalid_url_returned_as_is(self):
        assert normalize_cache_url("not a url") == "not a url"


# =========================================================================
# Entry + stats
# =========================================================================


class TestCacheEntry:
    def test_expiry_is_strictly_after_ttl(self):
        entry = CacheEntry(key="k", result=_result(), inserted_at=100.0)
        assert not entry.is_expired(now=110.0, ttl=10.0)
        assert entry.is_expired(now=110.001, ttl=10.0)


class TestCacheStats:
    def test_hit_rate(self):
        assert CacheStats().hit_rate == 0.0
        assert CacheStats(hits=3, misses=1).hit_rate == 0.75


# =========================================================================
# ResultCache
# =========================================================================


class TestResultCacheConstruction:
    def test_negative_ttl_rejected(self):
        with pytest.raises(ValueError, match="ttl"):
            ResultCache(ttl=-1)

    def test_zero_max_entries_rejected(self):
        with pytest.raises(ValueError, match="max_entries"):
            ResultCache(max_entries=0)


class TestResultCacheStoreGet:
    def test_miss_then_hit(self, clock: FakeClock):
        cache = ResultCache(ttl=60, clock=clock)
        assert cache.get("https://example.com/docs") is None
        r = _result()
        cache.store("https://example.com/docs", r)
        assert cache.get("https://example.com/docs") is r
        assert cache.stats.misses == 1
        assert cache.stats.hits == 1

    def test_encoded_query_is_a_separate_entry(self, clock: FakeClock):
        cache = ResultCache(clock=clock)
        cache.store("https://example.com/page?a=b%26c=d", _result("https://example.com/page?a=b%26c=d"))
        assert cache.get("https://example.com/page?a=b&c=d") is None
        assert len(cache) == 1

    def test_normalized_keys_share_entry(self, clock: FakeClock):
        cache = ResultCache(clock=clock)
        r = _result()
        cache.store("https://Example.com/docs#intro", r)
        assert cache.get("https://example.com/docs") is r
        assert len(cache) == 1

    def test_overwrite_is_last_write_wins(self, clock: FakeClock):
        cache = ResultCache(clock=clock)
        cache.store("https://example.com/", _result(is_documentation=True))
        cache.store("https://example.com/", _result(is_documentation=False))
        assert cache.get("https://example.com/").is_documentation is False
        assert len(cache) == 1

    def test_store_returns_entry(self, clock: FakeClock):
        cache = ResultCache(clock=clock)
        entry = cache.store("https://example.com/", _result())
        assert entry.inserted_at == clock.now
        assert entry.key == "https://example.com/"

    def test_contains(self, clock: FakeClock):
        cache = ResultCache(ttl=10, clock=clock)
        cache.store("https://example.com/", _result())
        assert "https://example.com/" in cache
        assert "https://example.com/other" not in cache
        assert 42 not in cache
        clock.advance(11)
        assert "https://example.com/" not in cache


class TestResultCacheTtl:
    def test_entry_valid_up_to_ttl(self, clock: FakeClock):
        cache = ResultCache(ttl=100, clock=clock)
        cache.store("https://example.com/", _result())
        clock.advance(100)
        assert cache.get("https://example.com/") is not None

    def test_expired_entry_evicted_on_read(self, clock: FakeClock):
        cache = ResultCache(ttl=100, clock=clock)
        cache.store("https://example.com/", _result())
        clock.advance(100.5)
        assert cache.get("https://example.com/") is None
        assert len(cache) == 0
        assert cache.stats.ttl_expirations == 1
        assert cache.stats.misses == 1

    def test_restore_after_expiry_resets_age(self, clock: FakeClock):
        cache = ResultCache(ttl=10, clock=clock)
        cache.store("https://example.com/", _result())
        clock.advance(20)
        assert cache.get("https://example.com/") is None
        cache.store("https://example.com/", _result())
        clock.advance(5)
        assert cache.get("https://example.com/") is not None


class TestResultCacheLru:
    def test_oldest_evicted(self, clock: FakeClock):
        cache = ResultCache(max_entries=2, clock=clock)
        cache.store("https://a.example/", _result("https://a.example/"))
        cache.store("https://b.example/", _result("https://b.example/"))
        cache.store("https://c.example/", _result("https://c.example/"))
        assert cache.get("https://a.example/") is None
        assert cache.get("https://c.example/") is not None
        assert cache.stats.evictions == 1

    def test_read_refreshes_recency(self, clock: FakeClock):
        cache = ResultCache(max_entries=2, clock=clock)
        cache.store("https://a.example/", _result("https://a.example/"))
        cache.store("https://b.example/", _result("https://b.example/"))
        cache.get("https://a.example/")
        cache.store("https://c.example/", _result("https://c.example/"))
        assert cache.get("https://a.example/") is not None
        assert cache.get("https://b.example/") is None


class TestResultCacheInvalidate:
    def test_invalidate(self, clock: FakeClock):
        cache = ResultCache(clock=clock)
        cache.store("https://example.com/", _result())
        assert cache.invalidate("https://EXAMPLE.com/") is True
        assert cache.invalidate("https://example.com/") is False
        assert cache.get("https://example.com/") is None

    def test_clear(self, clock: FakeClock):
        cache = ResultCache(clock=clock)
        for i in range(5):
            cache.store(f"https://example.com/{i}", _result())
        cache.clear()
        assert len(cache) == 0


class TestResultCacheThreads:
    def test_concurrent_writers_stay_consistent(self):
        cache = ResultCache(max_entries=50)

        def writer(offset: int) -> None:
            for i in range(200):
                url = f"https://example.com/{(offset + i) % 80}"
                cache.store(url, _result(url))
                cache.get(url)

        threads = [threading.Thread(target=writer, args=(n * 7,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(cache) == 50
        assert cache.stats.stores == 8 * 200
