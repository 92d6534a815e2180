# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Classification result cache with TTL expiry and an LRU size bound.

Pure Python module, no network dependencies.

Entries expire lazily: an entry older than ``ttl`` is dropped on the read
that finds it.  Concurrent writers for the same key are last-write-wins.
Guarded by a ``threading.Lock`` so the cache can be shared between detectors
running on different event loops.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

from . import ClassificationResult

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# URL normalization
# ---------------------------------------------------------------------------


def normalize_cache_url(url: str) -> str:
    """Normalize URL for cache key: lowercase scheme/netloc, strip fragment, sort query.

    Preserves path case and trailing slash.  Preserves duplicate query params.
    """
    try:
        parsed = urlsplit(url.strip())
    except ValueError:
        return url

    # Raw pieces, not decoded: "a=b%26c" and "a=b&c" are different URLs
    sorted_query = "&".join(sorted(p for p in parsed.query.split("&") if p))
    return urlunsplit((parsed.scheme.lower(), parsed.netloc.lower(), parsed.path, sorted_query, ""))


# ---------------------------------------------------------------------------
# Cache entry + stats
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A cached classification with its insertion time."""

    key: str
    result: ClassificationResult
    inserted_at: float  # clock() at store time

    def is_expired(self, now: float, ttl: float) -> bool:
        return (now - self.inserted_at) > ttl


@dataclass
class CacheStats:
    """Counters for cache behaviour."""

    hits: int = 0
    misses: int = 0
    stores: int = 0
    ttl_expirations: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


# ---------------------------------------------------------------------------
# ResultCache
# ---------------------------------------------------------------------------


class ResultCache:
    """URL → ClassificationResult store with TTL and LRU eviction."""

    def __init__(
        self,
        ttl: float = 86400.0,
        max_entries: int = 1024,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl < 0:
            raise ValueError(f"ttl must be >= 0, got {ttl}")
        if max_entries <= 0:
            raise ValueError(f"max_entries must be > 0, got {max_entries}")
        self._ttl = ttl
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._stats = CacheStats()
        self._lock = threading.Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    # -- Lookup --

    def get(self, url: str) -> ClassificationResult | None:
        """Return the cached result for *url*, or None if missing or TTL-expired."""
        key = normalize_cache_url(url)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats.misses += 1
                return None
            if entry.is_expired(self._clock(), self._ttl):
                del self._entries[key]
                self._stats.ttl_expirations += 1
                self._stats.misses += 1
                logger.debug("Cache TTL expired: %s", key)
                return None
            self._entries.move_to_end(key)
            self._stats.hits += 1
            return entry.result

    # -- Store --

    def store(self, url: str, result: ClassificationResult) -> CacheEntry:
        """Insert (or overwrite) the entry for *url*."""
        key = normalize_cache_url(url)
        with self._lock:
            entry = CacheEntry(key=key, result=result, inserted_at=self._clock())
            self._entries[key] = entry
            self._entries.move_to_end(key)
            self._stats.stores += 1

            while len(self._entries) > self._max_entries:
                evicted_key, _ = self._entries.popitem(last=False)
                self._stats.evictions += 1
                logger.debug("Cache eviction: %s", evicted_key)

            logger.debug("Cache store: %s size=%d", key, len(self._entries))
            return entry

    # -- Invalidation --

    def invalidate(self, url: str) -> bool:
        """Drop the entry for *url*.  Returns True if one was present."""
        with self._lock:
            return self._entries.pop(normalize_cache_url(url), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    # -- Introspection --

    @property
    def stats(self) -> CacheStats:
        return self._stats

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, url: object) -> bool:
        if not isinstance(url, str):
            return False
        key = normalize_cache_url(url)
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock(), self._ttl)
