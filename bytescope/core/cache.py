"""In-process LRU cache for bytecode analyses.

Entries are keyed by ``(address, block_tag)`` and held in a
``cachetools.TTLCache`` sized by the JSON length of each analysis, so the
total byte bound, the entry age and LRU eviction all come from the cache
itself. The entry-count bound is enforced on top by popping LRU entries.

Usage:
    from bytescope.core.cache import BytecodeCache

    cache = BytecodeCache(max_entries=100)
    cache.set("0xAbC...", analysis)
    cache.get("0xabc...")            # same entry, address is case-normalised
    cache.remove("0xabc...", "latest")

Lookups never raise: misses and expired entries both return ``None``.
Analyses are copied on the way in and out, so callers cannot alter what
other callers are served.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

from cachetools import TTLCache

from bytescope.core.config import Settings, get_settings
from bytescope.core.types import BytecodeAnalysis

logger = logging.getLogger(__name__)


def make_key(address: str, block_tag: str | int = "latest") -> str:
    return f"{address.lower()}_{block_tag}"


def estimate_size(analysis: BytecodeAnalysis) -> int:
    """Approximate resident size as the length of the JSON encoding."""
    return len(analysis.model_dump_json())


class BytecodeCache:
    """Thread-safe LRU cache bounded by size, entry count and age."""

    def __init__(
        self,
        max_size_bytes: int = 50 * 1024 * 1024,
        max_entries: int = 100,
        max_age_seconds: float = 30 * 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_size_bytes = max_size_bytes
        self.max_entries = max_entries
        self.max_age_seconds = max_age_seconds
        self._store: TTLCache[str, BytecodeAnalysis] = TTLCache(
            maxsize=max_size_bytes,
            ttl=max_age_seconds,
            timer=clock,
            getsizeof=estimate_size,
        )
        self._hits = 0
        self._misses = 0
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> BytecodeCache:
        settings = settings or get_settings()
        return cls(
            max_size_bytes=settings.cache_max_size_bytes,
            max_entries=settings.cache_max_entries,
            max_age_seconds=settings.cache_max_age_seconds,
        )

    # ── Core operations ──────────────────────────────────────────────────────

    def get(self, address: str, block_tag: str | int = "latest") -> BytecodeAnalysis | None:
        """Return a copy of the cached analysis, or None on miss or expiry."""
        key = make_key(address, block_tag)
        with self._lock:
            analysis = self._store.get(key)
            if analysis is None:
                self._misses += 1
                return None
            self._hits += 1
            return analysis.model_copy(deep=True)

    def set(
        self,
        address: str,
        analysis: BytecodeAnalysis,
        block_tag: str | int = "latest",
    ) -> None:
        """Store or replace an analysis, then evict until all bounds hold."""
        key = make_key(address, block_tag)
        with self._lock:
            self._store.pop(key, None)
            if estimate_size(analysis) > self.max_size_bytes:
                logger.debug("Analysis for %s exceeds cache size bound, not cached", key)
                return
            self._store[key] = analysis.model_copy(deep=True)
            while len(self._store) > self.max_entries:
                evicted, _ = self._store.popitem()
                logger.debug("Evicted LRU cache entry: %s", evicted)

    def has(self, address: str, block_tag: str | int = "latest") -> bool:
        """Presence check that does not touch recency or hit counters."""
        with self._lock:
            return make_key(address, block_tag) in self._store

    def remove(self, address: str, block_tag: str | int = "latest") -> bool:
        with self._lock:
            return self._store.pop(make_key(address, block_tag), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0

    def cleanup_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        with self._lock:
            expired = len(self._store.expire())
        if expired:
            logger.debug("Cleaned up %d expired cache entries", expired)
        return expired

    # ── Stats ────────────────────────────────────────────────────────────────

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    @property
    def size_bytes(self) -> int:
        with self._lock:
            return int(self._store.currsize)

    def keys(self) -> list[str]:
        """Keys of the live entries."""
        with self._lock:
            return list(self._store)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            return {
                "entries": len(self._store),
                "size_bytes": int(self._store.currsize),
                "max_entries": self.max_entries,
                "max_size_bytes": self.max_size_bytes,
                "max_age_seconds": self.max_age_seconds,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / total * 100, 2) if total else 0.0,
            }
