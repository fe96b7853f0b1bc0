"""Result Cache — In-memory TTL cache for aggregated search results.

Entries are keyed by ``derive_cache_key(params)`` and carry their
originating ``SearchParams`` so the cache can also answer "similar search"
lookups and invalidate related entries when upstream data changes.

Each operation mutates state synchronously inside a single event-loop
turn. Concurrent misses for the same key are not coalesced: both callers
fetch and both write.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
import time
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, Field

from oppaggregator.cache.entry import CacheEntry
from oppaggregator.cache.eviction import EvictionPolicy, build_policy
from oppaggregator.cache.keys import derive_cache_key
from oppaggregator.cache.similarity import are_related, search_similarity
from oppaggregator.config.settings import CacheSettings
from oppaggregator.models.query import SearchParams
from oppaggregator.models.response import SearchResult

logger = logging.getLogger(__name__)

ENTRY_EVICTION_FRACTION = 0.1
SIZE_EVICTION_FRACTION = 0.2


class CacheStats(BaseModel):
    """Snapshot of cache health."""

    total_entries: int = 0
    estimated_size: int = Field(default=0, description="Approximate size in bytes")
    hit_rate: float = 0.0
    miss_rate: float = 0.0
    total_hits: int = 0
    total_misses: int = 0
    total_evictions: int = 0
    avg_access_count: float = 0.0
    oldest_query: str | None = None
    newest_query: str | None = None


def _estimate_size(payload: SearchResult, params: SearchParams) -> int:
    try:
        return (len(payload.model_dump_json()) + len(params.model_dump_json())) * 2
    except Exception:
        logger.debug("Cache size estimation failed, counting entry as zero bytes", exc_info=True)
        return 0


class ResultCache:
    """Bounded in-memory cache of ``SearchResult`` objects.

    Attributes:
        settings: Cache configuration.
        policy: Active eviction policy.

    Args:
        settings: Cache configuration.
        clock: Time source in seconds.
    """

    def __init__(self, settings: CacheSettings | None = None, *, clock: Callable[[], float] = time.time) -> None:
        self.settings = settings or CacheSettings()
        self.policy: EvictionPolicy = build_policy(self.settings.eviction_policy)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._sweep_task: asyncio.Task[None] | None = None

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Start the periodic expired-entry sweep."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop(), name="result-cache-sweep")
        logger.info(
            "Result cache initialized (max_entries=%d, policy=%s, sweep every %.0fs)",
            self.settings.max_entries,
            self.policy.name.value,
            self.settings.sweep_interval_seconds,
        )

    async def shutdown(self) -> None:
        """Stop the sweep task and drop all entries."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweep_task
            self._sweep_task = None
        await self.clear()
        logger.info("Result cache shut down")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.sweep_interval_seconds)
            self.sweep_expired()

    # ── Core operations ──────────────────────────────────────────────────

    @staticmethod
    def derive_key(params: SearchParams) -> str:
        return derive_cache_key(params)

    async def get(self, key: str) -> SearchResult | None:
        """Look up a cached result.

        Expired entries found here are removed and count as misses.

        Returns:
            A copy of the cached result marked ``meta.cached``, or None.
        """
        entry = self._entries.get(key)
        now = self._clock()

        if entry is None:
            self._misses += 1
            return None

        if entry.is_expired(now):
            del self._entries[key]
            self._misses += 1
            logger.debug("Cache entry expired and removed: %s", key)
            return None

        entry.touch(now)
        self._hits += 1
        logger.debug("Cache hit: %s (access_count=%d)", key, entry.access_count)
        return self._served(entry)

    async def set(
        self,
        key: str,
        payload: SearchResult,
        params: SearchParams,
        ttl: float | None = None,
    ) -> None:
        """Store a result, evicting first if the cache is at capacity.

        The entry is validated before the cache is touched, so a rejected
        ``ttl`` leaves any existing entry under *key* in place.

        Args:
            key: Cache key, normally ``derive_key(params)``.
            payload: Result to store.
            params: The parameters that produced *payload*.
            ttl: Time-to-live in seconds (defaults to ``settings.default_ttl_seconds``).

        Raises:
            ValidationError: If *ttl* is not positive.
        """
        now = self._clock()
        stored = payload.model_copy(deep=True)
        entry = CacheEntry(
            payload=stored,
            params=params,
            created_at=now,
            ttl=self.settings.default_ttl_seconds if ttl is None else ttl,
            last_access=now,
            size_bytes=_estimate_size(stored, params),
        )

        self._entries.pop(key, None)
        self._enforce_capacity()
        self._entries[key] = entry
        logger.debug(
            "Cache entry stored: %s (%d results, ttl=%.1fs, %d entries)",
            key,
            len(payload.opportunities),
            entry.ttl,
            len(self._entries),
        )

    async def delete(self, key: str) -> bool:
        deleted = self._entries.pop(key, None) is not None
        if deleted:
            logger.debug("Cache entry deleted: %s", key)
        return deleted

    async def clear(self) -> int:
        previous = len(self._entries)
        self._entries.clear()
        logger.info("Cache cleared (%d entries)", previous)
        return previous

    # ── Similarity & invalidation ────────────────────────────────────────

    async def find_similar(self, params: SearchParams, threshold: float | None = None) -> list[SearchResult]:
        """Cached results whose parameters resemble *params*.

        Matches count as hits on their entries and are returned best first,
        each carrying its score in ``meta.similarity``.
        """
        cutoff = self.settings.similarity_threshold if threshold is None else threshold
        now = self._clock()
        matches: list[tuple[float, SearchResult]] = []

        for entry in list(self._entries.values()):
            if entry.is_expired(now):
                continue
            similarity = search_similarity(params, entry.params)
            if similarity < cutoff:
                continue
            entry.touch(now)
            matches.append((similarity, self._served(entry, similarity=similarity)))

        matches.sort(key=lambda m: m[0], reverse=True)
        return [result for _, result in matches]

    async def invalidate_related(self, params: SearchParams) -> int:
        """Delete every entry whose parameters are related to *params*."""
        related = [key for key, entry in self._entries.items() if are_related(params, entry.params)]
        for key in related:
            del self._entries[key]

        if related:
            logger.info("Related cache entries invalidated: %d (query=%r)", len(related), params.query)
        return len(related)

    # ── Capacity management ──────────────────────────────────────────────

    def _enforce_capacity(self) -> None:
        if len(self._entries) >= self.settings.max_entries:
            self.evict(math.ceil(self.settings.max_entries * ENTRY_EVICTION_FRACTION))

        if self.estimate_size() > self.settings.max_size_bytes:
            self.evict(math.ceil(len(self._entries) * SIZE_EVICTION_FRACTION))

    def evict(self, count: int) -> list[str]:
        """Evict up to *count* entries chosen by the active policy."""
        victims = self.policy.select(self._entries, count, self._clock())
        for key in victims:
            del self._entries[key]
        self._evictions += len(victims)

        if victims:
            logger.info(
                "Cache entries evicted: %d (policy=%s, %d remaining)",
                len(victims),
                self.policy.name.value,
                len(self._entries),
            )
        return victims

    def sweep_expired(self) -> int:
        """Remove every entry whose TTL has lapsed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]

        if expired:
            logger.debug("Expired cache entries cleaned: %d (%d remaining)", len(expired), len(self._entries))
        return len(expired)

    def estimate_size(self) -> int:
        return sum(entry.size_bytes for entry in self._entries.values())

    # ── Introspection ────────────────────────────────────────────────────

    def stats(self) -> CacheStats:
        entries = list(self._entries.values())
        lookups = self._hits + self._misses
        oldest = min(entries, key=lambda e: e.created_at, default=None)
        newest = max(entries, key=lambda e: e.created_at, default=None)

        return CacheStats(
            total_entries=len(entries),
            estimated_size=self.estimate_size(),
            hit_rate=self._hits / lookups if lookups else 0.0,
            miss_rate=self._misses / lookups if lookups else 0.0,
            total_hits=self._hits,
            total_misses=self._misses,
            total_evictions=self._evictions,
            avg_access_count=sum(e.access_count for e in entries) / len(entries) if entries else 0.0,
            oldest_query=oldest.params.query if oldest else None,
            newest_query=newest.params.query if newest else None,
        )

    def update_config(self, **changes: Any) -> CacheSettings:
        merged = self.settings.model_dump()
        merged.update(changes)
        self.settings = CacheSettings.model_validate(merged)
        self.policy = build_policy(self.settings.eviction_policy)
        logger.info("Cache configuration updated: %s", sorted(changes))
        return self.settings

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    @staticmethod
    def _served(entry: CacheEntry, similarity: float | None = None) -> SearchResult:
        served = entry.payload.model_copy(deep=True)
        served.meta = served.meta.model_copy(update={"cached": True, "similarity": similarity})
        return served
