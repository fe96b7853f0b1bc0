"""Opportunity Engine — Cached entry point for aggregated searches.

The engine manages the request lifecycle:
  1. Clamp the page size to the configured maximum
  2. Look the search up in the result cache (unless a refresh is forced)
  3. On a miss, fan out through the aggregation coordinator
  4. Store non-empty results back in the cache

It also owns the lifecycle of the sources and the cache sweep task.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from oppaggregator.adapters.base.registry import AdapterRegistry, default_registry
from oppaggregator.cache.manager import ResultCache
from oppaggregator.core.coordinator import AggregationCoordinator
from oppaggregator.models.query import SearchParams
from oppaggregator.models.response import SearchResult

if TYPE_CHECKING:
    from oppaggregator.config.settings import Settings

logger = logging.getLogger(__name__)


class OpportunityEngine:
    """Cache-fronted multi-source opportunity search.

    Pipeline:
      SearchParams → [ResultCache] → hit → SearchResult (meta.cached=True)
                                   → miss → [Coordinator] → [ResultCache.set] → SearchResult

    Attributes:
        settings: Application configuration.
        registry: Adapter classes available to ``initialize()``.
        coordinator: The aggregation coordinator.
        cache: The result cache.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        registry: AdapterRegistry | None = None,
        coordinator: AggregationCoordinator | None = None,
        cache: ResultCache | None = None,
    ) -> None:
        self.settings = settings
        self.registry = registry or default_registry()
        self.coordinator = coordinator or AggregationCoordinator(settings.coordinator)
        self.cache = cache or ResultCache(settings.cache)

    async def initialize(self) -> None:
        """Build configured sources and start the cache sweep."""
        for name, source_config in self.settings.search.sources.items():
            if self.coordinator.get_source(name) is not None:
                continue
            try:
                adapter = await self.registry.create(source_config)
            except Exception:
                logger.warning("Failed to initialise source '%s'", name, exc_info=True)
                continue
            self.coordinator.add_source(adapter, name)

        await self.cache.initialize()
        logger.info("Opportunity engine initialized with %d sources", len(self.coordinator.source_names))

    async def shutdown(self) -> None:
        """Gracefully shut down all components."""
        await self.cache.shutdown()
        await self.coordinator.shutdown()
        logger.info("Opportunity engine shut down")

    # ──────────────────────────────────────────────────────────────────────
    # Search
    # ──────────────────────────────────────────────────────────────────────

    def _bounded(self, params: SearchParams) -> SearchParams:
        max_page = self.settings.search.max_page_size
        if params.limit > max_page:
            return params.model_copy(update={"limit": max_page})
        return params

    async def search(self, params: SearchParams, *, refresh: bool = False) -> SearchResult:
        """Search through the cache, falling back to the coordinator.

        Args:
            params: Search parameters.
            refresh: Skip the cache lookup and always fetch from sources.

        Returns:
            The search result; ``meta.cached`` tells whether it was served
            from the cache.

        Raises:
            CoordinatorMisuseError: If no sources are registered.
        """
        params = self._bounded(params)
        key = self.cache.derive_key(params)

        if not refresh:
            cached = await self.cache.get(key)
            if cached is not None:
                logger.info("Serving search from cache (query=%r, key=%s)", params.query, key)
                return cached

        result = await self.coordinator.search_opportunities(params)
        if result.opportunities:
            await self.cache.set(key, result, params)
        return result

    async def find_similar(self, params: SearchParams, threshold: float | None = None) -> list[SearchResult]:
        return await self.cache.find_similar(params, threshold)

    async def invalidate(self, params: SearchParams) -> int:
        """Drop cached searches related to *params* after upstream data changed."""
        return await self.cache.invalidate_related(params)

    async def clear_cache(self) -> int:
        return await self.cache.clear()

    # ──────────────────────────────────────────────────────────────────────
    # Operational surface
    # ──────────────────────────────────────────────────────────────────────

    async def health(self) -> dict[str, Any]:
        """Source health plus a compact cache summary."""
        status = await self.coordinator.get_health_status()
        cache_stats = self.cache.stats()
        return {
            "healthy": status["healthy"],
            "sources": {name: h.model_dump() for name, h in status["sources"].items()},
            "cache": {
                "entries": cache_stats.total_entries,
                "hit_rate": cache_stats.hit_rate,
                "size": cache_stats.estimated_size,
            },
        }

    def stats(self) -> dict[str, Any]:
        """Per-source counters and full cache statistics."""
        return {
            "sources": {
                name: s.model_dump(mode="json") for name, s in self.coordinator.get_source_stats().items()
            },
            "cache": self.cache.stats().model_dump(),
        }
