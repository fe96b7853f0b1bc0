"""Aggregation Coordinator — Fans a search out to sources and merges the results.

Pipeline per search:
  SearchParams → [FanOutStrategy] → N × SourceAdapter.execute()
               → deduplicate → type / deadline filters → sort → paginate
               → facets → SearchResult

An individual source failure never fails a parallel search; the only
coordinator-level error is misuse (searching with no sources registered).
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from oppaggregator.adapters.base.adapter import AdapterHealth, SourceAdapter, SourceStats
from oppaggregator.config.settings import CoordinatorSettings, FanOutMode
from oppaggregator.core import ranking
from oppaggregator.models.opportunity import Opportunity
from oppaggregator.models.query import SearchParams
from oppaggregator.models.response import SearchMeta, SearchResult

logger = logging.getLogger(__name__)


class AggregationError(Exception):
    """Base exception for coordinator errors."""


class CoordinatorMisuseError(AggregationError):
    """Raised when the coordinator is used without any sources registered."""


# ── Fan-out strategies ───────────────────────────────────────────────────


class FanOutStrategy(ABC):
    """How a search is distributed over the selected sources."""

    @abstractmethod
    async def collect(self, adapters: list[SourceAdapter], params: SearchParams) -> list[Opportunity]:
        """Run the search and return results in source-priority order.

        Args:
            adapters: Enabled sources, highest priority first.
            params: Search parameters.
        """


class ParallelFanOut(FanOutStrategy):
    """Query up to ``max_sources`` sources concurrently with all-settled semantics.

    Every branch finishes or fails on its own; a failing source
    contributes nothing and never cancels its siblings.
    """

    def __init__(self, max_sources: int) -> None:
        self.max_sources = max_sources

    async def collect(self, adapters: list[SourceAdapter], params: SearchParams) -> list[Opportunity]:
        selected = adapters[: self.max_sources]
        outcomes = await asyncio.gather(
            *(adapter.execute(params) for adapter in selected),
            return_exceptions=True,
        )

        merged: list[Opportunity] = []
        for adapter, outcome in zip(selected, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.warning("Source %s failed in parallel search: %s", adapter.name, outcome)
                continue
            merged.extend(outcome)
        return merged


class SequentialFanOut(FanOutStrategy):
    """Query sources one at a time until ``params.limit`` results are collected.

    Each source is asked only for the remaining count. A failing source is
    skipped when ``fallback_on_failure`` is set; otherwise its error aborts
    the search.
    """

    def __init__(self, fallback_on_failure: bool = True) -> None:
        self.fallback_on_failure = fallback_on_failure

    async def collect(self, adapters: list[SourceAdapter], params: SearchParams) -> list[Opportunity]:
        merged: list[Opportunity] = []
        target = params.limit

        for adapter in adapters:
            if len(merged) >= target:
                break

            source_params = params.model_copy(update={"limit": target - len(merged)})
            try:
                results = await adapter.execute(source_params)
            except Exception as e:
                logger.warning("Sequential search failed for %s: %s", adapter.name, e)
                if not self.fallback_on_failure:
                    raise
                continue

            merged.extend(results)
            logger.debug(
                "Sequential search completed for %s: %d results (%d so far)",
                adapter.name,
                len(results),
                len(merged),
            )
        return merged


def build_strategy(settings: CoordinatorSettings) -> FanOutStrategy:
    if settings.strategy == FanOutMode.SEQUENTIAL:
        return SequentialFanOut(fallback_on_failure=settings.fallback_on_failure)
    return ParallelFanOut(max_sources=settings.max_concurrent_sources)


# ── Coordinator ──────────────────────────────────────────────────────────


class AggregationCoordinator:
    """Owns a named collection of sources and runs merged searches over them.

    Attributes:
        settings: Coordinator configuration.
        strategy: Active fan-out strategy, derived from ``settings.strategy``.
    """

    def __init__(
        self,
        settings: CoordinatorSettings | None = None,
        sources: Iterable[SourceAdapter] = (),
    ) -> None:
        self.settings = settings or CoordinatorSettings()
        self.strategy = build_strategy(self.settings)
        self._sources: dict[str, SourceAdapter] = {}
        for source in sources:
            self.add_source(source)

    # ── Source management ────────────────────────────────────────────────

    def add_source(self, source: SourceAdapter, name: str | None = None) -> None:
        key = name or source.name
        if key in self._sources:
            logger.warning("Replacing existing source: %s", key)
        self._sources[key] = source
        logger.info("Source '%s' added to coordinator", key)

    def remove_source(self, name: str) -> bool:
        removed = self._sources.pop(name, None) is not None
        if removed:
            logger.info("Source '%s' removed from coordinator", name)
        return removed

    def get_source(self, name: str) -> SourceAdapter | None:
        return self._sources.get(name)

    @property
    def source_names(self) -> list[str]:
        return list(self._sources)

    def _select_sources(self, params: SearchParams) -> list[SourceAdapter]:
        allow = set(params.sources)
        candidates = [
            source
            for name, source in self._sources.items()
            if source.enabled and (not allow or name in allow)
        ]
        return sorted(candidates, key=lambda s: s.priority, reverse=True)

    # ── Search ───────────────────────────────────────────────────────────

    async def search_opportunities(self, params: SearchParams) -> SearchResult:
        """Run a merged search across the registered sources.

        Args:
            params: Search parameters.

        Returns:
            The merged, ranked and paginated result.

        Raises:
            CoordinatorMisuseError: If no sources are registered.
        """
        if not self._sources:
            raise CoordinatorMisuseError("No sources registered with the aggregation coordinator")

        start = time.monotonic()
        sources = self._select_sources(params)
        logger.info(
            "Starting multi-source search (query=%r, types=%s, sources=%s, strategy=%s)",
            params.query,
            [t.value for t in params.types],
            [s.name for s in sources],
            self.settings.strategy.value,
        )

        collected = await self.strategy.collect(sources, params)

        if self.settings.deduplication_enabled:
            collected = ranking.deduplicate(collected)
        collected = ranking.filter_by_type(collected, params.types)
        collected = ranking.filter_by_deadline(collected, params)
        ordered = ranking.sort_opportunities(collected, params)
        page = ranking.paginate(ordered, params.offset, params.limit)

        took_ms = int((time.monotonic() - start) * 1000)
        logger.info("Multi-source search completed: %d results in %d ms", len(page), took_ms)

        return SearchResult(
            opportunities=page,
            total=len(page),
            has_more=len(page) == params.limit,
            facets=ranking.build_facets(page),
            meta=SearchMeta(query=params.query or "", took_ms=took_ms, cached=False),
        )

    # ── Health & stats ───────────────────────────────────────────────────

    def get_source_stats(self) -> dict[str, SourceStats]:
        return {name: source.get_stats() for name, source in self._sources.items()}

    async def get_health_status(self) -> dict[str, Any]:
        """Health of every source plus an overall flag.

        Returns:
            ``{"healthy": bool, "sources": {name: AdapterHealth}}``
        """
        sources: dict[str, AdapterHealth] = {}
        for name, source in self._sources.items():
            try:
                sources[name] = await source.get_health_status()
            except Exception as e:
                sources[name] = AdapterHealth(healthy=False, message=str(e) or "Health check failed")

        return {"healthy": all(h.healthy for h in sources.values()), "sources": sources}

    def update_config(self, **changes: Any) -> CoordinatorSettings:
        merged = self.settings.model_dump()
        merged.update(changes)
        self.settings = CoordinatorSettings.model_validate(merged)
        self.strategy = build_strategy(self.settings)
        logger.info("Coordinator configuration updated: %s", sorted(changes))
        return self.settings

    async def shutdown(self) -> None:
        """Gracefully shut down all sources."""
        for name, source in self._sources.items():
            try:
                await source.shutdown()
                logger.info("Shut down source: %s", name)
            except Exception:
                logger.warning("Error shutting down source: %s", name, exc_info=True)
