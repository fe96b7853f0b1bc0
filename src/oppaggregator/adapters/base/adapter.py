"""Base source adapter — Abstract interface for all opportunity sources.

Every external source must implement this interface to take part in an
aggregated search. The adapter is responsible for:
  1. Executing a search against its source and normalizing to ``Opportunity``
  2. Validating its own configuration
  3. Reporting health status

The base class wraps ``search()`` in ``execute()``, which enforces the
per-source sliding-window rate limit and keeps ``SourceStats`` current.
Stats and limiter state are private to the adapter and only mutated from
its own call path.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

from pydantic import BaseModel, Field, ValidationError

from oppaggregator.adapters.base.exceptions import (
    AdapterDisabledError,
    AdapterFailureError,
    ConfigurationError,
    RateLimitExceededError,
    TransientError,
)
from oppaggregator.adapters.base.rate_limit import SlidingWindowLimiter
from oppaggregator.config.settings import SourceConfig
from oppaggregator.models.opportunity import Opportunity
from oppaggregator.models.query import SearchParams

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MINUTE = 60.0
_DAY = 24 * 60 * 60.0


class AdapterHealth(BaseModel):
    """Health status of a source adapter."""

    healthy: bool = Field(description="Whether the source is usable")
    message: str | None = Field(default=None, description="Additional health message")


class SourceStats(BaseModel):
    """Request counters for one adapter. Counters only grow until reset."""

    name: str
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    avg_response_time_ms: float = 0.0
    last_request_time: datetime | None = None
    rate_limit_remaining: int = 0


class SourceAdapter(ABC):
    """Abstract base class for opportunity source adapters.

    Subclasses implement:
      - search(): Query the source and return normalized opportunities
      - validate_config(): Report whether credentials look usable
      - get_health_status(): Report source health

    Callers use ``execute()`` rather than ``search()`` directly.

    Args:
        config: Source configuration.
        clock: Monotonic time source in seconds (rate limiting, timings).
        sleep: Coroutine used for retry backoff.
    """

    def __init__(
        self,
        config: SourceConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._clock = clock
        self._sleep = sleep
        self._build_limiters()
        self._stats = SourceStats(name=config.name, rate_limit_remaining=config.rate_limit.requests_per_minute)

    def _build_limiters(self) -> None:
        limits = self._config.rate_limit
        self._minute_limiter = SlidingWindowLimiter(limits.requests_per_minute, _MINUTE, self._clock)
        self._day_limiter = (
            SlidingWindowLimiter(limits.requests_per_day, _DAY, self._clock) if limits.requests_per_day else None
        )

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> SourceConfig:
        """A copy of the current configuration."""
        return self._config.model_copy(deep=True)

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def priority(self) -> int:
        return self._config.priority

    # ── Contract ─────────────────────────────────────────────────────────

    @abstractmethod
    async def search(self, params: SearchParams) -> list[Opportunity]:
        """Run the search against the source.

        Args:
            params: Search parameters.

        Returns:
            Normalized opportunities.
        """

    @abstractmethod
    def validate_config(self) -> bool:
        """Return True if the configuration can reach the real source."""

    @abstractmethod
    async def get_health_status(self) -> AdapterHealth:
        """Check the health of the source."""

    async def initialize(self) -> None:
        """Open connections. Called once at startup."""

    async def shutdown(self) -> None:
        """Release connections. Called once at shutdown."""

    # ── Execution wrapper ────────────────────────────────────────────────

    async def execute(self, params: SearchParams) -> list[Opportunity]:
        """Search with rate limiting and stats bookkeeping.

        Raises:
            AdapterDisabledError: If the adapter is disabled.
            RateLimitExceededError: If the per-minute or per-day window is full.
        """
        if not self._config.enabled:
            raise AdapterDisabledError(f"Source {self.name} is disabled")

        if not self._minute_limiter.allows():
            logger.warning("Rate limit exceeded for source %s (per minute)", self.name)
            raise RateLimitExceededError(f"Rate limit exceeded for {self.name}")
        if self._day_limiter is not None and not self._day_limiter.allows():
            logger.warning("Rate limit exceeded for source %s (per day)", self.name)
            raise RateLimitExceededError(f"Daily rate limit exceeded for {self.name}")

        self._record_request()
        start = self._clock()
        logger.info("Searching opportunities via %s (query=%r, limit=%d)", self.name, params.query, params.limit)

        try:
            opportunities = await self.search(params)
        except Exception as e:
            self._stats.failed_requests += 1
            elapsed_ms = (self._clock() - start) * 1000
            logger.error("Search failed via %s after %.0fms: %s", self.name, elapsed_ms, e)
            raise

        elapsed_ms = (self._clock() - start) * 1000
        self._record_success(elapsed_ms)
        logger.info(
            "Search completed via %s: %d results in %.0fms",
            self.name,
            len(opportunities),
            elapsed_ms,
        )
        return opportunities

    def _record_request(self) -> None:
        self._minute_limiter.record()
        if self._day_limiter is not None:
            self._day_limiter.record()
        self._stats.total_requests += 1
        self._stats.last_request_time = datetime.now(UTC)
        self._stats.rate_limit_remaining = self._minute_limiter.remaining

    def _record_success(self, elapsed_ms: float) -> None:
        self._stats.successful_requests += 1
        n = self._stats.successful_requests
        self._stats.avg_response_time_ms = (self._stats.avg_response_time_ms * (n - 1) + elapsed_ms) / n

    # ── Retry helper ─────────────────────────────────────────────────────

    async def with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        max_retries: int | None = None,
    ) -> T:
        """Run *operation*, retrying ``TransientError`` with capped exponential backoff.

        The delay before retry ``n`` is ``min(base * 2**(n-1), cap)``. Other
        exceptions propagate immediately.

        Raises:
            AdapterFailureError: When all retries are exhausted.
        """
        retries = self._config.max_retries if max_retries is None else max_retries
        last_error: TransientError | None = None

        for attempt in range(1, retries + 2):
            try:
                return await operation()
            except TransientError as e:
                last_error = e
                if attempt > retries:
                    break
                delay = min(self._config.retry_base_delay * 2 ** (attempt - 1), self._config.retry_max_delay)
                logger.warning(
                    "Attempt %d failed for %s, retrying in %.1fs: %s",
                    attempt,
                    self.name,
                    delay,
                    e,
                )
                await self._sleep(delay)

        raise AdapterFailureError(f"{self.name} failed after {retries + 1} attempts: {last_error}") from last_error

    # ── Stats & configuration ────────────────────────────────────────────

    def get_stats(self) -> SourceStats:
        """Snapshot of the adapter's counters."""
        self._stats.rate_limit_remaining = self._minute_limiter.remaining
        return self._stats.model_copy()

    def reset_stats(self) -> None:
        self._stats = SourceStats(name=self.name, rate_limit_remaining=self._minute_limiter.remaining)

    def update_config(self, **changes: Any) -> SourceConfig:
        """Apply and re-validate configuration changes.

        Changing ``rate_limit`` starts fresh request windows.

        Raises:
            ConfigurationError: If the merged configuration is invalid.
        """
        merged = self._config.model_dump()
        merged.update(changes)
        try:
            new_config = SourceConfig.model_validate(merged)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration for source {self.name}: {e}") from e
        limits_changed = new_config.rate_limit != self._config.rate_limit
        self._config = new_config
        if limits_changed:
            self._build_limiters()
        logger.info("Configuration updated for source %s: %s", self.name, sorted(changes))
        return self.config
