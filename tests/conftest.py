"""Shared test fixtures and configuration."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from oppaggregator.adapters.base.adapter import AdapterHealth, SourceAdapter
from oppaggregator.config.settings import RateLimitConfig, Settings, SourceConfig
from oppaggregator.models.opportunity import (
    Location,
    Opportunity,
    OpportunityDates,
    OpportunityMetadata,
    OpportunityType,
    Organization,
)
from oppaggregator.models.query import SearchParams

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced time source (seconds)."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Backoff sleep stand-in that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class StubSource(SourceAdapter):
    """In-memory source returning canned results (or raising a canned error)."""

    def __init__(
        self,
        config: SourceConfig,
        results: list[Opportunity] | None = None,
        error: Exception | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(config, **kwargs)
        self.results = results or []
        self.error = error
        self.calls: list[SearchParams] = []

    async def search(self, params: SearchParams) -> list[Opportunity]:
        self.calls.append(params)
        if self.error is not None:
            raise self.error
        return list(self.results)

    def validate_config(self) -> bool:
        return True

    async def get_health_status(self) -> AdapterHealth:
        if self.error is not None:
            return AdapterHealth(healthy=False, message=str(self.error))
        return AdapterHealth(healthy=True)


def make_opportunity(
    id: str = "opp-1",
    title: str = "CS Scholarship",
    org: str = "Acme",
    url: str | None = "http://a",
    *,
    type: OpportunityType = OpportunityType.SCHOLARSHIP,
    source: str = "stub",
    trust: float = 80.0,
    last_updated: datetime = NOW,
    deadline: datetime | None = None,
    country: str | None = None,
) -> Opportunity:
    return Opportunity(
        id=id,
        title=title,
        type=type,
        organization=Organization(name=org, application_url=url),
        location=Location(country=country),
        dates=OpportunityDates(last_updated=last_updated, deadline=deadline),
        metadata=OpportunityMetadata(source=source, trust_score=trust),
    )


@pytest.fixture
def settings() -> Settings:
    """Create a test Settings instance with defaults."""
    return Settings(_env_file=None, debug=True)  # type: ignore[call-arg]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def source_config() -> Callable[..., SourceConfig]:
    """Factory for SourceConfig with test-friendly defaults."""

    def _make(name: str = "stub", **overrides: Any) -> SourceConfig:
        data: dict[str, Any] = {
            "name": name,
            "kind": "stub",
            "api_key": "test-key",
            "rate_limit": RateLimitConfig(requests_per_minute=100),
            "max_retries": 2,
        }
        data.update(overrides)
        return SourceConfig(**data)

    return _make


@pytest.fixture
def make_source(
    source_config: Callable[..., SourceConfig],
    clock: FakeClock,
    recording_sleep: RecordingSleep,
) -> Callable[..., StubSource]:
    """Factory for StubSource instances sharing the fake clock."""

    def _make(
        name: str = "stub",
        results: list[Opportunity] | None = None,
        error: Exception | None = None,
        **config_overrides: Any,
    ) -> StubSource:
        return StubSource(
            source_config(name, **config_overrides),
            results=results,
            error=error,
            clock=clock,
            sleep=recording_sleep,
        )

    return _make


@pytest.fixture
def opportunity() -> Callable[..., Opportunity]:
    return make_opportunity


@pytest.fixture
def future() -> Callable[[int], datetime]:
    """Deadline ``days`` from the real current time."""

    def _future(days: int) -> datetime:
        return datetime.now(UTC) + timedelta(days=days)

    return _future


@pytest.fixture
def stub_source_class() -> type[StubSource]:
    return StubSource
