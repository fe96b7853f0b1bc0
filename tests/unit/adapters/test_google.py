"""Tests for the Google Custom Search adapter."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from oppaggregator.adapters.base.exceptions import AdapterFailureError
from oppaggregator.adapters.google.adapter import GoogleSearchAdapter
from oppaggregator.config.settings import SourceConfig
from oppaggregator.core.trust import TrustScorer
from oppaggregator.models.opportunity import OpportunityType
from oppaggregator.models.query import LocationFilter, SearchParams

# ── Fixtures ──


def _item(title: str, link: str, display: str, snippet: str = "", published: str | None = None) -> dict[str, Any]:
    item: dict[str, Any] = {"title": title, "link": link, "displayLink": display, "snippet": snippet}
    if published:
        item["pagemap"] = {"metatags": [{"article:published_time": published, "og:description": f"About {title}"}]}
    return item


@pytest.fixture
def sample_api_response() -> dict[str, Any]:
    """Sample Custom Search response with two hits."""
    return {
        "items": [
            _item(
                "Chevening  Scholarship 2027",
                "https://www.scholars4dev.com/chevening",
                "www.scholars4dev.com",
                "Fully funded graduate scholarship for international students.",
                published="2026-05-01T09:00:00Z",
            ),
            _item(
                "Robotics Internship at Acme",
                "https://jobs.acme.io/robotics-intern",
                "jobs.acme.io",
                "Paid summer internship working on robotics research.",
            ),
        ],
        "searchInformation": {"totalResults": "2", "searchTime": 0.12},
    }


@pytest.fixture
def config() -> SourceConfig:
    return SourceConfig(
        name="google",
        kind="google",
        api_key="AIza-test-key",
        search_engine_id="0123:abc",
        max_retries=2,
        trust_seed=7,
    )


@pytest.fixture
def adapter(config: SourceConfig, recording_sleep) -> GoogleSearchAdapter:
    """Adapter with a mocked HTTP client."""
    return GoogleSearchAdapter(config, client=MagicMock(spec=httpx.AsyncClient), sleep=recording_sleep)


def _response(status: int = 200, payload: dict[str, Any] | None = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload or {}
    return response


# ── Configuration ──


class TestGoogleConfiguration:
    def test_valid_credentials(self, adapter: GoogleSearchAdapter) -> None:
        assert adapter.validate_config()

    @pytest.mark.parametrize(
        ("api_key", "engine_id"),
        [
            (None, "0123:abc"),
            ("your_api_key_here", "0123:abc"),
            ("AIza-test-key", "placeholder-cx"),
            ("AIza-test-key", None),
        ],
    )
    def test_placeholder_credentials_invalid(self, api_key: str | None, engine_id: str | None) -> None:
        cfg = SourceConfig(name="google", api_key=api_key, search_engine_id=engine_id)
        assert not GoogleSearchAdapter(cfg).validate_config()

    @pytest.mark.asyncio
    async def test_initialize_creates_client(self) -> None:
        adapter = GoogleSearchAdapter(SourceConfig(name="google"))
        await adapter.initialize()
        assert isinstance(adapter._client, httpx.AsyncClient)
        await adapter.shutdown()
        assert adapter._client is None


# ── Degraded mode ──


class TestMockData:
    @pytest.mark.asyncio
    async def test_unconfigured_source_returns_mock_data(self) -> None:
        adapter = GoogleSearchAdapter(SourceConfig(name="google", api_key="placeholder"))
        params = SearchParams(query="robotics", types=[OpportunityType.GRANT])

        first = await adapter.execute(params)
        second = await adapter.execute(params)

        assert len(first) == 1
        assert first[0].id == "mock-1"
        assert first[0].type == OpportunityType.GRANT
        assert first[0].title == "Mock robotics grant"
        assert first[0].metadata.trust_score == 75
        assert first[0].dates.deadline is not None
        assert [o.title for o in first] == [o.title for o in second]

    @pytest.mark.asyncio
    async def test_unconfigured_health_is_unhealthy(self) -> None:
        adapter = GoogleSearchAdapter(SourceConfig(name="google"))
        health = await adapter.get_health_status()
        assert not health.healthy
        assert "credentials" in (health.message or "")


# ── Query building ──


class TestBuildQuery:
    def test_default_query_uses_all_sites(self, adapter: GoogleSearchAdapter) -> None:
        query = adapter.build_query(SearchParams())
        assert query.startswith("opportunity (")
        assert "site:scholars4dev.com" in query
        assert "site:kaggle.com" in query
        assert '"eligibility"' in query

    def test_type_restricts_sites(self, adapter: GoogleSearchAdapter) -> None:
        query = adapter.build_query(SearchParams(query="data science", types=["competition"]))
        assert query.startswith("data science (")
        assert "site:kaggle.com" in query
        assert "site:indeed.com" not in query

    def test_country_is_quoted(self, adapter: GoogleSearchAdapter) -> None:
        query = adapter.build_query(SearchParams(query="phd", location=LocationFilter(country="Kenya")))
        assert query.endswith(' "Kenya"')


# ── Search ──


class TestGoogleSearch:
    @pytest.mark.asyncio
    async def test_search_maps_items(self, adapter: GoogleSearchAdapter, sample_api_response: dict) -> None:
        adapter._client.get = AsyncMock(return_value=_response(payload=sample_api_response))  # type: ignore[union-attr]

        results = await adapter.search(SearchParams(query="scholarship", limit=10))

        assert len(results) == 2
        first, second = results
        assert first.title == "Chevening Scholarship 2027"
        assert first.type == OpportunityType.SCHOLARSHIP
        assert first.organization.name == "scholars4dev"
        assert first.organization.website == "https://www.scholars4dev.com"
        assert first.organization.application_url == "https://www.scholars4dev.com/chevening"
        assert first.summary == "About Chevening  Scholarship 2027"
        assert first.dates.announced is not None and first.dates.announced.year == 2026
        assert "graduate" in first.metadata.tags
        assert "international" in first.metadata.tags
        assert first.metadata.source == "google"
        assert 85 <= first.metadata.trust_score <= 100

        assert second.type == OpportunityType.INTERNSHIP
        assert 50 <= second.metadata.trust_score <= 85
        assert first.id.startswith("google-")

        call = adapter._client.get.call_args  # type: ignore[union-attr]
        assert call.kwargs["params"]["cx"] == "0123:abc"
        assert call.kwargs["params"]["num"] == "10"
        assert call.kwargs["params"]["start"] == "1"

    @pytest.mark.asyncio
    async def test_single_requested_type_wins(self, adapter: GoogleSearchAdapter, sample_api_response: dict) -> None:
        adapter._client.get = AsyncMock(return_value=_response(payload=sample_api_response))  # type: ignore[union-attr]
        results = await adapter.search(SearchParams(types=["fellowship"]))
        assert {o.type for o in results} == {OpportunityType.FELLOWSHIP}

    @pytest.mark.asyncio
    async def test_paginates_in_pages_of_ten(self, adapter: GoogleSearchAdapter, recording_sleep) -> None:
        page = {"items": [_item(f"Grant {i}", f"https://g.org/{i}", "g.org") for i in range(10)]}
        adapter._client.get = AsyncMock(return_value=_response(payload=page))  # type: ignore[union-attr]

        results = await adapter.search(SearchParams(limit=25))

        assert len(results) == 25
        starts = [c.kwargs["params"]["start"] for c in adapter._client.get.call_args_list]  # type: ignore[union-attr]
        nums = [c.kwargs["params"]["num"] for c in adapter._client.get.call_args_list]  # type: ignore[union-attr]
        assert starts == ["1", "11", "21"]
        assert nums == ["10", "10", "5"]
        assert recording_sleep.delays == [0.1, 0.1]

    @pytest.mark.asyncio
    async def test_transient_error_is_retried(
        self, adapter: GoogleSearchAdapter, sample_api_response: dict, recording_sleep
    ) -> None:
        adapter._client.get = AsyncMock(  # type: ignore[union-attr]
            side_effect=[
                httpx.ConnectError("Connection refused"),
                _response(status=503),
                _response(payload=sample_api_response),
            ]
        )

        results = await adapter.search(SearchParams(limit=10))

        assert len(results) == 2
        assert recording_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_retries_exhausted_raise_failure(self, adapter: GoogleSearchAdapter) -> None:
        adapter._client.get = AsyncMock(side_effect=httpx.ReadTimeout("slow"))  # type: ignore[union-attr]

        with pytest.raises(AdapterFailureError, match="3 attempts"):
            await adapter.search(SearchParams())
        assert adapter._client.get.call_count == 3  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, adapter: GoogleSearchAdapter) -> None:
        adapter._client.get = AsyncMock(return_value=_response(status=403))  # type: ignore[union-attr]

        with pytest.raises(AdapterFailureError, match="403"):
            await adapter.search(SearchParams())
        assert adapter._client.get.call_count == 1  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_api_error_body(self, adapter: GoogleSearchAdapter) -> None:
        payload = {"error": {"code": 400, "message": "Invalid Value"}}
        adapter._client.get = AsyncMock(return_value=_response(payload=payload))  # type: ignore[union-attr]

        with pytest.raises(AdapterFailureError, match="Invalid Value"):
            await adapter.search(SearchParams())

    @pytest.mark.asyncio
    async def test_later_page_failure_keeps_collected(self, adapter: GoogleSearchAdapter, recording_sleep) -> None:
        page = {"items": [_item(f"Job {i}", f"https://j.io/{i}", "j.io") for i in range(10)]}
        adapter._client.get = AsyncMock(  # type: ignore[union-attr]
            side_effect=[_response(payload=page), _response(status=403)]
        )

        results = await adapter.search(SearchParams(limit=20))
        assert len(results) == 10
        assert recording_sleep.delays == [0.1]

    @pytest.mark.asyncio
    async def test_health_check(self, adapter: GoogleSearchAdapter) -> None:
        adapter._client.get = AsyncMock(return_value=_response(payload={"items": []}))  # type: ignore[union-attr]
        assert (await adapter.get_health_status()).healthy

        adapter._client.get = AsyncMock(return_value=_response(status=401))  # type: ignore[union-attr]
        health = await adapter.get_health_status()
        assert not health.healthy
        assert "401" in (health.message or "")


# ── Trust scoring ──


class TestTrustScorer:
    def test_unseeded_scores_are_midpoints(self) -> None:
        scorer = TrustScorer(["grants.gov"])
        assert scorer.score("www.grants.gov") == 92.5
        assert scorer.score("random.blog") == 67.5

    def test_same_seed_same_scores(self) -> None:
        a = TrustScorer(["grants.gov"], seed=42)
        b = TrustScorer(["grants.gov"], seed=42)
        assert [a.score("grants.gov") for _ in range(5)] == [b.score("grants.gov") for _ in range(5)]

    def test_seeded_scores_stay_in_band(self) -> None:
        scorer = TrustScorer(["grants.gov"], seed=3)
        for _ in range(50):
            assert 85 <= scorer.score("grants.gov") <= 100
            assert 50 <= scorer.score("elsewhere.com") <= 85
