"""Google Custom Search adapter — Opportunity discovery over known listing sites.

Builds a Custom Search query restricted (via ``site:`` filters) to the
catalogue in ``sites.py``, pages through results ten at a time, and maps
each hit to an ``Opportunity``.

When the API key or search engine id is missing or a placeholder, the
adapter stays usable and answers with deterministic mock data.

API reference:
  GET https://www.googleapis.com/customsearch/v1
    ?q=<query>&cx=<engine id>&key=<api key>&start=<1-based offset>&num=<1..10>
"""

from __future__ import annotations

import hashlib
import logging
import re
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import urlsplit

import httpx

from oppaggregator.adapters.base.adapter import AdapterHealth, SourceAdapter
from oppaggregator.adapters.base.exceptions import AdapterError, AdapterFailureError, TransientError
from oppaggregator.adapters.google.sites import OPPORTUNITY_SITES, all_sites
from oppaggregator.config.settings import SourceConfig, is_placeholder
from oppaggregator.core.trust import TrustScorer
from oppaggregator.models.opportunity import (
    Location,
    Opportunity,
    OpportunityDates,
    OpportunityMetadata,
    OpportunityStatus,
    OpportunityType,
    Organization,
)
from oppaggregator.models.query import SearchParams

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.googleapis.com/customsearch/v1"
_USER_AGENT = "oppaggregator/0.1"
_PAGE_SIZE = 10
_PAGE_DELAY = 0.1
_MAX_RESULTS = 50
_OPPORTUNITY_TERMS = ("application", "deadline", "eligibility", "requirements")

_TYPE_KEYWORDS: list[tuple[OpportunityType, tuple[str, ...]]] = [
    (OpportunityType.SCHOLARSHIP, ("scholarship", "bursary")),
    (OpportunityType.FELLOWSHIP, ("fellowship",)),
    (OpportunityType.INTERNSHIP, ("internship", "intern")),
    (OpportunityType.JOB, ("job", "career", "position")),
    (OpportunityType.GRANT, ("grant", "funding")),
    (OpportunityType.COMPETITION, ("competition", "contest")),
]

_TAG_KEYWORDS: dict[str, tuple[str, ...]] = {
    "international": ("international", "global", "worldwide"),
    "undergraduate": ("undergraduate", "bachelor"),
    "graduate": ("graduate", "master", "phd", "doctoral"),
    "stem": ("stem", "science", "technology", "engineering", "math"),
    "research": ("research", "thesis", "dissertation"),
    "full-time": ("full-time", "fulltime"),
    "part-time": ("part-time", "parttime"),
    "remote": ("remote", "online", "virtual"),
}


class GoogleSearchAdapter(SourceAdapter):
    """Source adapter for the Google Custom Search JSON API.

    Args:
        config: Source configuration. ``api_key`` and ``search_engine_id``
            are required for live searches.
        client: Optional pre-built ``httpx.AsyncClient`` (tests inject one).
        clock: Monotonic time source for rate limiting.
        sleep: Backoff sleep coroutine.
    """

    def __init__(
        self,
        config: SourceConfig,
        *,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        kwargs: dict[str, Any] = {}
        if clock is not None:
            kwargs["clock"] = clock
        if sleep is not None:
            kwargs["sleep"] = sleep
        super().__init__(config, **kwargs)
        self._client = client
        self._owns_client = client is None
        self._trust = TrustScorer(all_sites(), seed=config.trust_seed)

    @property
    def base_url(self) -> str:
        return self._config.base_url or DEFAULT_BASE_URL

    async def initialize(self) -> None:
        """Create the HTTP client."""
        if not self.validate_config():
            logger.warning("Google Search source %s not configured, serving mock data", self.name)
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout,
                headers={"User-Agent": _USER_AGENT, "Accept": "application/json"},
            )
        logger.info("Google Search adapter initialized (%s)", self.name)

    async def shutdown(self) -> None:
        """Close the HTTP client if we created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    def validate_config(self) -> bool:
        return self._config.has_credentials and not is_placeholder(self._config.search_engine_id)

    # ── Search ───────────────────────────────────────────────────────────

    async def search(self, params: SearchParams) -> list[Opportunity]:
        if not self.validate_config():
            logger.warning("Google Search API not configured, returning mock data")
            return self._mock_data(params)

        query = self.build_query(params)
        limit = min(params.limit, _MAX_RESULTS)
        items = await self._fetch_all(query, limit)
        return [self._to_opportunity(item, params) for item in items][:limit]

    def build_query(self, params: SearchParams) -> str:
        """Compose the Custom Search query string.

        ``<query> (site:a OR site:b ...) ("application" OR ...) "<country>"``
        """
        base = params.query or "opportunity"

        if params.types:
            groups = [OPPORTUNITY_SITES[t] for t in params.types if t in OPPORTUNITY_SITES]
            site_filters = [" OR ".join(f"site:{site}" for site in sites) for sites in groups]
        else:
            site_filters = [" OR ".join(f"site:{site}" for site in all_sites())]

        terms = " OR ".join(f'"{term}"' for term in _OPPORTUNITY_TERMS)

        query = base
        if site_filters:
            query += f" ({' OR '.join(site_filters)})"
        query += f" ({terms})"
        if params.country:
            query += f' "{params.country}"'
        return query

    async def _fetch_all(self, query: str, limit: int) -> list[dict[str, Any]]:
        """Page through results; later pages failing keep what was collected."""
        items: list[dict[str, Any]] = []
        pages = -(-limit // _PAGE_SIZE)

        for page in range(pages):
            num = min(_PAGE_SIZE, limit - len(items))
            start = page * _PAGE_SIZE + 1
            if page:
                await self._sleep(_PAGE_DELAY)
            try:
                batch = await self._fetch_page(query, num, start)
            except AdapterError:
                if not items:
                    raise
                logger.warning("Search page %d failed for %s, keeping %d results", page + 1, self.name, len(items))
                break
            items.extend(batch)
            if len(items) >= limit or len(batch) < num:
                break

        return items[:limit]

    async def _fetch_page(self, query: str, num: int, start: int) -> list[dict[str, Any]]:
        return await self.with_retry(lambda: self._request(query, num, start))

    async def _request(self, query: str, num: int, start: int) -> list[dict[str, Any]]:
        if self._client is None:
            raise AdapterFailureError("Google Search client not initialized.")

        params = {
            "q": query,
            "cx": self._config.search_engine_id,
            "key": self._config.api_key,
            "start": str(start),
            "num": str(num),
            "fields": "items(title,snippet,link,displayLink,pagemap),searchInformation",
        }
        try:
            response = await self._client.get(self.base_url, params=params, timeout=self._config.timeout)
        except (httpx.TimeoutException, httpx.TransportError) as e:
            raise TransientError(f"Google Search request failed: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientError(f"Google Search returned HTTP {response.status_code}")
        if response.status_code >= 400:
            raise AdapterFailureError(f"Google Search returned HTTP {response.status_code}")

        data = response.json()
        if data.get("error"):
            raise AdapterFailureError(f"Google Search API error: {data['error'].get('message', 'unknown')}")
        return data.get("items") or []

    # ── Mapping ──────────────────────────────────────────────────────────

    def _to_opportunity(self, item: dict[str, Any], params: SearchParams) -> Opportunity:
        link = item.get("link", "")
        display_link = item.get("displayLink", "")
        metatags = (item.get("pagemap") or {}).get("metatags") or [{}]
        meta = metatags[0] if metatags else {}
        snippet = item.get("snippet") or ""
        now = datetime.now(UTC)

        return Opportunity(
            id=f"google-{hashlib.sha256(link.encode()).hexdigest()[:16]}",
            title=re.sub(r"\s+", " ", item.get("title", "")).strip()[:200],
            description=snippet,
            summary=(meta.get("og:description") or snippet)[:300],
            type=self._infer_type(item, params),
            status=OpportunityStatus.ACTIVE,
            organization=Organization(
                name=_organization_from(display_link),
                website=_origin(link),
                application_url=link or None,
            ),
            location=Location(country=params.country),
            dates=OpportunityDates(
                last_updated=now,
                announced=_parse_datetime(meta.get("article:published_time")) or now,
            ),
            metadata=OpportunityMetadata(
                source=self.name,
                source_url=link,
                trust_score=self._trust.score(display_link),
                tags=_extract_tags(item),
            ),
        )

    @staticmethod
    def _infer_type(item: dict[str, Any], params: SearchParams) -> OpportunityType:
        if len(params.types) == 1:
            return params.types[0]

        text = f"{item.get('title', '')} {item.get('snippet', '')}".lower()
        for opp_type, keywords in _TYPE_KEYWORDS:
            if any(keyword in text for keyword in keywords):
                return opp_type
        return OpportunityType.SCHOLARSHIP

    def _mock_data(self, params: SearchParams) -> list[Opportunity]:
        query = params.query or "opportunity"
        opp_type = params.types[0] if params.types else OpportunityType.SCHOLARSHIP
        now = datetime.now(UTC)

        return [
            Opportunity(
                id="mock-1",
                title=f"Mock {query} {opp_type.value}",
                description=f"This is a mock {opp_type.value} for {query}. Configure Google Search API for real data.",
                summary="Mock opportunity for testing purposes",
                type=opp_type,
                status=OpportunityStatus.ACTIVE,
                organization=Organization(
                    name="Mock Organization",
                    website="https://example.com",
                    application_url="https://example.com/apply",
                ),
                location=Location(country=params.country),
                dates=OpportunityDates(last_updated=now, deadline=now + timedelta(days=30)),
                metadata=OpportunityMetadata(
                    source=self.name,
                    source_url="https://example.com",
                    trust_score=75,
                    tags=["mock", "test"],
                ),
            )
        ]

    # ── Health ───────────────────────────────────────────────────────────

    async def get_health_status(self) -> AdapterHealth:
        if not self.validate_config():
            return AdapterHealth(healthy=False, message="Google Search API credentials not properly configured")

        try:
            await self._fetch_page("test", 1, 1)
            return AdapterHealth(healthy=True)
        except AdapterError as e:
            return AdapterHealth(healthy=False, message=f"Google Search API health check failed: {e}")


def _organization_from(display_link: str) -> str:
    host = re.sub(r"^www\.", "", display_link)
    return host.split(".")[0] if host else "unknown"


def _origin(url: str) -> str | None:
    parts = urlsplit(url)
    if parts.scheme and parts.netloc:
        return f"{parts.scheme}://{parts.netloc}"
    return url or None


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _extract_tags(item: dict[str, Any]) -> list[str]:
    text = f"{item.get('title', '')} {item.get('snippet', '')}".lower()
    return [tag for tag, keywords in _TAG_KEYWORDS.items() if any(keyword in text for keyword in keywords)]
