"""Merge-stage helpers — Deduplication, filtering, sorting and facet counts.

All functions are pure and operate on already-normalized ``Opportunity``
lists so the coordinator can compose them in order:

    deduplicate → filter → sort → paginate → facets
"""

from __future__ import annotations

import hashlib
import logging
import re
from collections import Counter
from collections.abc import Iterable
from datetime import UTC, datetime
from functools import cmp_to_key

from oppaggregator.models.opportunity import Opportunity, OpportunityType
from oppaggregator.models.query import SearchParams, SortBy, SortOrder
from oppaggregator.models.response import Facets, LocationFacet, OrganizationFacet, TypeFacet

logger = logging.getLogger(__name__)

# Missing deadlines sort as if they were this far away.
FAR_FUTURE = datetime(2099, 12, 31, tzinfo=UTC)

# Trust scores closer than this are considered equally relevant.
RELEVANCE_TIE_WINDOW = 5.0

_WHITESPACE = re.compile(r"\s+")


# ── Deduplication ────────────────────────────────────────────────────────


def opportunity_hash(opportunity: Opportunity) -> str:
    """Normalized identity of an opportunity across sources.

    Built from the lower-cased, whitespace-collapsed title, the organization
    name with all whitespace removed, and the lower-cased application URL.
    """
    title = _WHITESPACE.sub(" ", opportunity.title.lower()).strip()
    org = _WHITESPACE.sub("", opportunity.organization.name.lower())
    url = (opportunity.organization.application_url or "").lower()
    return hashlib.sha256(f"{title}|{org}|{url}".encode()).hexdigest()


def deduplicate(opportunities: Iterable[Opportunity]) -> list[Opportunity]:
    """Keep the first occurrence of each opportunity hash.

    Survivorship depends on input order, so callers pass results in
    source-priority order.
    """
    seen: set[str] = set()
    kept: list[Opportunity] = []
    total = 0

    for opportunity in opportunities:
        total += 1
        key = opportunity_hash(opportunity)
        if key in seen:
            logger.debug(
                "Duplicate opportunity filtered: %s (%s)",
                opportunity.title,
                opportunity.organization.name,
            )
            continue
        seen.add(key)
        kept.append(opportunity)

    logger.info("Deduplication completed: %d -> %d (%d removed)", total, len(kept), total - len(kept))
    return kept


# ── Filtering ────────────────────────────────────────────────────────────


def filter_by_type(opportunities: list[Opportunity], types: Iterable[OpportunityType]) -> list[Opportunity]:
    wanted = set(types)
    if not wanted:
        return opportunities
    return [o for o in opportunities if o.type in wanted]


def filter_by_deadline(
    opportunities: list[Opportunity],
    params: SearchParams,
    now: datetime | None = None,
) -> list[Opportunity]:
    """Apply the deadline window from ``params.date_range``.

    Entries without a deadline always survive. Entries with one must fall
    inside the window and still be in the future.
    """
    date_range = params.date_range
    if date_range is None or not date_range.is_set:
        return opportunities

    now = now or datetime.now(UTC)
    kept: list[Opportunity] = []
    for opportunity in opportunities:
        deadline = opportunity.dates.deadline
        if deadline is None:
            kept.append(opportunity)
            continue
        if date_range.deadline_after is not None and deadline < date_range.deadline_after:
            continue
        if date_range.deadline_before is not None and deadline > date_range.deadline_before:
            continue
        if deadline > now:
            kept.append(opportunity)
    return kept


# ── Sorting ──────────────────────────────────────────────────────────────


def _compensation_value(opportunity: Opportunity) -> float:
    comp = opportunity.compensation
    if comp is None or comp.amount is None:
        return 0.0
    return comp.amount.max or comp.amount.min or 0.0


def _relevance_cmp(a: Opportunity, b: Opportunity) -> int:
    diff = b.metadata.trust_score - a.metadata.trust_score
    if abs(diff) > RELEVANCE_TIE_WINDOW:
        return 1 if diff > 0 else -1
    # Within the tie window, fresher listings win.
    a_ts, b_ts = a.dates.last_updated, b.dates.last_updated
    if a_ts == b_ts:
        return 0
    return 1 if b_ts > a_ts else -1


def sort_opportunities(opportunities: list[Opportunity], params: SearchParams) -> list[Opportunity]:
    """Return a new list ordered by ``params.sort_by``.

    ``relevance`` ignores ``sort_order``: trust score descending, with
    scores within 5 points ordered by most recent ``last_updated``.
    """
    descending = params.sort_order == SortOrder.DESC

    if params.sort_by == SortBy.DEADLINE:
        return sorted(opportunities, key=lambda o: o.dates.deadline or FAR_FUTURE, reverse=descending)
    if params.sort_by == SortBy.POSTED:
        return sorted(opportunities, key=lambda o: o.dates.last_updated, reverse=descending)
    if params.sort_by == SortBy.COMPENSATION:
        return sorted(opportunities, key=_compensation_value, reverse=descending)
    return sorted(opportunities, key=cmp_to_key(_relevance_cmp))


def paginate(opportunities: list[Opportunity], offset: int, limit: int) -> list[Opportunity]:
    return opportunities[offset : offset + limit]


# ── Facets ───────────────────────────────────────────────────────────────


def build_facets(opportunities: list[Opportunity]) -> Facets:
    """Count types, countries and organizations, in first-seen order."""
    types = Counter(o.type for o in opportunities)
    countries = Counter(o.location.country for o in opportunities if o.location.country)
    organizations = Counter(o.organization.name for o in opportunities)

    return Facets(
        types=[TypeFacet(type=t, count=c) for t, c in types.items()],
        locations=[LocationFacet(country=k, count=c) for k, c in countries.items()],
        organizations=[OrganizationFacet(name=k, count=c) for k, c in organizations.items()],
    )
