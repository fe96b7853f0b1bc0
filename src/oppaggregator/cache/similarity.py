"""Search-parameter similarity and relatedness."""

from __future__ import annotations

from collections.abc import Iterable

from oppaggregator.models.query import SearchParams

QUERY_WEIGHT = 0.4
TYPE_WEIGHT = 0.3
COUNTRY_WEIGHT = 0.2
SOURCE_WEIGHT = 0.1


def jaccard(a: Iterable[object], b: Iterable[object]) -> float:
    left, right = set(a), set(b)
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


def _normalized_query(params: SearchParams) -> str:
    return (params.query or "").lower().strip()


def search_similarity(a: SearchParams, b: SearchParams) -> float:
    """Weighted similarity in [0, 1].

    Each component only contributes when it is present on the relevant
    side(s): query tokens when both searches have text, types and sources
    when either search names some, country when both name one.
    """
    score = 0.0

    if a.query and b.query:
        qa, qb = _normalized_query(a), _normalized_query(b)
        score += QUERY_WEIGHT if qa == qb else QUERY_WEIGHT * jaccard(qa.split(), qb.split())

    if a.types or b.types:
        score += TYPE_WEIGHT * jaccard(a.types, b.types)

    if a.country and b.country and a.country.lower() == b.country.lower():
        score += COUNTRY_WEIGHT

    if a.sources or b.sources:
        score += SOURCE_WEIGHT * jaccard(a.sources, b.sources)

    return round(score, 6)


def are_related(a: SearchParams, b: SearchParams) -> bool:
    """Whether a data change affecting *a* should also invalidate *b*.

    Related means the same type set plus either the same query text or the
    same source set.
    """
    if set(a.types) != set(b.types):
        return False
    return _normalized_query(a) == _normalized_query(b) or set(a.sources) == set(b.sources)
