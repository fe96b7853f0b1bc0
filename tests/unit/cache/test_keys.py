"""Tests for cache key derivation and search similarity."""

from __future__ import annotations

import pytest

from oppaggregator.cache.keys import KEY_LENGTH, derive_cache_key, normalize_params
from oppaggregator.cache.similarity import are_related, jaccard, search_similarity
from oppaggregator.models.query import LocationFilter, SearchParams


class TestDeriveCacheKey:
    def test_bounded_hex_key(self) -> None:
        key = derive_cache_key(SearchParams(query="x" * 500))
        assert len(key) == KEY_LENGTH == 32
        int(key, 16)

    def test_array_order_and_query_case_ignored(self) -> None:
        a = SearchParams(query="  Robotics ", types=["job", "internship"], sources=["b", "a"], tags=["x", "y"])
        b = SearchParams(query="robotics", types=["internship", "job"], sources=["a", "b"], tags=["y", "x"])
        assert derive_cache_key(a) == derive_cache_key(b)

    def test_duplicate_array_elements_ignored(self) -> None:
        a = SearchParams(query="robotics", types=["job", "job"], tags=["x", "x"], sources=["a", "a"])
        b = SearchParams(query="robotics", types=["job"], tags=["x"], sources=["a"])
        assert derive_cache_key(a) == derive_cache_key(b)

    @pytest.mark.parametrize(
        "other",
        [
            SearchParams(query="robotics", offset=10),
            SearchParams(query="robotics", limit=20),
            SearchParams(query="robotics", sort_by="deadline"),
            SearchParams(query="robotics", location=LocationFilter(country="Kenya")),
            SearchParams(query="finance"),
        ],
    )
    def test_distinct_searches_distinct_keys(self, other: SearchParams) -> None:
        assert derive_cache_key(SearchParams(query="robotics")) != derive_cache_key(other)

    def test_missing_fields_use_defaults(self) -> None:
        normalized = normalize_params(SearchParams())
        assert normalized["query"] == ""
        assert normalized["location"] == {}
        assert normalized["sort_by"] == "relevance"
        assert normalized["sort_order"] == "desc"


class TestSimilarity:
    def test_jaccard(self) -> None:
        assert jaccard({1, 2}, {2, 3}) == pytest.approx(1 / 3)
        assert jaccard([], []) == 0.0

    def test_identical_searches(self) -> None:
        p = SearchParams(query="robotics", types=["job"], location=LocationFilter(country="Kenya"), sources=["g"])
        assert search_similarity(p, p) == pytest.approx(1.0)

    def test_query_token_overlap(self) -> None:
        a = SearchParams(query="robotics internship")
        b = SearchParams(query="robotics")
        assert search_similarity(a, b) == pytest.approx(0.2)

    def test_country_case_insensitive(self) -> None:
        a = SearchParams(location=LocationFilter(country="kenya"))
        b = SearchParams(location=LocationFilter(country="Kenya"))
        assert search_similarity(a, b) == pytest.approx(0.2)

    def test_one_sided_types_count_as_mismatch(self) -> None:
        a = SearchParams(query="robotics", types=["job"])
        b = SearchParams(query="robotics")
        assert search_similarity(a, b) == pytest.approx(0.4)

    def test_related_requires_same_types(self) -> None:
        a = SearchParams(query="robotics", types=["job"])
        assert are_related(a, SearchParams(query="Robotics", types=["job"]))
        assert not are_related(a, SearchParams(query="robotics", types=["grant"]))

    def test_related_by_sources(self) -> None:
        a = SearchParams(query="robotics", types=["job"], sources=["google"])
        b = SearchParams(query="finance", types=["job"], sources=["google"])
        c = SearchParams(query="finance", types=["job"], sources=["other"])
        assert are_related(a, b)
        assert not are_related(a, c)
