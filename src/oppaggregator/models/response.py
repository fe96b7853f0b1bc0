"""Search result models — What the coordinator returns and the cache stores."""

from __future__ import annotations

from pydantic import BaseModel, Field

from oppaggregator.models.opportunity import Opportunity, OpportunityType


class TypeFacet(BaseModel):
    type: OpportunityType
    count: int


class LocationFacet(BaseModel):
    country: str
    count: int


class OrganizationFacet(BaseModel):
    name: str
    count: int


class Facets(BaseModel):
    """Aggregate counts over the returned page of results."""

    types: list[TypeFacet] = Field(default_factory=list)
    locations: list[LocationFacet] = Field(default_factory=list)
    organizations: list[OrganizationFacet] = Field(default_factory=list)


class SearchMeta(BaseModel):
    query: str = Field(default="", description="Original free-text query")
    took_ms: int = Field(default=0, description="Wall time of the originating search in ms")
    cached: bool = Field(default=False, description="Served from the result cache")
    similarity: float | None = Field(default=None, description="Similarity score for fuzzy cache hits")


class SearchResult(BaseModel):
    """Merged, ranked and paginated result of a multi-source search."""

    opportunities: list[Opportunity] = Field(default_factory=list)
    total: int = Field(default=0, description="Number of opportunities in this page")
    has_more: bool = Field(default=False, description="True when the page was filled to the limit")
    facets: Facets = Field(default_factory=Facets)
    meta: SearchMeta = Field(default_factory=SearchMeta)
