"""Data models shared by adapters, coordinator and cache."""

from oppaggregator.models.opportunity import Opportunity, OpportunityStatus, OpportunityType
from oppaggregator.models.query import SearchParams, SortBy, SortOrder
from oppaggregator.models.response import SearchResult

__all__ = [
    "Opportunity",
    "OpportunityStatus",
    "OpportunityType",
    "SearchParams",
    "SearchResult",
    "SortBy",
    "SortOrder",
]
