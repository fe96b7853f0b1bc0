"""Search request models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from oppaggregator.models.opportunity import ExperienceLevel, OpportunityType, ensure_utc


class SortBy(StrEnum):
    RELEVANCE = "relevance"
    DEADLINE = "deadline"
    POSTED = "posted"
    COMPENSATION = "compensation"


class SortOrder(StrEnum):
    ASC = "asc"
    DESC = "desc"


def _split_csv(v: Any) -> Any:
    """Accept the comma-delimited wire form as well as a list."""
    if isinstance(v, str):
        return [part.strip() for part in v.split(",") if part.strip()]
    return v


class LocationFilter(BaseModel):
    model_config = ConfigDict(frozen=True)

    country: str | None = None
    remote: bool | None = None


class CompensationFilter(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_amount: float | None = None
    currency: str | None = None


class DateRangeFilter(BaseModel):
    model_config = ConfigDict(frozen=True)

    deadline_after: datetime | None = None
    deadline_before: datetime | None = None

    @field_validator("deadline_after", "deadline_before", mode="after")
    @classmethod
    def _aware(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    @property
    def is_set(self) -> bool:
        return self.deadline_after is not None or self.deadline_before is not None


class SearchParams(BaseModel):
    """Immutable description of one opportunity search.

    Array-valued filters are order-insensitive: the cache key and the
    relatedness checks treat them as sets.
    """

    model_config = ConfigDict(frozen=True)

    query: str | None = Field(default=None, max_length=500, description="Free-text query")
    types: list[OpportunityType] = Field(default_factory=list, description="Requested opportunity types")
    location: LocationFilter | None = None
    compensation: CompensationFilter | None = None
    experience: list[ExperienceLevel] = Field(default_factory=list)
    date_range: DateRangeFilter | None = None
    tags: list[str] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list, description="Source allowlist (empty = all)")
    limit: int = Field(default=10, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)
    sort_by: SortBy = SortBy.RELEVANCE
    sort_order: SortOrder = SortOrder.DESC

    @field_validator("types", "experience", "tags", "sources", mode="before")
    @classmethod
    def _csv(cls, v: Any) -> Any:
        return _split_csv(v)

    @property
    def country(self) -> str | None:
        return self.location.country if self.location else None

    @classmethod
    def from_page(cls, page: int, page_size: int, **kwargs: Any) -> SearchParams:
        """Build params from 1-indexed page numbering."""
        return cls(limit=page_size, offset=max(page - 1, 0) * page_size, **kwargs)
