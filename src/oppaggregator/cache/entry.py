"""Cache entry model."""

from __future__ import annotations

from pydantic import BaseModel, Field

from oppaggregator.models.query import SearchParams
from oppaggregator.models.response import SearchResult


class CacheEntry(BaseModel):
    """One cached search result and its bookkeeping.

    Times are seconds from the cache's clock. ``expires_at`` is fixed at
    creation; reads never extend it.
    """

    payload: SearchResult
    params: SearchParams
    created_at: float
    ttl: float = Field(gt=0, description="Time-to-live in seconds")
    access_count: int = 1
    last_access: float
    size_bytes: int = Field(default=0, description="Estimated serialized size")

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

    def touch(self, now: float) -> None:
        self.access_count += 1
        self.last_access = now
