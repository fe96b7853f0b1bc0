"""Opportunity model — Normalized record produced by every source adapter.

Identity within one source is the adapter-assigned ``id``. Identity across
sources is not guaranteed; the coordinator derives duplicates from
normalized fields instead.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


class OpportunityType(StrEnum):
    SCHOLARSHIP = "scholarship"
    FELLOWSHIP = "fellowship"
    INTERNSHIP = "internship"
    JOB = "job"
    GRANT = "grant"
    COMPETITION = "competition"
    COURSE = "course"
    FREELANCE = "freelance"
    VOLUNTEER = "volunteer"


class OpportunityStatus(StrEnum):
    ACTIVE = "active"
    EXPIRED = "expired"
    UPCOMING = "upcoming"
    DRAFT = "draft"


class ExperienceLevel(StrEnum):
    ENTRY = "entry"
    INTERMEDIATE = "intermediate"
    SENIOR = "senior"
    EXECUTIVE = "executive"


class RemoteType(StrEnum):
    REMOTE = "remote"
    HYBRID = "hybrid"
    ONSITE = "onsite"


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC so every comparison is between aware values."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class Organization(BaseModel):
    """Who offers the opportunity and where to apply."""

    name: str = Field(description="Organization name")
    website: str | None = Field(default=None, description="Organization homepage")
    application_url: str | None = Field(default=None, description="Direct application link")


class Location(BaseModel):
    country: str | None = Field(default=None, description="Country name or code")
    remote: RemoteType | None = Field(default=None, description="Remote / hybrid / onsite")


class CompensationAmount(BaseModel):
    min: float | None = None
    max: float | None = None
    currency: str = "USD"


class Compensation(BaseModel):
    type: str = Field(default="salary", description="salary, hourly, stipend, award, equity, unpaid")
    amount: CompensationAmount | None = None


class OpportunityDates(BaseModel):
    """Deadline and bookkeeping timestamps (all timezone-aware UTC)."""

    deadline: datetime | None = Field(default=None, description="Application deadline")
    last_updated: datetime = Field(default_factory=lambda: datetime.now(UTC), description="Last update at source")
    announced: datetime | None = Field(default=None, description="Publication / announcement date")

    @field_validator("deadline", "last_updated", "announced", mode="after")
    @classmethod
    def _aware(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)


class OpportunityMetadata(BaseModel):
    source: str = Field(description="Name of the source adapter that produced the record")
    source_url: str = Field(default="", description="URL the record was retrieved from")
    trust_score: float = Field(default=0.0, ge=0.0, le=100.0, description="Source reliability 0-100")
    tags: list[str] = Field(default_factory=list)


class Opportunity(BaseModel):
    """A scholarship, job, grant or similar listing normalized across sources."""

    id: str = Field(description="Adapter-assigned identifier")
    title: str
    description: str = ""
    summary: str = ""
    type: OpportunityType = OpportunityType.SCHOLARSHIP
    status: OpportunityStatus = OpportunityStatus.ACTIVE
    organization: Organization
    location: Location = Field(default_factory=Location)
    compensation: Compensation | None = None
    dates: OpportunityDates = Field(default_factory=OpportunityDates)
    metadata: OpportunityMetadata
