from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

ListingSourceValue = Literal["external", "internal"]


class ListingOut(BaseModel):
    id: str | None = None
    source: ListingSourceValue
    external_id: str | None = None
    title: str
    company: str
    location: str
    description: str
    industry: str | None = None
    wage: float | None = None
    apply_link: str | None = None
    created_at_external: datetime | None = None
    created_at: datetime | None = None
    state: str
    county: str
    is_active: bool = True
    reviewed: bool = False
    approved: bool = False
    flagged_reasons: list[str] = Field(default_factory=list)


class SourceDiagnosticOut(BaseModel):
    source: str
    ok: bool
    count: int = 0
    cached: bool = False
    error_kind: str | None = None
    error: str | None = None


class FeedMetaOut(BaseModel):
    count: int
    query: dict[str, Any] = Field(default_factory=dict)
    message: str | None = None


class FeedResponse(BaseModel):
    jobs: list[ListingOut]
    meta: FeedMetaOut
    sources: list[SourceDiagnosticOut]


class ReviewPatchRequest(BaseModel):
    reviewed: bool | None = None
    approved: bool | None = None
    is_active: bool | None = None


class IngestSummaryOut(BaseModel):
    fetched: int
    normalized: int
    dropped_without_identity: int
    collapsed_duplicates: int
    flagged: int
    approved: int
    upserted: int


class IndustryMetricOut(BaseModel):
    industry: str
    jobs: int
    avg_hourly: float | None = None
