"""Base contract for source adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Literal

from jobfeed.services.listings import ListingSource

SourceErrorKind = Literal["timeout", "transport", "http_status", "malformed", "unavailable", "store_error", "internal_error"]


@dataclass(frozen=True, slots=True)
class SourceQuery:
    keywords: str | None = None
    location_hint: str | None = None
    max_age_days: int = 3
    page_size: int = 20
    industry: str | None = None
    min_wage: float | None = None
    approved_only: bool = True


@dataclass(frozen=True, slots=True)
class SourceError:
    source: str
    kind: SourceErrorKind
    message: str


@dataclass(slots=True)
class SourceResult:
    source: str
    records: list[dict[str, Any]] = field(default_factory=list)
    error: SourceError | None = None
    cached: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, source: str, kind: SourceErrorKind, message: str) -> SourceResult:
        return cls(source=source, error=SourceError(source=source, kind=kind, message=message))


class JobSource(ABC):
    """One upstream origin. ``fetch`` reports failures as values and never raises."""

    name: str
    listing_source: ListingSource
    cacheable: bool = False

    def clamp(self, query: SourceQuery) -> SourceQuery:
        return query

    def cache_params(self, query: SourceQuery) -> dict[str, Any]:
        """Fields that determine the upstream response, used as the cache key."""
        return {
            "keywords": query.keywords,
            "location": query.location_hint,
            "max_age_days": query.max_age_days,
            "page_size": query.page_size,
            "industry": query.industry,
            "min_wage": query.min_wage,
            "approved_only": query.approved_only,
        }

    @abstractmethod
    async def fetch(self, query: SourceQuery) -> SourceResult:
        raise NotImplementedError


def bounded_int(value: Any, *, default: int, minimum: int, maximum: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return min(maximum, max(minimum, parsed))


def clamp_query(query: SourceQuery, *, max_page_size: int, max_age_days: int) -> SourceQuery:
    return replace(
        query,
        page_size=bounded_int(query.page_size, default=max_page_size, minimum=1, maximum=max_page_size),
        max_age_days=bounded_int(query.max_age_days, default=3, minimum=1, maximum=max_age_days),
    )
