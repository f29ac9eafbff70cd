from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from opentelemetry import trace

from jobfeed.core.config import ConfigurationError, EmptyResultMode, Settings
from jobfeed.services.cache import TTLCache, query_signature
from jobfeed.services.dedupe import dedupe_fuzzy
from jobfeed.services.filters import FeedFilters
from jobfeed.services.integrity import IntegrityPolicy
from jobfeed.services.listings import CanonicalListing, Geography, ListingSource
from jobfeed.services.normalize import normalize_many
from jobfeed.services.sources.adzuna import AdzunaSource
from jobfeed.services.sources.base import JobSource, SourceQuery, SourceResult
from jobfeed.services.sources.internal_store import InternalStoreSource, ListingReader

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

NO_RESULTS_MESSAGE = "No jobs found. Try broadening your search."

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(slots=True)
class SourceDiagnostic:
    source: str
    ok: bool
    count: int = 0
    cached: bool = False
    error_kind: str | None = None
    error: str | None = None

    @classmethod
    def from_result(cls, result: SourceResult) -> SourceDiagnostic:
        return cls(
            source=result.source,
            ok=result.ok,
            count=len(result.records),
            cached=result.cached,
            error_kind=result.error.kind if result.error else None,
            error=result.error.message if result.error else None,
        )


@dataclass(slots=True)
class FeedResult:
    listings: list[CanonicalListing]
    sources: list[SourceDiagnostic]
    query: dict[str, Any] = field(default_factory=dict)
    message: str | None = None

    def to_response(self) -> dict[str, Any]:
        meta: dict[str, Any] = {"count": len(self.listings), "query": self.query}
        if self.message:
            meta["message"] = self.message
        return {
            "jobs": [listing.to_public() for listing in self.listings],
            "meta": meta,
            "sources": [asdict(diagnostic) for diagnostic in self.sources],
        }


class FeedService:
    """Read path: fan out to sources, normalize, filter, merge and rank.

    One instance lives for the process lifetime and owns the result cache.
    Source failures surface as diagnostics; the request itself still succeeds.
    """

    def __init__(
        self,
        *,
        internal: JobSource,
        external: JobSource | None,
        integrity: IntegrityPolicy,
        geography: Geography,
        cache: TTLCache[list[dict[str, Any]]],
        source_timeout_seconds: float = 8.0,
        empty_result_mode: EmptyResultMode = "empty",
        default_max_age_days: int = 3,
        default_page_size: int = 20,
    ) -> None:
        self.internal = internal
        self.external = external
        self.integrity = integrity
        self.geography = geography
        self.cache = cache
        self.source_timeout_seconds = source_timeout_seconds
        self.empty_result_mode = empty_result_mode
        self.default_max_age_days = default_max_age_days
        self.default_page_size = default_page_size

    async def feed(self, filters: FeedFilters, *, live: bool = False) -> FeedResult:
        sources = [self.internal]
        if live:
            sources.append(self._require_external())

        query = SourceQuery(
            keywords=filters.q,
            location_hint=filters.location,
            max_age_days=self.default_max_age_days,
            page_size=filters.limit,
            industry=filters.industry,
            min_wage=filters.min_wage,
            approved_only=filters.approved_only,
        )
        results = await asyncio.gather(*(self._fetch_one(source, query) for source in sources))

        merged: list[CanonicalListing] = []
        for source, result in zip(sources, results, strict=True):
            listings = self._canonicalize(source, result)
            merged.extend(listing for listing in listings if filters.matches(listing, self.geography))

        ranked = rank_by_recency(dedupe_fuzzy(merged))[: filters.limit]
        return FeedResult(
            listings=ranked,
            sources=[SourceDiagnostic.from_result(result) for result in results],
            query={
                "q": filters.q,
                "industry": filters.industry,
                "min_wage": filters.min_wage,
                "location": filters.location,
                "approved": filters.approved_only,
                "limit": filters.limit,
                "live": live,
            },
            message=self._empty_message(ranked),
        )

    async def live_jobs(
        self,
        *,
        keywords: str | None = None,
        where: str | None = None,
        max_age_days: int | None = None,
        limit: int | None = None,
    ) -> FeedResult:
        source = self._require_external()
        query = source.clamp(
            SourceQuery(
                keywords=keywords,
                location_hint=where,
                max_age_days=max_age_days if max_age_days is not None else self.default_max_age_days,
                page_size=limit if limit is not None else self.default_page_size,
                approved_only=False,
            )
        )
        result = await self._fetch_one(source, query)
        listings = rank_by_recency(dedupe_fuzzy(self._canonicalize(source, result)))
        return FeedResult(
            listings=listings,
            sources=[SourceDiagnostic.from_result(result)],
            query={
                "q": query.keywords,
                "where": query.location_hint,
                "days": query.max_age_days,
                "limit": query.page_size,
            },
            message=self._empty_message(listings),
        )

    async def _fetch_one(self, source: JobSource, query: SourceQuery) -> SourceResult:
        bounded = source.clamp(query)
        cache_key = query_signature(source.name, source.cache_params(bounded)) if source.cacheable else None
        if cache_key is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug("source cache hit source=%s", source.name)
                return SourceResult(source=source.name, records=cached, cached=True)

        with tracer.start_as_current_span("feed.source_fetch") as span:
            span.set_attribute("feed.source", source.name)
            try:
                result = await asyncio.wait_for(source.fetch(bounded), timeout=self.source_timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning(
                    "source fetch timed out source=%s timeout_seconds=%s",
                    source.name,
                    self.source_timeout_seconds,
                )
                result = SourceResult.failure(source.name, "timeout", f"{source.name} timed out")
            except Exception:
                logger.exception("source fetch raised source=%s", source.name)
                result = SourceResult.failure(source.name, "internal_error", f"{source.name} failed unexpectedly")
            span.set_attribute("feed.source_ok", result.ok)
            span.set_attribute("feed.source_count", len(result.records))

        if cache_key is not None and result.ok:
            self.cache.set(cache_key, result.records)
        return result

    def _canonicalize(self, source: JobSource, result: SourceResult) -> list[CanonicalListing]:
        if not result.ok:
            return []
        listings = normalize_many(result.records, source.listing_source, geography=self.geography)
        if source.listing_source is ListingSource.EXTERNAL:
            listings = self.integrity.apply(listings)
        return listings

    def _require_external(self) -> JobSource:
        if self.external is None:
            logger.error("external source requested but Adzuna credentials are not configured")
            raise ConfigurationError("external source is not configured")
        return self.external

    def _empty_message(self, listings: list[CanonicalListing]) -> str | None:
        if not listings and self.empty_result_mode == "suggest_broaden":
            return NO_RESULTS_MESSAGE
        return None


def rank_by_recency(listings: list[CanonicalListing]) -> list[CanonicalListing]:
    """Newest first; undated records sink to the end, ties keep merge order."""
    dated = [listing for listing in listings if listing.recency is not None]
    undated = [listing for listing in listings if listing.recency is None]
    dated.sort(key=lambda listing: listing.recency or _OLDEST, reverse=True)
    return dated + undated


def build_feed_service(settings: Settings, repository: ListingReader) -> FeedService:
    geography = Geography(state=settings.target_state, county=settings.target_county)
    try:
        external: JobSource | None = AdzunaSource.from_settings(settings)
    except ConfigurationError:
        logger.warning("Adzuna credentials not configured; live external reads disabled")
        external = None
    return FeedService(
        internal=InternalStoreSource(repository, geography),
        external=external,
        integrity=IntegrityPolicy.from_settings(settings),
        geography=geography,
        cache=TTLCache(settings.cache_ttl_seconds, max_entries=settings.cache_max_entries),
        source_timeout_seconds=settings.source_timeout_seconds,
        empty_result_mode=settings.empty_result_mode,
        default_max_age_days=settings.default_max_age_days,
        default_page_size=settings.default_page_size,
    )


def get_feed_service(request: Request) -> FeedService:
    return request.app.state.feed_service
