from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from opentelemetry import trace
from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt, wait_exponential

from jobfeed.core.config import Settings
from jobfeed.services.dedupe import dedupe_by_identity
from jobfeed.services.integrity import IntegrityPolicy
from jobfeed.services.listings import CanonicalListing, Geography
from jobfeed.services.normalize import normalize_many
from jobfeed.services.sources.adzuna import AdzunaSource
from jobfeed.services.sources.base import JobSource, SourceError, SourceQuery, SourceResult

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

TRANSIENT_ERROR_KINDS = frozenset({"timeout", "transport", "http_status"})


class ListingWriter(Protocol):
    async def upsert_listings(self, listings: list[CanonicalListing]) -> int: ...


class IngestionSourceError(Exception):
    """Raised when the external source still fails after all retry attempts."""

    def __init__(self, error: SourceError) -> None:
        super().__init__(f"{error.source} {error.kind}: {error.message}")
        self.error = error


@dataclass(slots=True)
class IngestSummary:
    fetched: int = 0
    normalized: int = 0
    dropped_without_identity: int = 0
    collapsed_duplicates: int = 0
    flagged: int = 0
    approved: int = 0
    upserted: int = 0


def _is_transient_failure(result: SourceResult) -> bool:
    return result.error is not None and result.error.kind in TRANSIENT_ERROR_KINDS


def _last_result(retry_state: RetryCallState) -> SourceResult:
    return retry_state.outcome.result()


class IngestionService:
    """Scheduled write path: fetch, normalize, score, dedupe, persist."""

    def __init__(
        self,
        *,
        source: JobSource,
        repository: ListingWriter,
        integrity: IntegrityPolicy,
        geography: Geography,
        query: SourceQuery,
        retry_attempts: int = 3,
        retry_wait_seconds: float = 1.0,
        retry_max_wait_seconds: float = 8.0,
    ) -> None:
        self.source = source
        self.repository = repository
        self.integrity = integrity
        self.geography = geography
        self.query = query
        self.retry_attempts = max(1, retry_attempts)
        self.retry_wait_seconds = retry_wait_seconds
        self.retry_max_wait_seconds = retry_max_wait_seconds

    async def run(self) -> IngestSummary:
        with tracer.start_as_current_span("ingest.run") as span:
            span.set_attribute("ingest.source", self.source.name)
            result = await self._fetch_with_retry()
            if result.error is not None:
                logger.error(
                    "ingestion fetch failed source=%s kind=%s message=%s",
                    result.error.source,
                    result.error.kind,
                    result.error.message,
                )
                raise IngestionSourceError(result.error)

            listings = normalize_many(result.records, self.source.listing_source, geography=self.geography)
            listings = self.integrity.apply(listings)
            deduped = dedupe_by_identity(listings)

            # Persist errors propagate; the batch is all-or-nothing.
            upserted = await self.repository.upsert_listings(deduped.listings)

            summary = IngestSummary(
                fetched=len(result.records),
                normalized=len(listings),
                dropped_without_identity=deduped.dropped_without_identity,
                collapsed_duplicates=deduped.collapsed_duplicates,
                flagged=sum(1 for listing in deduped.listings if listing.flagged_reasons),
                approved=sum(1 for listing in deduped.listings if listing.approved),
                upserted=upserted,
            )
            span.set_attribute("ingest.upserted", upserted)
            logger.info(
                "ingestion complete source=%s fetched=%s upserted=%s flagged=%s dropped=%s",
                self.source.name,
                summary.fetched,
                summary.upserted,
                summary.flagged,
                summary.dropped_without_identity,
            )
            return summary

    async def _fetch_with_retry(self) -> SourceResult:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_wait_seconds, max=self.retry_max_wait_seconds),
            retry=retry_if_result(_is_transient_failure),
            before_sleep=self._log_failed_attempt,
            retry_error_callback=_last_result,
        )
        return await retrying(self.source.fetch, self.query)

    def _log_failed_attempt(self, retry_state: RetryCallState) -> None:
        result = retry_state.outcome.result()
        logger.warning(
            "ingestion fetch attempt failed source=%s attempt=%s kind=%s",
            self.source.name,
            retry_state.attempt_number,
            result.error.kind if result.error else None,
        )


def build_ingestion_service(settings: Settings, repository: ListingWriter) -> IngestionService:
    """Raises ``ConfigurationError`` when Adzuna credentials are missing."""
    source = AdzunaSource.from_settings(settings)
    return IngestionService(
        source=source,
        repository=repository,
        integrity=IntegrityPolicy.from_settings(settings),
        geography=Geography(state=settings.target_state, county=settings.target_county),
        query=SourceQuery(
            keywords=settings.default_keywords,
            location_hint=settings.default_location,
            max_age_days=settings.ingest_max_age_days,
            page_size=settings.ingest_page_size,
            approved_only=False,
        ),
        retry_attempts=settings.ingest_retry_attempts,
        retry_max_wait_seconds=settings.ingest_retry_max_wait_seconds,
    )
