from __future__ import annotations

import logging
from typing import Any, Protocol

from jobfeed.services.listings import Geography, ListingSource
from jobfeed.services.repository import RepositoryError, RepositoryUnavailableError
from jobfeed.services.sources.base import JobSource, SourceQuery, SourceResult, bounded_int

logger = logging.getLogger(__name__)

STORE_MAX_PAGE_SIZE = 100


class ListingReader(Protocol):
    async def list_listings(
        self,
        *,
        state: str,
        county: str,
        limit: int,
        q: str | None = None,
        industry: str | None = None,
        location: str | None = None,
        min_wage: float | None = None,
        approved_only: bool = True,
    ) -> list[dict[str, Any]]: ...


class InternalStoreSource(JobSource):
    """Listings already persisted in the jobs table for the target geography."""

    name = "internal_store"
    listing_source = ListingSource.INTERNAL

    def __init__(self, repository: ListingReader, geography: Geography) -> None:
        self.repository = repository
        self.geography = geography

    async def fetch(self, query: SourceQuery) -> SourceResult:
        try:
            rows = await self.repository.list_listings(
                state=self.geography.state,
                county=self.geography.county,
                limit=bounded_int(query.page_size, default=20, minimum=1, maximum=STORE_MAX_PAGE_SIZE),
                q=query.keywords,
                industry=query.industry,
                location=query.location_hint,
                min_wage=query.min_wage,
                approved_only=query.approved_only,
            )
        except RepositoryUnavailableError as exc:
            logger.warning("internal store unavailable error=%s", exc)
            return SourceResult.failure(self.name, "unavailable", "listing store is unavailable")
        except RepositoryError as exc:
            logger.warning("internal store query failed error=%s", exc)
            return SourceResult.failure(self.name, "store_error", "listing store query failed")
        return SourceResult(source=self.name, records=rows)
