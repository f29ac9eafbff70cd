from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from jobfeed.services.filters import FeedFilters
from jobfeed.services.listings import CanonicalListing, Geography
from jobfeed.services.repository import (
    RepositoryNotFoundError,
    RepositoryPersistError,
    RepositoryValidationError,
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class InMemoryListingStore:
    """Process-local jobs table for local runs and tests.

    Mirrors the Postgres upsert contract: one row per (source, external_id),
    upstream fields refreshed on re-ingestion, staff decisions kept once a row
    is reviewed.
    """

    def __init__(self) -> None:
        self.rows: dict[tuple[str, str], CanonicalListing] = {}

    async def close(self) -> None:
        return None

    async def upsert_listings(self, listings: Sequence[CanonicalListing]) -> int:
        staged: dict[tuple[str, str], CanonicalListing] = {}
        for listing in listings:
            key = listing.identity_key
            if key is None:
                raise RepositoryPersistError("listing without identity cannot be persisted")
            staged[key] = self._merge(staged.get(key) or self.rows.get(key), listing)
        # The batch applies whole or not at all.
        self.rows.update(staged)
        return len(listings)

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
    ) -> list[dict[str, Any]]:
        filters = FeedFilters.create(
            q=q,
            industry=industry,
            location=location,
            min_wage=min_wage,
            approved_only=approved_only,
            limit=limit,
        )
        geography = Geography(state=state, county=county)
        matched = [listing for listing in self.rows.values() if filters.matches(listing, geography)]
        matched.sort(key=lambda listing: listing.id or "")
        matched.sort(key=lambda listing: listing.recency or _EPOCH, reverse=True)
        return [listing.to_public() for listing in matched[:limit]]

    async def review_listing(
        self,
        *,
        source: str,
        external_id: str,
        reviewed: bool | None = None,
        approved: bool | None = None,
        is_active: bool | None = None,
    ) -> dict[str, Any]:
        if reviewed is None and approved is None and is_active is None:
            raise RepositoryValidationError("at least one of reviewed, approved, is_active is required")
        listing = self.rows.get((source, external_id))
        if listing is None:
            raise RepositoryNotFoundError("listing not found")
        if reviewed is not None:
            listing.reviewed = reviewed
        if approved is not None:
            listing.approved = approved
        if is_active is not None:
            listing.is_active = is_active
        return listing.to_public()

    async def industry_metrics(self, *, state: str, county: str, limit: int = 8) -> list[dict[str, Any]]:
        geography = Geography(state=state, county=county)
        counts: dict[str, int] = defaultdict(int)
        wages: dict[str, list[float]] = defaultdict(list)
        for listing in self.rows.values():
            if listing.geography != geography or not listing.is_active:
                continue
            industry = listing.industry or "Uncategorized"
            counts[industry] += 1
            if listing.wage is not None:
                wages[industry].append(listing.wage)

        ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:limit]
        return [
            {
                "industry": industry,
                "jobs": jobs,
                "avg_hourly": round(sum(wages[industry]) / len(wages[industry]), 2) if wages[industry] else None,
            }
            for industry, jobs in ordered
        ]

    @staticmethod
    def _merge(existing: CanonicalListing | None, incoming: CanonicalListing) -> CanonicalListing:
        if existing is None:
            return replace(
                incoming,
                id=incoming.id or str(uuid4()),
                created_at=incoming.created_at or datetime.now(timezone.utc),
                flagged_reasons=set(incoming.flagged_reasons),
            )
        merged = replace(
            incoming,
            id=existing.id,
            created_at=existing.created_at,
            flagged_reasons=set(incoming.flagged_reasons),
            reviewed=existing.reviewed or incoming.reviewed,
        )
        if existing.reviewed:
            merged.approved = existing.approved
            merged.is_active = existing.is_active
        return merged
