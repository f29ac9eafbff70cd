from __future__ import annotations

import asyncio
import logging
from typing import Any

import pytest

from jobfeed.core.config import Settings
from jobfeed.services.ingest import IngestionService, IngestionSourceError
from jobfeed.services.integrity import IntegrityPolicy
from jobfeed.services.listings import CanonicalListing, Geography, ListingSource
from jobfeed.services.repository import RepositoryPersistError
from jobfeed.services.sources.base import JobSource, SourceQuery, SourceResult
from jobfeed.services.store import InMemoryListingStore

MERCER = Geography(state="NJ", county="Mercer")


class ScriptedSource(JobSource):
    name = "adzuna"
    listing_source = ListingSource.EXTERNAL

    def __init__(self, outcomes: list[SourceResult]) -> None:
        self.outcomes = outcomes
        self.calls = 0

    async def fetch(self, query: SourceQuery) -> SourceResult:
        outcome = self.outcomes[min(self.calls, len(self.outcomes) - 1)]
        self.calls += 1
        return outcome


class FailingRepository:
    async def upsert_listings(self, listings: list[CanonicalListing]) -> int:
        raise RepositoryPersistError("jobs upsert failed: connection reset")


def _record(ad_id: str | None, title: str, **overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": ad_id,
        "title": title,
        "company": {"display_name": "Capital Health"},
        "location": {"display_name": "Trenton, Mercer County"},
        "description": "Patient transport.",
        "category": {"label": "Healthcare & Nursing Jobs"},
        "redirect_url": f"https://www.adzuna.com/land/ad/{ad_id}",
        "salary_min": 31200,
        "salary_max": 41600,
        "created": "2026-10-10T08:00:00Z",
    }
    record.update(overrides)
    return record


def _service(source: JobSource, repository: Any, attempts: int = 3) -> IngestionService:
    return IngestionService(
        source=source,
        repository=repository,
        integrity=IntegrityPolicy.from_settings(Settings()),
        geography=MERCER,
        query=SourceQuery(page_size=50),
        retry_attempts=attempts,
        retry_wait_seconds=0,
        retry_max_wait_seconds=0,
    )


def _ok(records: list[dict[str, Any]]) -> SourceResult:
    return SourceResult(source="adzuna", records=records)


def test_ingestion_is_idempotent_across_runs() -> None:
    records = [
        _record("1", "Patient Transporter"),
        _record("2", "Crypto Recruiter"),
        _record("1", "Patient Transporter II"),
        _record(None, "No Identity", redirect_url=None),
    ]
    store = InMemoryListingStore()
    service = _service(ScriptedSource([_ok(records)]), store)

    first = asyncio.run(service.run())
    snapshot = {key: listing.to_row() for key, listing in store.rows.items()}
    second = asyncio.run(service.run())

    assert first.fetched == 4
    assert first.normalized == 4
    assert first.dropped_without_identity == 1
    assert first.collapsed_duplicates == 1
    assert first.upserted == 2
    assert first.flagged == 1
    assert first.approved == 1
    assert second == first
    assert {key: listing.to_row() for key, listing in store.rows.items()} == snapshot
    assert store.rows[("external", "1")].title == "Patient Transporter II"
    assert store.rows[("external", "2")].flagged_reasons == {"bad_title_words"}


def test_transient_failures_are_retried_until_success(caplog: pytest.LogCaptureFixture) -> None:
    source = ScriptedSource(
        [
            SourceResult.failure("adzuna", "timeout", "slow"),
            SourceResult.failure("adzuna", "http_status", "status 502"),
            _ok([_record("1", "Patient Transporter")]),
        ]
    )
    store = InMemoryListingStore()

    with caplog.at_level(logging.WARNING, logger="jobfeed.services.ingest"):
        summary = asyncio.run(_service(source, store).run())

    assert source.calls == 3
    assert summary.upserted == 1
    attempt_logs = [record.getMessage() for record in caplog.records if "attempt failed" in record.getMessage()]
    assert len(attempt_logs) == 2
    assert "kind=timeout" in attempt_logs[0]
    assert "kind=http_status" in attempt_logs[1]


def test_exhausted_retries_raise_source_error() -> None:
    source = ScriptedSource([SourceResult.failure("adzuna", "transport", "refused")])

    with pytest.raises(IngestionSourceError) as exc_info:
        asyncio.run(_service(source, InMemoryListingStore(), attempts=2).run())

    assert source.calls == 2
    assert exc_info.value.error.kind == "transport"


def test_malformed_response_is_not_retried() -> None:
    source = ScriptedSource([SourceResult.failure("adzuna", "malformed", "no results array")])

    with pytest.raises(IngestionSourceError):
        asyncio.run(_service(source, InMemoryListingStore()).run())

    assert source.calls == 1


def test_persist_failure_propagates() -> None:
    source = ScriptedSource([_ok([_record("1", "Patient Transporter")])])

    with pytest.raises(RepositoryPersistError):
        asyncio.run(_service(source, FailingRepository()).run())
