from __future__ import annotations

import asyncio
from typing import Any

import pytest

from jobfeed.core.config import ConfigurationError, Settings
from jobfeed.services.cache import TTLCache
from jobfeed.services.feed import NO_RESULTS_MESSAGE, FeedService
from jobfeed.services.filters import FeedFilters
from jobfeed.services.integrity import IntegrityPolicy
from jobfeed.services.listings import Geography, ListingSource
from jobfeed.services.sources.adzuna import AdzunaSource
from jobfeed.services.sources.base import JobSource, SourceQuery, SourceResult

MERCER = Geography(state="NJ", county="Mercer")


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class FakeSource(JobSource):
    def __init__(
        self,
        name: str,
        listing_source: ListingSource,
        *,
        records: list[dict[str, Any]] | None = None,
        error_kind: str | None = None,
        delay: float = 0.0,
        cacheable: bool = False,
    ) -> None:
        self.name = name
        self.listing_source = listing_source
        self.records = records or []
        self.error_kind = error_kind
        self.delay = delay
        self.cacheable = cacheable
        self.calls: list[SourceQuery] = []

    async def fetch(self, query: SourceQuery) -> SourceResult:
        self.calls.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error_kind:
            return SourceResult.failure(self.name, self.error_kind, f"{self.name} failed")  # type: ignore[arg-type]
        return SourceResult(source=self.name, records=list(self.records))


def _stored_row(external_id: str, title: str, **overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": f"row-{external_id}",
        "source": "internal",
        "external_id": external_id,
        "title": title,
        "company": "Diner",
        "location": "Trenton, NJ",
        "description": "Kitchen work.",
        "industry": "Culinary",
        "wage": 17.0,
        "apply_link": f"https://www.indeed.com/viewjob?jk={external_id}",
        "created_at_external": f"2026-10-0{external_id[-1]}T09:00:00Z",
        "state": "NJ",
        "county": "Mercer",
        "approved": True,
    }
    row.update(overrides)
    return row


def _adzuna_record(ad_id: str, title: str, **overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": ad_id,
        "title": title,
        "company": {"display_name": "Diner"},
        "location": {"display_name": "Trenton, NJ"},
        "description": "Kitchen work.",
        "redirect_url": f"https://www.adzuna.com/land/ad/{ad_id}",
        "salary_min": 31200,
        "salary_max": 41600,
        "created": "2026-10-09T09:00:00Z",
    }
    record.update(overrides)
    return record


def _service(
    internal: JobSource,
    external: JobSource | None = None,
    *,
    clock: FakeClock | None = None,
    timeout: float = 1.0,
    empty_result_mode: str = "empty",
) -> FeedService:
    return FeedService(
        internal=internal,
        external=external,
        integrity=IntegrityPolicy.from_settings(Settings()),
        geography=MERCER,
        cache=TTLCache(300, clock=clock or FakeClock()),
        source_timeout_seconds=timeout,
        empty_result_mode=empty_result_mode,  # type: ignore[arg-type]
    )


def test_slow_external_source_times_out_without_failing_the_feed() -> None:
    internal = FakeSource(
        "internal_store",
        ListingSource.INTERNAL,
        records=[_stored_row("s1", "Line Cook"), _stored_row("s2", "Dishwasher"), _stored_row("s3", "Host")],
    )
    external = FakeSource("adzuna", ListingSource.EXTERNAL, delay=5.0)
    service = _service(internal, external, timeout=0.05)

    result = asyncio.run(service.feed(FeedFilters.create(), live=True))

    assert len(result.listings) == 3
    diagnostics = {diagnostic.source: diagnostic for diagnostic in result.sources}
    assert diagnostics["internal_store"].ok is True
    assert diagnostics["internal_store"].count == 3
    assert diagnostics["adzuna"].ok is False
    assert diagnostics["adzuna"].error_kind == "timeout"


def test_out_of_range_live_record_does_not_fail_the_feed() -> None:
    internal = FakeSource("internal_store", ListingSource.INTERNAL, records=[_stored_row("s1", "Line Cook")])
    external = FakeSource(
        "adzuna",
        ListingSource.EXTERNAL,
        records=[_adzuna_record("a1", "Prep Cook", salary_min=10**400, created="0001-01-01T00:00:00+05:00")],
    )
    service = _service(internal, external)

    result = asyncio.run(service.feed(FeedFilters.create(approved_only=False), live=True))
    live = asyncio.run(service.live_jobs())

    assert {listing.title for listing in result.listings} == {"Line Cook", "Prep Cook"}
    assert [listing.title for listing in live.listings] == ["Prep Cook"]
    assert live.listings[0].created_at_external is None


def test_internal_listing_wins_fuzzy_duplicate_over_live_listing() -> None:
    internal = FakeSource("internal_store", ListingSource.INTERNAL, records=[_stored_row("s1", "Line Cook")])
    external = FakeSource(
        "adzuna",
        ListingSource.EXTERNAL,
        records=[_adzuna_record("a1", "line  cook"), _adzuna_record("a2", "Prep Cook")],
    )
    service = _service(internal, external)

    result = asyncio.run(service.feed(FeedFilters.create(), live=True))

    titles = [listing.title for listing in result.listings]
    assert titles == ["Prep Cook", "Line Cook"]
    line_cook = result.listings[1]
    assert line_cook.source is ListingSource.INTERNAL


def test_live_records_pass_through_the_same_filters() -> None:
    internal = FakeSource("internal_store", ListingSource.INTERNAL)
    external = FakeSource(
        "adzuna",
        ListingSource.EXTERNAL,
        records=[
            _adzuna_record("a1", "Prep Cook"),
            _adzuna_record("a2", "Crypto Promoter"),
            _adzuna_record("a3", "Cashier", salary_min=20800, salary_max=20800),
        ],
    )
    service = _service(internal, external)

    approved_only = asyncio.run(service.feed(FeedFilters.create(min_wage=15), live=True))
    assert [listing.title for listing in approved_only.listings] == ["Prep Cook"]

    everything = asyncio.run(service.feed(FeedFilters.create(approved_only=False), live=True))
    assert {listing.title for listing in everything.listings} == {"Prep Cook", "Crypto Promoter", "Cashier"}


def test_results_are_ordered_newest_first_and_truncated() -> None:
    internal = FakeSource(
        "internal_store",
        ListingSource.INTERNAL,
        records=[
            _stored_row("s1", "Oldest"),
            _stored_row("s9", "Newest"),
            _stored_row("s5", "Middle"),
            _stored_row("s0", "Undated", created_at_external=None),
        ],
    )
    service = _service(internal)

    result = asyncio.run(service.feed(FeedFilters.create(limit=3)))

    assert [listing.title for listing in result.listings] == ["Newest", "Middle", "Oldest"]
    assert result.to_response()["meta"]["count"] == 3


def test_live_results_are_cached_until_ttl_boundary() -> None:
    clock = FakeClock()
    internal = FakeSource("internal_store", ListingSource.INTERNAL)
    external = FakeSource(
        "adzuna",
        ListingSource.EXTERNAL,
        records=[_adzuna_record("a1", "Prep Cook")],
        cacheable=True,
    )
    service = _service(internal, external, clock=clock)

    first = asyncio.run(service.live_jobs(keywords="cook"))
    assert first.sources[0].cached is False

    clock.now = 299.0
    second = asyncio.run(service.live_jobs(keywords="  COOK "))
    assert second.sources[0].cached is True
    assert len(external.calls) == 1

    clock.now = 301.0
    third = asyncio.run(service.live_jobs(keywords="cook"))
    assert third.sources[0].cached is False
    assert len(external.calls) == 2


def test_failed_source_results_are_not_cached() -> None:
    internal = FakeSource("internal_store", ListingSource.INTERNAL)
    external = FakeSource("adzuna", ListingSource.EXTERNAL, error_kind="http_status", cacheable=True)
    service = _service(internal, external)

    asyncio.run(service.live_jobs(keywords="cook"))
    asyncio.run(service.live_jobs(keywords="cook"))

    assert len(external.calls) == 2
    assert len(service.cache) == 0


def test_unexpected_exception_in_source_becomes_internal_error() -> None:
    class ExplodingSource(FakeSource):
        async def fetch(self, query: SourceQuery) -> SourceResult:
            raise RuntimeError("boom")

    internal = FakeSource("internal_store", ListingSource.INTERNAL, records=[_stored_row("s1", "Line Cook")])
    service = _service(internal, ExplodingSource("adzuna", ListingSource.EXTERNAL))

    result = asyncio.run(service.feed(FeedFilters.create(), live=True))

    assert [listing.title for listing in result.listings] == ["Line Cook"]
    assert result.sources[1].error_kind == "internal_error"


def test_empty_result_mode_controls_message() -> None:
    internal = FakeSource("internal_store", ListingSource.INTERNAL)

    plain = asyncio.run(_service(internal).feed(FeedFilters.create()))
    assert plain.message is None
    assert "message" not in plain.to_response()["meta"]

    suggested = asyncio.run(_service(internal, empty_result_mode="suggest_broaden").feed(FeedFilters.create()))
    assert suggested.message == NO_RESULTS_MESSAGE
    assert suggested.to_response()["meta"]["message"] == NO_RESULTS_MESSAGE


def test_live_read_without_external_source_is_a_configuration_error() -> None:
    service = _service(FakeSource("internal_store", ListingSource.INTERNAL))

    with pytest.raises(ConfigurationError):
        asyncio.run(service.feed(FeedFilters.create(), live=True))
    with pytest.raises(ConfigurationError):
        asyncio.run(service.live_jobs())


def test_live_jobs_reports_clamped_query() -> None:
    class ClampingSource(FakeSource):
        def clamp(self, query: SourceQuery) -> SourceQuery:
            return SourceQuery(
                keywords=query.keywords,
                location_hint=query.location_hint,
                max_age_days=min(query.max_age_days, 14),
                page_size=min(query.page_size, 50),
                approved_only=query.approved_only,
            )

    external = ClampingSource("adzuna", ListingSource.EXTERNAL)
    service = _service(FakeSource("internal_store", ListingSource.INTERNAL), external)

    result = asyncio.run(service.live_jobs(keywords="cook", where="Ewing", max_age_days=60, limit=500))

    assert result.query == {"q": "cook", "where": "Ewing", "days": 14, "limit": 50}
    assert external.calls[0].page_size == 50


def test_live_jobs_defaults_to_configured_page_size() -> None:
    external = FakeSource("adzuna", ListingSource.EXTERNAL)
    service = FeedService(
        internal=FakeSource("internal_store", ListingSource.INTERNAL),
        external=external,
        integrity=IntegrityPolicy.from_settings(Settings()),
        geography=MERCER,
        cache=TTLCache(300, clock=FakeClock()),
        default_page_size=7,
    )

    result = asyncio.run(service.live_jobs())

    assert external.calls[0].page_size == 7
    assert result.query["limit"] == 7


def test_live_feed_requests_differing_only_in_local_filters_share_a_cache_entry() -> None:
    class CountingAdzuna(AdzunaSource):
        def __init__(self) -> None:
            super().__init__(app_id="a", app_key="b")
            self.calls = 0

        async def fetch(self, query: SourceQuery) -> SourceResult:
            self.calls += 1
            return SourceResult(source=self.name, records=[_adzuna_record("a1", "Prep Cook")])

    external = CountingAdzuna()
    service = _service(FakeSource("internal_store", ListingSource.INTERNAL), external)

    asyncio.run(service.feed(FeedFilters.create(q="cook"), live=True))
    second = asyncio.run(service.feed(FeedFilters.create(q="cook", min_wage=15, industry="Culinary"), live=True))

    assert external.calls == 1
    diagnostics = {diagnostic.source: diagnostic for diagnostic in second.sources}
    assert diagnostics["adzuna"].cached is True
