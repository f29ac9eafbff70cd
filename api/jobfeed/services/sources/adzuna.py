from __future__ import annotations

import logging
from typing import Any

import httpx

from jobfeed.core.config import DEFAULT_KEYWORDS, Settings
from jobfeed.services.listings import ListingSource
from jobfeed.services.sources.base import JobSource, SourceQuery, SourceResult, clamp_query

logger = logging.getLogger(__name__)

ADZUNA_MAX_PAGE_SIZE = 50
ADZUNA_MAX_AGE_DAYS = 14


class AdzunaSource(JobSource):
    """Adzuna search API, one page per call, newest first."""

    name = "adzuna"
    listing_source = ListingSource.EXTERNAL
    cacheable = True

    def __init__(
        self,
        *,
        app_id: str,
        app_key: str,
        country: str = "us",
        base_url: str = "https://api.adzuna.com/v1/api/jobs",
        default_keywords: str = DEFAULT_KEYWORDS,
        default_location: str = "Mercer County, New Jersey",
        timeout_seconds: float = 8.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.app_id = app_id
        self.app_key = app_key
        self.country = country
        self.base_url = base_url.rstrip("/")
        self.default_keywords = default_keywords
        self.default_location = default_location
        self.timeout_seconds = timeout_seconds
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings, *, client: httpx.AsyncClient | None = None) -> AdzunaSource:
        app_id, app_key = settings.require_adzuna_credentials()
        return cls(
            app_id=app_id,
            app_key=app_key,
            country=settings.adzuna_country,
            base_url=settings.adzuna_base_url,
            default_keywords=settings.default_keywords,
            default_location=settings.default_location,
            timeout_seconds=settings.source_timeout_seconds,
            client=client,
        )

    @property
    def search_url(self) -> str:
        return f"{self.base_url}/{self.country}/search/1"

    def clamp(self, query: SourceQuery) -> SourceQuery:
        return clamp_query(query, max_page_size=ADZUNA_MAX_PAGE_SIZE, max_age_days=ADZUNA_MAX_AGE_DAYS)

    def build_params(self, query: SourceQuery) -> dict[str, str]:
        bounded = self.clamp(query)
        return {
            "app_id": self.app_id,
            "app_key": self.app_key,
            "results_per_page": str(bounded.page_size),
            "what": bounded.keywords or self.default_keywords,
            "where": bounded.location_hint or self.default_location,
            "max_days_old": str(bounded.max_age_days),
            "sort_by": "date",
        }

    def cache_params(self, query: SourceQuery) -> dict[str, Any]:
        params = self.build_params(query)
        return {
            "keywords": params["what"],
            "location": params["where"],
            "max_age_days": params["max_days_old"],
            "page_size": params["results_per_page"],
        }

    async def fetch(self, query: SourceQuery) -> SourceResult:
        params = self.build_params(query)
        try:
            if self._client is not None:
                response = await self._client.get(self.search_url, params=params, headers=_default_headers())
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds, headers=_default_headers()) as client:
                    response = await client.get(self.search_url, params=params)
        except httpx.TimeoutException as exc:
            logger.warning("adzuna request timed out what=%r error=%s", params["what"], exc)
            return SourceResult.failure(self.name, "timeout", "adzuna request timed out")
        except httpx.HTTPError as exc:
            logger.warning("adzuna transport failure what=%r error=%s", params["what"], exc)
            return SourceResult.failure(self.name, "transport", f"adzuna transport failure: {exc.__class__.__name__}")

        if not response.is_success:
            logger.warning(
                "adzuna responded with error status=%s body=%s",
                response.status_code,
                response.text[:500],
            )
            return SourceResult.failure(
                self.name,
                "http_status",
                f"adzuna responded with status {response.status_code}",
            )

        try:
            payload: Any = response.json()
        except ValueError:
            return SourceResult.failure(self.name, "malformed", "adzuna response body is not JSON")

        results = payload.get("results") if isinstance(payload, dict) else None
        if not isinstance(results, list):
            return SourceResult.failure(self.name, "malformed", "adzuna response has no results array")

        records = [item for item in results if isinstance(item, dict)]
        logger.info("adzuna fetch ok count=%s what=%r where=%r", len(records), params["what"], params["where"])
        return SourceResult(source=self.name, records=records)


def _default_headers() -> dict[str, str]:
    return {"User-Agent": "jobfeed/1.0", "Accept": "application/json"}
