from __future__ import annotations

import logging
from collections.abc import Sequence
from functools import lru_cache
from typing import Any

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from jobfeed.core.config import get_settings
from jobfeed.services.listings import CanonicalListing

logger = logging.getLogger(__name__)

_STORE_ERRORS = (pg_exc.PostgresError, pg_exc.InterfaceError, OSError)

LISTING_COLUMNS = """
  j.id::text as id,
  j.source,
  j.external_id,
  j.title,
  j.company,
  j.location,
  j.description,
  j.industry,
  j.wage,
  j.apply_link,
  j.created_at_external,
  j.created_at,
  j.state,
  j.county,
  j.is_active,
  j.reviewed,
  j.approved,
  j.flagged_reasons
"""

# Upstream fields always take the incoming value. Staff decisions survive
# re-ingestion once a row has been reviewed.
UPSERT_LISTING_SQL = """
insert into jobs as j (
  source,
  external_id,
  title,
  company,
  location,
  description,
  industry,
  wage,
  apply_link,
  created_at_external,
  state,
  county,
  is_active,
  reviewed,
  approved,
  flagged_reasons
)
values ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16::text[])
on conflict (source, external_id) do update
set
  title = excluded.title,
  company = excluded.company,
  location = excluded.location,
  description = excluded.description,
  industry = excluded.industry,
  wage = excluded.wage,
  apply_link = excluded.apply_link,
  created_at_external = excluded.created_at_external,
  state = excluded.state,
  county = excluded.county,
  flagged_reasons = excluded.flagged_reasons,
  is_active = case when j.reviewed then j.is_active else excluded.is_active end,
  approved = case when j.reviewed then j.approved else excluded.approved end,
  reviewed = j.reviewed or excluded.reviewed,
  updated_at = now()
"""


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


class RepositoryValidationError(RepositoryError):
    """Raised when payload validation fails before persistence."""


class RepositoryPersistError(RepositoryError):
    """Raised when a batched write fails; nothing from the batch is committed."""


class PostgresRepository:
    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def upsert_listings(self, listings: Sequence[CanonicalListing]) -> int:
        if not listings:
            return 0
        rows = [self._listing_to_params(listing) for listing in listings]
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    await conn.executemany(UPSERT_LISTING_SQL, rows)
        except _STORE_ERRORS as exc:
            logger.error("jobs upsert failed rows=%s error=%s", len(rows), exc)
            raise RepositoryPersistError(f"jobs upsert failed: {exc}") from exc
        return len(rows)

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
        conditions: list[str] = []
        params: list[Any] = []

        def bind(value: Any) -> str:
            params.append(value)
            return f"${len(params)}"

        conditions.append(f"j.state = {bind(state)}")
        conditions.append(f"j.county = {bind(county)}")
        conditions.append("j.is_active = true")
        if approved_only:
            conditions.append("j.approved = true")

        normalized_q = self._coerce_text(q)
        if normalized_q:
            token = bind(_like_pattern(normalized_q))
            conditions.append(
                "("
                f"j.title ilike {token} or j.company ilike {token} "
                f"or coalesce(j.industry, '') ilike {token} or j.location ilike {token}"
                ")"
            )

        normalized_industry = self._coerce_text(industry)
        if normalized_industry:
            conditions.append(f"j.industry = {bind(normalized_industry)}")

        normalized_location = self._coerce_text(location)
        if normalized_location:
            conditions.append(f"j.location ilike {bind(_like_pattern(normalized_location))}")

        if min_wage is not None:
            conditions.append(f"j.wage >= {bind(float(min_wage))}")

        where_sql = " and ".join(conditions)
        limit_token = bind(limit)

        pool = await self._get_pool()
        try:
            rows = await pool.fetch(
                f"""
                select
                {LISTING_COLUMNS}
                from jobs j
                where {where_sql}
                order by coalesce(j.created_at_external, j.created_at) desc, j.id asc
                limit {limit_token}
                """,
                *params,
            )
        except _STORE_ERRORS as exc:
            raise RepositoryError(f"jobs query failed: {exc}") from exc
        return [self._listing_row_to_dict(row) for row in rows]

    async def review_listing(
        self,
        *,
        source: str,
        external_id: str,
        reviewed: bool | None = None,
        approved: bool | None = None,
        is_active: bool | None = None,
    ) -> dict[str, Any]:
        assignments: list[str] = []
        params: list[Any] = [source, external_id]

        def bind(value: Any) -> str:
            params.append(value)
            return f"${len(params)}"

        if reviewed is not None:
            assignments.append(f"reviewed = {bind(reviewed)}")
        if approved is not None:
            assignments.append(f"approved = {bind(approved)}")
        if is_active is not None:
            assignments.append(f"is_active = {bind(is_active)}")
        if not assignments:
            raise RepositoryValidationError("at least one of reviewed, approved, is_active is required")

        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                update jobs j
                set {", ".join(assignments)}, updated_at = now()
                where j.source = $1 and j.external_id = $2
                returning
                {LISTING_COLUMNS}
                """,
                *params,
            )
        except _STORE_ERRORS as exc:
            raise RepositoryError(f"jobs review update failed: {exc}") from exc
        if not row:
            raise RepositoryNotFoundError("listing not found")
        return self._listing_row_to_dict(row)

    async def industry_metrics(self, *, state: str, county: str, limit: int = 8) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        try:
            rows = await pool.fetch(
                """
                select
                  coalesce(industry, 'Uncategorized') as industry,
                  count(*)::int as jobs,
                  round(avg(wage)::numeric, 2)::float8 as avg_hourly
                from jobs
                where state = $1
                  and county = $2
                  and is_active = true
                group by 1
                order by jobs desc, industry asc
                limit $3
                """,
                state,
                county,
                limit,
            )
        except _STORE_ERRORS as exc:
            raise RepositoryError(f"industry metrics query failed: {exc}") from exc
        return [
            {
                "industry": row["industry"],
                "jobs": int(row["jobs"]),
                "avg_hourly": self._coerce_float(row["avg_hourly"]),
            }
            for row in rows
        ]

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("JF_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=15,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    @staticmethod
    def _listing_to_params(listing: CanonicalListing) -> tuple[Any, ...]:
        row = listing.to_row()
        return (
            row["source"],
            row["external_id"],
            row["title"],
            row["company"],
            row["location"],
            row["description"],
            row["industry"],
            row["wage"],
            row["apply_link"],
            row["created_at_external"],
            row["state"],
            row["county"],
            row["is_active"],
            row["reviewed"],
            row["approved"],
            row["flagged_reasons"],
        )

    @classmethod
    def _listing_row_to_dict(cls, row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "source": row["source"],
            "external_id": row["external_id"],
            "title": row["title"],
            "company": row["company"],
            "location": row["location"],
            "description": row["description"],
            "industry": row["industry"],
            "wage": cls._coerce_float(row["wage"]),
            "apply_link": row["apply_link"],
            "created_at_external": row["created_at_external"],
            "created_at": row["created_at"],
            "state": row["state"],
            "county": row["county"],
            "is_active": bool(row["is_active"]),
            "reviewed": bool(row["reviewed"]),
            "approved": bool(row["approved"]),
            "flagged_reasons": list(row["flagged_reasons"] or []),
        }

    @staticmethod
    def _coerce_text(value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return str(value)

    @staticmethod
    def _coerce_float(value: Any) -> float | None:
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None


def _like_pattern(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


@lru_cache
def get_repository():
    settings = get_settings()
    if settings.store_backend == "memory":
        from jobfeed.services.store import InMemoryListingStore

        return InMemoryListingStore()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
    )
