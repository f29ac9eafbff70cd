from __future__ import annotations

import asyncio
import os
import subprocess
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

from jobfeed.services.listings import CanonicalListing, Geography, ListingSource
from jobfeed.services.repository import (
    PostgresRepository,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
)

SCRIPT_PATH = Path(__file__).resolve().parents[2] / "scripts" / "render_jobs_schema.py"
MERCER = Geography(state="NJ", county="Mercer")


def _listing(external_id: str, **overrides: object) -> CanonicalListing:
    values: dict[str, object] = {
        "title": "Machine Operator",
        "company": "Mercer Manufacturing",
        "location": "Ewing, NJ",
        "description": "Run the line.",
        "source": ListingSource.EXTERNAL,
        "geography": MERCER,
        "external_id": external_id,
        "industry": "Manufacturing",
        "wage": 19.5,
        "apply_link": f"https://www.adzuna.com/land/ad/{external_id}",
        "created_at_external": datetime(2026, 10, 3, tzinfo=timezone.utc),
        "approved": True,
        "flagged_reasons": set(),
    }
    values.update(overrides)
    return CanonicalListing(**values)  # type: ignore[arg-type]


def test_repository_without_database_url_is_unavailable() -> None:
    repository = PostgresRepository(database_url=None, min_pool_size=1, max_pool_size=1)

    with pytest.raises(RepositoryUnavailableError):
        asyncio.run(repository.list_listings(state="NJ", county="Mercer", limit=5))


@pytest.mark.skipif(not os.getenv("JF_DATABASE_URL"), reason="JF_DATABASE_URL is not set")
def test_upsert_roundtrip_preserves_reviewed_decisions() -> None:
    schema_sql = subprocess.run(
        [sys.executable, str(SCRIPT_PATH)],
        check=True,
        capture_output=True,
        text=True,
    ).stdout

    async def run() -> None:
        repository = PostgresRepository(database_url=os.environ["JF_DATABASE_URL"], min_pool_size=1, max_pool_size=2)
        try:
            pool = await repository._get_pool()
            await pool.execute(schema_sql)
            await pool.execute("delete from jobs where external_id like 'pgtest-%'")

            assert await repository.upsert_listings([_listing("pgtest-1"), _listing("pgtest-2", wage=None)]) == 2
            await repository.review_listing(
                source="external",
                external_id="pgtest-1",
                reviewed=True,
                approved=False,
            )
            await repository.upsert_listings([_listing("pgtest-1", title="Machine Operator II")])

            rows = await repository.list_listings(state="NJ", county="Mercer", limit=10, approved_only=False, q="machine")
            by_id = {row["external_id"]: row for row in rows if row["external_id"].startswith("pgtest-")}
            assert by_id["pgtest-1"]["title"] == "Machine Operator II"
            assert by_id["pgtest-1"]["approved"] is False
            assert by_id["pgtest-1"]["reviewed"] is True

            approved = await repository.list_listings(state="NJ", county="Mercer", limit=10, min_wage=19)
            assert "pgtest-2" not in {row["external_id"] for row in approved}

            with pytest.raises(RepositoryNotFoundError):
                await repository.review_listing(source="external", external_id="pgtest-missing", approved=True)

            await pool.execute("delete from jobs where external_id like 'pgtest-%'")
        finally:
            await repository.close()

    asyncio.run(run())
