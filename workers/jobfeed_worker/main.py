from __future__ import annotations

import asyncio
import logging
import time

from opentelemetry import trace

from jobfeed_worker.core.config import get_settings
from jobfeed_worker.core.telemetry import (
    configure_worker_logging,
    setup_worker_telemetry,
    shutdown_worker_telemetry,
)
from jobfeed_worker.jobs.schedule import ingest_due, next_backoff
from jobfeed_worker.services.ingest_client import IngestClient, IngestClientError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


async def run_worker() -> None:
    settings = get_settings()
    configure_worker_logging()
    if not settings.ingest_secret:
        logger.error("JF_WORKER_INGEST_SECRET is not configured; worker cannot trigger ingestion")
        return

    telemetry_runtime = setup_worker_telemetry(settings)
    client = IngestClient(
        base_url=settings.api_base_url,
        ingest_secret=settings.ingest_secret,
        header_name=settings.ingest_header,
        timeout_seconds=settings.request_timeout_seconds,
    )

    backoff = settings.poll_interval_seconds
    last_ingest_at: float | None = None

    try:
        while True:
            try:
                now = time.monotonic()
                if not ingest_due(last_ingest_at, now, settings.ingest_interval_seconds):
                    await asyncio.sleep(settings.poll_interval_seconds)
                    continue

                with tracer.start_as_current_span("worker.ingest_cycle"):
                    summary = await client.trigger_ingest()
                logger.info(
                    "ingestion run complete fetched=%s upserted=%s flagged=%s",
                    summary.get("fetched"),
                    summary.get("upserted"),
                    summary.get("flagged"),
                )
                last_ingest_at = now
                backoff = settings.poll_interval_seconds
            except IngestClientError as exc:
                if not exc.retryable:
                    # Wait a full interval before trying again.
                    logger.error("ingestion rejected status=%s detail=%s", exc.status_code, exc.detail)
                    last_ingest_at = time.monotonic()
                    continue
                sleep_for = next_backoff(backoff, max_backoff_seconds=settings.max_backoff_seconds)
                logger.warning("ingestion failed status=%s; retry in %.1fs", exc.status_code, sleep_for)
                await asyncio.sleep(sleep_for)
                backoff = sleep_for
            except Exception as exc:  # pragma: no cover - network robustness
                sleep_for = next_backoff(backoff, max_backoff_seconds=settings.max_backoff_seconds)
                logger.exception("worker iteration failed: %s; retry in %.1fs", exc, sleep_for)
                await asyncio.sleep(sleep_for)
                backoff = sleep_for
    finally:
        shutdown_worker_telemetry(telemetry_runtime)


if __name__ == "__main__":
    asyncio.run(run_worker())
