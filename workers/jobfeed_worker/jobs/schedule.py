from __future__ import annotations

import random


def ingest_due(last_run_at: float | None, now: float, interval_seconds: float) -> bool:
    if last_run_at is None:
        return True
    return now - last_run_at >= interval_seconds


def next_backoff(
    current: float,
    *,
    max_backoff_seconds: float,
    jitter: float | None = None,
) -> float:
    """Grow the failure delay by 2-2.5x, capped at ``max_backoff_seconds``."""
    if jitter is None:
        jitter = random.uniform(0.0, 0.5)
    return min(current * (2.0 + jitter), max_backoff_seconds)
