from __future__ import annotations

from jobfeed.core.telemetry import (
    HTTPX_INSTRUMENTOR,
    TelemetryRuntime,
    build_tracer_provider,
    configure_logging,
    flush_and_shutdown,
)
from jobfeed_worker.core.config import Settings


def configure_worker_logging() -> None:
    configure_logging()


def setup_worker_telemetry(settings: Settings) -> TelemetryRuntime:
    if not settings.otel_enabled:
        return TelemetryRuntime(enabled=False, provider=None)

    provider = build_tracer_provider(settings)
    HTTPX_INSTRUMENTOR.instrument(tracer_provider=provider)
    return TelemetryRuntime(enabled=True, provider=provider)


def shutdown_worker_telemetry(runtime: TelemetryRuntime) -> None:
    if runtime.enabled:
        flush_and_shutdown(runtime)
