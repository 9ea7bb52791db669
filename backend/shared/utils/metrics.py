"""
Metrics for the aggregation engine.
Wraps prometheus_client with the counters the engine records.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from prometheus_client import Counter, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
PROVIDER_REQUESTS = Counter(
    "sl_provider_requests_total",
    "Total provider HTTP requests (one per attempt)",
    ["host", "status"],
)
PROVIDER_DISABLES = Counter(
    "sl_provider_disables_total",
    "Provider disable windows opened by the health tracker",
    ["provider", "failure_class"],
)
CACHE_LOOKUPS = Counter(
    "sl_cache_lookups_total",
    "Short-term cache lookups",
    ["dataset", "result"],
)
AGGREGATE_RESULTS = Counter(
    "sl_aggregate_results_total",
    "Aggregate calls by outcome (cache, live, stale, empty)",
    ["dataset", "outcome"],
)
PREFETCH_CYCLES = Counter(
    "sl_prefetch_cycles_total",
    "Prefetch cycles by outcome",
    ["outcome"],
)

# ── Histograms ──────────────────────────────────────────────────────────
PROVIDER_LATENCY = Histogram(
    "sl_provider_latency_seconds",
    "Provider request latency in seconds",
    ["host"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0),
)
AGGREGATE_LATENCY = Histogram(
    "sl_aggregate_latency_seconds",
    "End-to-end latency of an aggregate call",
    ["dataset"],
    buckets=(0.001, 0.01, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)


@asynccontextmanager
async def atrack_latency(histogram: Histogram, **labels: str) -> AsyncIterator[None]:
    """Async context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        histogram.labels(**labels).observe(elapsed)


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
