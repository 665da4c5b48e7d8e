"""
Lightweight metrics collection for Matchday.
Prometheus counters, histograms and gauges shared by every service.
"""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
PROVIDER_REQUESTS = Counter(
    "md_provider_requests_total",
    "Total provider HTTP requests",
    ["provider", "sport", "endpoint", "status"],
)
MATCHES_SAVED = Counter(
    "md_matches_saved_total",
    "Canonical match rows written to the store",
    ["sport", "path"],
)
MATCHES_BLACKLISTED = Counter(
    "md_matches_blacklisted_total",
    "Match records dropped by the deny-list before writing",
    ["sport"],
)
STUCK_MATCHES_FIXED = Counter(
    "md_stuck_matches_fixed_total",
    "Stale live rows force-closed by the repair job",
    ["action", "outcome"],
)
PREDICTIONS_GRADED = Counter(
    "md_predictions_graded_total",
    "Predictions moved from pending to graded",
    ["kind", "correct"],
)
USER_STATS_UPDATES = Counter(
    "md_user_stats_updates_total",
    "Per-match user stat updates by outcome",
    ["outcome"],
)
JOB_RUNS = Counter(
    "md_job_runs_total",
    "Scheduled job invocations by outcome",
    ["job", "outcome"],
)
JOB_SKIPS = Counter(
    "md_job_skips_total",
    "Job ticks skipped because the previous run was still in flight",
    ["job"],
)

# ── Histograms ──────────────────────────────────────────────────────────
PROVIDER_LATENCY = Histogram(
    "md_provider_latency_seconds",
    "Provider request latency in seconds",
    ["provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)
JOB_DURATION = Histogram(
    "md_job_duration_seconds",
    "Wall time of a single scheduled job run",
    ["job"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 15.0, 30.0, 60.0, 120.0),
)

# ── Gauges ──────────────────────────────────────────────────────────────
LIVE_MATCHES = Gauge(
    "md_live_matches",
    "Number of live matches returned by the last live sync",
    ["sport"],
)
JOB_RUNNING = Gauge(
    "md_job_running",
    "1 while a job is executing, else 0",
    ["job"],
)
PROVIDER_QUOTA_USED = Gauge(
    "md_provider_quota_used_ratio",
    "Fraction of the daily provider request quota already used",
    ["provider"],
)


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
