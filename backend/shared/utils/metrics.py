"""
Prometheus metrics for Dugout.
Module-level prometheus_client collectors shared by the api and scheduler processes.
"""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Info, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
PROVIDER_REQUESTS = Counter(
    "dugout_provider_requests_total",
    "Total upstream provider HTTP requests",
    ["provider", "endpoint", "status"],
)
CACHE_READS = Counter(
    "dugout_cache_reads_total",
    "Snapshot cache reads by the source that served them",
    ["ttl_class", "source"],
)
CACHE_PUTS_REJECTED = Counter(
    "dugout_cache_puts_rejected_total",
    "Cache writes dropped because they would regress sequence or game state",
    ["reason"],
)
PREDICTIONS_RESOLVED = Counter(
    "dugout_predictions_resolved_total",
    "Predictions reaching a terminal state",
    ["kind", "status"],
)
POINTS_AWARDED = Counter(
    "dugout_points_awarded_total",
    "Points written to resolved predictions",
    ["kind"],
)
JOB_RUNS = Counter(
    "dugout_job_runs_total",
    "Scheduler job runs by outcome",
    ["job", "status"],
)

# ── Histograms ──────────────────────────────────────────────────────────
PROVIDER_LATENCY = Histogram(
    "dugout_provider_latency_seconds",
    "Provider request latency in seconds",
    ["provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
JOB_DURATION = Histogram(
    "dugout_job_duration_seconds",
    "Wall time of one job run including retries",
    ["job"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 15.0, 30.0),
)

# ── Gauges ──────────────────────────────────────────────────────────────
SCHEDULER_RUNNING = Gauge(
    "dugout_scheduler_running",
    "1 while the job scheduler is running",
)
JOBS_IN_FLIGHT = Gauge(
    "dugout_jobs_in_flight",
    "Job runs currently executing",
)
CIRCUIT_OPEN = Gauge(
    "dugout_circuit_open",
    "1 while the named circuit breaker rejects calls",
    ["name"],
)

# ── Info ────────────────────────────────────────────────────────────────
SERVICE_INFO = Info("dugout_service", "Service build information")


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    SERVICE_INFO.info({
        "environment": settings.environment.value,
        "instance_id": settings.instance_id,
        "tracked_team_id": str(settings.tracked_team_id),
    })
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
