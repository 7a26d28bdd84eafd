"""
Prometheus metrics for the refresh pipeline.

Design principles:
- Low cardinality (controlled labels)
- Best-effort (never block main flow)

ALLOWED LABELS (bounded sets):
- job:       "full_refresh", "midday_update", "pregame_update", "weekly_cleanup"
- status:    "success", "error", "ok"
- sport:     "NBA", "NFL"
- reason:    "insufficient_history", "error"
- endpoint:  "teams", "Players", "GamesByDate", "PlayerGameStatsByGame"
- scope:     "all", "NBA", "NFL"

Player ids, game ids, dates and URLs are NEVER labels; use logs for those.
"""

import logging
import time

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# =============================================================================
# JOB METRICS
# =============================================================================

job_runs_total = Counter(
    "freefruit_job_runs_total",
    "Refresh job runs by status",
    ["job", "status"],
)

job_duration_ms = Histogram(
    "freefruit_job_duration_ms",
    "Refresh job duration in milliseconds",
    ["job"],
    buckets=[100, 500, 1000, 5000, 15000, 30000, 60000, 120000, 300000, 600000],
)

job_last_success_timestamp = Gauge(
    "freefruit_job_last_success_timestamp",
    "Unix timestamp of the last successful run per job",
    ["job"],
)

# =============================================================================
# PROJECTION METRICS
# =============================================================================

projections_computed_total = Counter(
    "freefruit_projections_computed_total",
    "Player projections computed",
    ["sport"],
)

projection_failures_total = Counter(
    "freefruit_projection_failures_total",
    "Player projections dropped from a batch",
    ["sport", "reason"],
)

# =============================================================================
# PUBLICATION / PROVIDER METRICS
# =============================================================================

insight_publications_total = Counter(
    "freefruit_insight_publications_total",
    "Insight bundle cache writes by outcome",
    ["scope", "status"],
)

provider_requests_total = Counter(
    "freefruit_provider_requests_total",
    "Requests to the SportsData feed",
    ["endpoint", "status_code"],
)

provider_latency_ms = Histogram(
    "freefruit_provider_latency_ms",
    "SportsData request latency in milliseconds",
    ["endpoint"],
    buckets=[25, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000],
)


# =============================================================================
# HELPERS
# =============================================================================


def record_job_run(job: str, status: str, duration_ms: float) -> None:
    """
    Record a job run with status and duration.

    Args:
        job: Job identifier (full_refresh, midday_update, ...)
        status: "success" or "error"
        duration_ms: Job duration in milliseconds
    """
    try:
        job_runs_total.labels(job=job, status=status).inc()
        if duration_ms > 0:
            job_duration_ms.labels(job=job).observe(duration_ms)
        if status == "success":
            job_last_success_timestamp.labels(job=job).set(time.time())
    except Exception as e:
        logger.warning(f"Failed to record job run metric: {e}")


def record_projections_computed(sport: str, count: int) -> None:
    try:
        projections_computed_total.labels(sport=sport).inc(count)
    except Exception as e:
        logger.warning(f"Failed to record projections metric: {e}")


def record_projection_failure(sport: str, reason: str) -> None:
    try:
        projection_failures_total.labels(sport=sport, reason=reason).inc()
    except Exception as e:
        logger.warning(f"Failed to record projection failure metric: {e}")


def record_insight_publication(scope: str, status: str) -> None:
    try:
        insight_publications_total.labels(scope=scope, status=status).inc()
    except Exception as e:
        logger.warning(f"Failed to record insight publication metric: {e}")


def record_provider_request(endpoint: str, status_code: int, latency_ms: float) -> None:
    """Record a SportsData request (status_code 0 for transport errors)."""
    try:
        provider_requests_total.labels(endpoint=endpoint, status_code=str(status_code)).inc()
        provider_latency_ms.labels(endpoint=endpoint).observe(latency_ms)
    except Exception as e:
        logger.warning(f"Failed to record provider request metric: {e}")


def get_metrics_text() -> tuple[str, str]:
    """
    Generate Prometheus metrics text output.

    Returns:
        Tuple of (content, content_type)
    """
    return generate_latest(REGISTRY).decode("utf-8"), CONTENT_TYPE_LATEST
