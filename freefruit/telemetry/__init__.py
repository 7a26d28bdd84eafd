"""
Telemetry: Prometheus metrics and Sentry error capture.

Helpers are best-effort and never raise into the refresh pipeline.
"""

from freefruit.telemetry.metrics import (
    get_metrics_text,
    record_insight_publication,
    record_job_run,
    record_projection_failure,
    record_projections_computed,
    record_provider_request,
)
from freefruit.telemetry.sentry import capture_exception, init_sentry, is_sentry_enabled

__all__ = [
    "get_metrics_text",
    "record_insight_publication",
    "record_job_run",
    "record_projection_failure",
    "record_projections_computed",
    "record_provider_request",
    "capture_exception",
    "init_sentry",
    "is_sentry_enabled",
]
