"""
Sentry integration for error tracking.

Provides:
- Exception capture with job context tagging for refresh jobs
- FastAPI request context
- SQLAlchemy query errors

Security:
- The SportsData subscription key header is scrubbed before sending
- Request bodies are NOT captured
- PII is disabled
"""

import logging
import os
import re
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

logger = logging.getLogger(__name__)

_sentry_initialized = False

SENSITIVE_HEADERS = (
    "ocp-apim-subscription-key",
    "authorization",
    "cookie",
    "set-cookie",
    "x-forwarded-for",
)


def scrub_sensitive_data(event: dict, hint: dict) -> Optional[dict]:
    """Redact credentials from headers and query strings."""
    try:
        request = event.get("request") or {}

        headers = request.get("headers") or {}
        for key in list(headers.keys()):
            if key.lower() in SENSITIVE_HEADERS:
                headers[key] = "[REDACTED]"
        request["headers"] = headers

        query_string = request.get("query_string")
        if isinstance(query_string, str) and query_string:
            request["query_string"] = re.sub(
                r"(?i)(key|token|secret|password)=([^&]*)",
                r"\1=[REDACTED]",
                query_string,
            )

        if "data" in request:
            request["data"] = "[SCRUBBED]"

        event["request"] = request

    except Exception as e:
        logger.warning(f"Sentry scrubbing error (continuing): {e}")

    return event


def init_sentry() -> bool:
    """
    Initialize Sentry SDK if SENTRY_DSN is configured.

    Returns True if Sentry was initialized, False otherwise.

    Environment variables:
    - SENTRY_DSN: Required. Sentry DSN from project settings.
    - SENTRY_TRACES_SAMPLE_RATE: Optional. Default 0.05 (5%).
    - SENTRY_ENVIRONMENT: Optional. Default "development".
    """
    global _sentry_initialized

    if _sentry_initialized:
        return True

    dsn = os.getenv("SENTRY_DSN")
    if not dsn:
        logger.info("Sentry not configured (SENTRY_DSN not set)")
        return False

    environment = os.getenv("SENTRY_ENVIRONMENT", "development")
    traces_sample_rate = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.05"))

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            LoggingIntegration(level=logging.ERROR, event_level=logging.ERROR),
        ],
        traces_sample_rate=traces_sample_rate,
        send_default_pii=False,
        before_send=scrub_sensitive_data,
        ignore_errors=[KeyboardInterrupt, SystemExit],
    )

    _sentry_initialized = True
    logger.info(f"Sentry initialized: env={environment}, traces_sample_rate={traces_sample_rate}")
    return True


def is_sentry_enabled() -> bool:
    return _sentry_initialized


def capture_exception(exception: Exception, job_id: str = None, **extra_context):
    """
    Capture an exception to Sentry with optional job context.

    Use this in refresh job except blocks. No-op when Sentry is not initialized.

    Args:
        exception: The exception to capture
        job_id: Optional job identifier for tagging
        **extra_context: Additional context to attach
    """
    if not _sentry_initialized:
        return

    with sentry_sdk.new_scope() as scope:
        if job_id:
            scope.set_tag("job_id", job_id)
        for key, value in extra_context.items():
            scope.set_extra(key, value)
        sentry_sdk.capture_exception(exception)
