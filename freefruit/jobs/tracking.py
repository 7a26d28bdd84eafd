"""RefreshLog tracking for scheduled and manual jobs.

Every job invocation writes one refresh_logs row with status "running" at
start and completes it exactly once, addressed by the row id returned from
start_refresh_log.

Usage:
    from freefruit.jobs.tracking import start_refresh_log, complete_refresh_log

    log_id = await start_refresh_log(session, "full_refresh", started_at=now)
    try:
        # ... job logic ...
        await complete_refresh_log(session, log_id, "success", records=42)
    except Exception as e:
        await complete_refresh_log(session, log_id, "error", error=str(e))
        raise
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from freefruit.db_utils import to_naive_utc
from freefruit.models import RefreshLog, utcnow

logger = logging.getLogger(__name__)

STATUS_RUNNING = "running"
STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


async def start_refresh_log(
    session: AsyncSession,
    refresh_type: str,
    sport: Optional[str] = None,
    started_at: Optional[datetime] = None,
) -> int:
    """
    Insert a running RefreshLog row and return its id.

    Args:
        session: Database session.
        refresh_type: Job kind (full_refresh, midday_update, ...).
        sport: Optional sport the run is scoped to.
        started_at: Start timestamp (defaults to now, stored as naive UTC).
    """
    log = RefreshLog(
        refresh_type=refresh_type,
        sport=sport,
        status=STATUS_RUNNING,
        started_at=to_naive_utc(started_at or utcnow()),
    )
    session.add(log)
    await session.commit()
    await session.refresh(log)

    logger.debug(f"[JOB_TRACKING] Started {refresh_type} run id={log.id}")
    return log.id


async def complete_refresh_log(
    session: AsyncSession,
    log_id: int,
    status: str,
    records: int = 0,
    error: Optional[str] = None,
    completed_at: Optional[datetime] = None,
) -> None:
    """
    Mark a RefreshLog row success/error with duration and record count.

    Only a row still in "running" is updated, so a second completion is a no-op.
    """
    log = await session.get(RefreshLog, log_id)
    if log is None:
        logger.warning(f"[JOB_TRACKING] RefreshLog id={log_id} not found")
        return
    if log.status != STATUS_RUNNING:
        logger.warning(f"[JOB_TRACKING] RefreshLog id={log_id} already completed ({log.status})")
        return

    finished = to_naive_utc(completed_at or utcnow())
    log.status = status
    log.records_processed = records
    log.error_message = error
    log.completed_at = finished
    log.duration_ms = int((finished - log.started_at).total_seconds() * 1000)

    await session.commit()

    logger.debug(
        f"[JOB_TRACKING] Recorded {log.refresh_type} run: {status} "
        f"in {log.duration_ms}ms ({records} records)"
    )


async def get_jobs_health_from_db(session: AsyncSession) -> dict:
    """
    Last run and last success per job kind.

    Returns dict mapping refresh_type -> {last_run_status, last_run_at, ...}.
    """
    latest = (
        select(RefreshLog.refresh_type, func.max(RefreshLog.id).label("last_id"))
        .group_by(RefreshLog.refresh_type)
        .subquery()
    )
    result = await session.execute(
        select(RefreshLog).join(latest, RefreshLog.id == latest.c.last_id)
    )
    last_runs = result.scalars().all()

    result_success = await session.execute(
        select(RefreshLog.refresh_type, func.max(RefreshLog.completed_at))
        .where(RefreshLog.status == STATUS_SUCCESS)
        .group_by(RefreshLog.refresh_type)
    )
    success_map = {row[0]: row[1] for row in result_success.all()}

    jobs_data = {}
    for log in last_runs:
        last_success = success_map.get(log.refresh_type)
        jobs_data[log.refresh_type] = {
            "last_run_status": log.status,
            "last_run_at": log.started_at.isoformat() if log.started_at else None,
            "last_success_at": last_success.isoformat() if last_success else None,
            "duration_ms": log.duration_ms,
            "records_processed": log.records_processed,
            "last_error": log.error_message if log.status == STATUS_ERROR else None,
        }

    return jobs_data


async def cleanup_old_runs(session: AsyncSession, older_than: datetime) -> int:
    """
    Delete RefreshLog rows started strictly before the cutoff.

    Returns:
        Number of rows deleted.
    """
    result = await session.execute(
        delete(RefreshLog).where(RefreshLog.started_at < to_naive_utc(older_than))
    )
    await session.commit()
    deleted = result.rowcount or 0
    if deleted > 0:
        logger.info(f"[JOB_TRACKING] Cleaned up {deleted} old refresh logs")
    return deleted
