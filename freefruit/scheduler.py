"""
Refresh scheduler.

Trigger points are wall-clock times in the home time zone (America/Chicago by
default), so they follow DST:

    06:00          full_refresh
    12:00          midday_update
    17:00          pregame_update
    Sunday 02:00   weekly_cleanup

On startup the catch-up table picks the job whose window contains the current
local time, so a process started at 14:00 runs midday_update immediately
instead of serving stale data until 17:00.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, time, timezone
from typing import Callable, Optional, Sequence
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from freefruit.orchestrator import FULL_REFRESH, MIDDAY_UPDATE, PREGAME_UPDATE, WEEKLY_CLEANUP

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TriggerPoint:
    job: str
    hour: int
    minute: int = 0
    day_of_week: Optional[str] = None  # APScheduler day_of_week, None = every day
    label: str = ""


DEFAULT_TRIGGERS: tuple[TriggerPoint, ...] = (
    TriggerPoint(FULL_REFRESH, 6, 0, label="Full Refresh (6:00 AM)"),
    TriggerPoint(MIDDAY_UPDATE, 12, 0, label="Midday Update (12:00 PM)"),
    TriggerPoint(PREGAME_UPDATE, 17, 0, label="Pre-game Update (5:00 PM)"),
    TriggerPoint(WEEKLY_CLEANUP, 2, 0, day_of_week="sun", label="Weekly Cleanup (Sunday 2:00 AM)"),
)


@dataclass(frozen=True)
class CatchupWindow:
    start: time
    end: Optional[time]  # exclusive; None runs to midnight
    job: str

    def contains(self, local_time: time) -> bool:
        if local_time < self.start:
            return False
        return self.end is None or local_time < self.end


CATCHUP_WINDOWS: tuple[CatchupWindow, ...] = (
    CatchupWindow(time(6, 0), time(12, 0), FULL_REFRESH),
    CatchupWindow(time(12, 0), time(17, 0), MIDDAY_UPDATE),
    CatchupWindow(time(17, 0), None, PREGAME_UPDATE),
)


def resolve_catchup_job(
    local_time: time, windows: Sequence[CatchupWindow] = CATCHUP_WINDOWS
) -> Optional[str]:
    """Job to run at startup for a home-zone wall-clock time, or None before 06:00."""
    for window in windows:
        if window.contains(local_time):
            return window.job
    return None


class RefreshScheduler:
    """APScheduler wrapper binding trigger points to orchestrator jobs."""

    def __init__(
        self,
        orchestrator,
        timezone_name: str = "America/Chicago",
        triggers: Sequence[TriggerPoint] = DEFAULT_TRIGGERS,
        clock: Optional[Callable[[], datetime]] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.orchestrator = orchestrator
        self.timezone_name = timezone_name
        self.tz = ZoneInfo(timezone_name)
        self.triggers = tuple(triggers)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.scheduler = scheduler or AsyncIOScheduler(timezone=self.tz)
        self._jobs = {
            FULL_REFRESH: orchestrator.run_full_refresh,
            MIDDAY_UPDATE: orchestrator.run_midday_update,
            PREGAME_UPDATE: orchestrator.run_pregame_update,
            WEEKLY_CLEANUP: orchestrator.run_weekly_cleanup,
        }

    def register_jobs(self) -> None:
        for point in self.triggers:
            self.scheduler.add_job(
                self._jobs[point.job],
                trigger=CronTrigger(
                    hour=point.hour,
                    minute=point.minute,
                    day_of_week=point.day_of_week,
                    timezone=self.tz,
                ),
                id=point.job,
                name=point.label or point.job,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=3600,
            )
        logger.info(
            f"[SCHEDULER] Registered {len(self.triggers)} jobs ({self.timezone_name}): "
            + ", ".join(f"{p.job}@{p.hour:02d}:{p.minute:02d}" for p in self.triggers)
        )

    def start(self) -> None:
        """Register the trigger points and start the scheduler (needs a running loop)."""
        if self.scheduler.running:
            logger.warning("[SCHEDULER] Scheduler already started, skipping duplicate initialization")
            return
        self.register_jobs()
        self.scheduler.start()
        logger.info("[SCHEDULER] Scheduler started")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("[SCHEDULER] Scheduler stopped")

    async def run_startup_catchup(self) -> Optional[str]:
        """
        Run the job whose window contains the current home-zone time.

        Returns the job name that ran (or was attempted), None outside all
        windows. Job failures are logged, never raised.
        """
        local_now = self.clock().astimezone(self.tz)
        job = resolve_catchup_job(local_now.time())
        if job is None:
            logger.info(
                f"[SCHEDULER] Startup at {local_now:%H:%M} {self.timezone_name}: "
                "waiting for the next scheduled run"
            )
            return None

        logger.info(f"[SCHEDULER] Startup at {local_now:%H:%M} {self.timezone_name}: catching up with {job}")
        try:
            await self._jobs[job]()
        except Exception as e:
            logger.error(f"[SCHEDULER] Startup catch-up {job} failed: {e}")
        return job

    def get_status(self) -> dict:
        jobs = []
        for job in self.scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "id": job.id,
                "name": job.name,
                "trigger": str(job.trigger),
                "next_run_time": next_run.isoformat() if next_run else None,
            })
        return {
            "running": self.scheduler.running,
            "timezone": self.timezone_name,
            "jobs": jobs,
        }
