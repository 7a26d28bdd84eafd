"""
Refresh orchestrator: the named daily jobs.

    full_refresh    06:00  ingest everything, project all sports, interim insights
    midday_update   12:00  availability only, re-project, interim insights
    pregame_update  17:00  availability + today's schedule, re-project, final insights
    weekly_cleanup  Sun 02:00  retention deletes

Every run writes one RefreshLog row (running -> success | error). Only
full_refresh re-raises a failure; the others log it and return None. There are
no retries inside a run; the next scheduled occurrence is the retry.
"""

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional, Sequence, TypeVar
from zoneinfo import ZoneInfo

from freefruit.config import Settings, get_settings
from freefruit.errors import InsufficientHistory
from freefruit.insights import InsightPublisher, build_insight_bundle
from freefruit.jobs.tracking import STATUS_ERROR, STATUS_SUCCESS
from freefruit.projections.types import ProjectionResult, ScheduledPlayer
from freefruit.telemetry import (
    capture_exception,
    record_job_run,
    record_projection_failure,
    record_projections_computed,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

FULL_REFRESH = "full_refresh"
MIDDAY_UPDATE = "midday_update"
PREGAME_UPDATE = "pregame_update"
WEEKLY_CLEANUP = "weekly_cleanup"

# Jobs accepted by the manual trigger
MANUAL_JOBS = (FULL_REFRESH, MIDDAY_UPDATE, PREGAME_UPDATE)


def split_batches(items: Sequence[T], size: int) -> list[list[T]]:
    """Consecutive slices of at most `size` items."""
    if size < 1:
        raise ValueError("batch size must be >= 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RefreshOrchestrator:
    """Runs the refresh jobs against injected store, engine, pipeline and publisher."""

    def __init__(
        self,
        store,
        engine,
        pipeline,
        publisher: InsightPublisher,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.engine = engine
        self.pipeline = pipeline
        self.publisher = publisher
        self.settings = settings or get_settings()
        self.clock = clock or _utc_now
        self.sports = self.settings.tracked_sports
        self.home_tz = ZoneInfo(self.settings.SCHEDULER_TIMEZONE)

    def now(self) -> datetime:
        current = self.clock()
        return current if current.tzinfo else current.replace(tzinfo=timezone.utc)

    def today(self) -> date:
        """Calendar date in the home time zone."""
        return self.now().astimezone(self.home_tz).date()

    # ------------------------------------------------------------------
    # Job bookkeeping
    # ------------------------------------------------------------------

    async def _tracked_run(
        self,
        job_type: str,
        body: Callable[[], Awaitable[int]],
        propagate: bool,
    ) -> Optional[int]:
        """Run a job body between RefreshLog start/complete, with metrics and Sentry."""
        started = self.now()
        log_id = None
        logger.info(f"[JOBS] Starting {job_type}")

        try:
            log_id = await self.store.start_refresh_log(job_type, started_at=started)
            records = await body()
        except Exception as e:
            duration_ms = (self.now() - started).total_seconds() * 1000
            logger.error(f"[JOBS] {job_type} failed after {duration_ms:.0f}ms: {e}", exc_info=True)
            if log_id is not None:
                await self._complete_log(log_id, STATUS_ERROR, 0, str(e))
            record_job_run(job_type, STATUS_ERROR, duration_ms)
            capture_exception(e, job_id=job_type)
            if propagate:
                raise
            return None

        duration_ms = (self.now() - started).total_seconds() * 1000
        await self._complete_log(log_id, STATUS_SUCCESS, records)
        record_job_run(job_type, STATUS_SUCCESS, duration_ms)
        logger.info(f"[JOBS] {job_type} completed in {duration_ms:.0f}ms ({records} records)")
        return records

    async def _complete_log(self, log_id: int, status: str, records: int, error: Optional[str] = None):
        try:
            await self.store.complete_refresh_log(
                log_id, status, records=records, error=error, completed_at=self.now()
            )
        except Exception as e:
            logger.error(f"[JOB_TRACKING] Failed to complete RefreshLog id={log_id}: {e}")

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    async def run_full_refresh(self) -> Optional[int]:
        """Ingest all domains, project every sport, publish interim insights. Re-raises."""

        async def body() -> int:
            day = self.today()
            for sport in self.sports:
                await self.pipeline.refresh_sport(sport, day, self.settings.STATS_LOOKBACK_DAYS)
            by_sport = await self._project_all(day)
            await self.generate_daily_insights(by_sport, day, is_final=False)
            return sum(len(results) for results in by_sport.values())

        return await self._tracked_run(FULL_REFRESH, body, propagate=True)

    async def run_midday_update(self) -> Optional[int]:
        """Refresh availability, re-project, publish interim insights."""

        async def body() -> int:
            day = self.today()
            for sport in self.sports:
                await self.pipeline.refresh_availability(sport)
            by_sport = await self._project_all(day)
            await self.generate_daily_insights(by_sport, day, is_final=False)
            return sum(len(results) for results in by_sport.values())

        return await self._tracked_run(MIDDAY_UPDATE, body, propagate=False)

    async def run_pregame_update(self) -> Optional[int]:
        """Refresh availability and today's schedule, re-project, publish final insights."""

        async def body() -> int:
            day = self.today()
            for sport in self.sports:
                await self.pipeline.refresh_availability(sport)
                await self.pipeline.refresh_schedule(sport, day)
            by_sport = await self._project_all(day)
            await self.generate_daily_insights(by_sport, day, is_final=True)
            return sum(len(results) for results in by_sport.values())

        return await self._tracked_run(PREGAME_UPDATE, body, propagate=False)

    async def run_weekly_cleanup(self) -> Optional[int]:
        """Delete rows older than the retention windows (boundary rows are kept)."""

        async def body() -> int:
            now = self.now()
            day = self.today()
            logs = await self.store.purge_refresh_logs(
                now - timedelta(days=self.settings.REFRESH_LOG_RETENTION_DAYS)
            )
            projections = await self.store.purge_projections(
                day - timedelta(days=self.settings.PROJECTION_RETENTION_DAYS)
            )
            stats = await self.store.purge_player_stats(
                day - timedelta(days=self.settings.PLAYER_STATS_RETENTION_DAYS)
            )
            logger.info(
                f"[CLEANUP] Removed {logs} refresh logs, {projections} projections, {stats} stat lines"
            )
            return logs + projections + stats

        return await self._tracked_run(WEEKLY_CLEANUP, body, propagate=False)

    async def run_job(self, kind: str) -> dict:
        """
        Manual trigger for full_refresh, midday_update or pregame_update.

        Raises:
            ValueError: any other job kind
        """
        jobs = {
            FULL_REFRESH: self.run_full_refresh,
            MIDDAY_UPDATE: self.run_midday_update,
            PREGAME_UPDATE: self.run_pregame_update,
        }
        if kind not in jobs:
            raise ValueError(f"Unknown job kind: {kind!r} (expected one of {', '.join(MANUAL_JOBS)})")

        logger.info(f"[JOBS] Manual trigger: {kind}")
        records = await jobs[kind]()
        return {
            "job": kind,
            "status": STATUS_SUCCESS if records is not None else STATUS_ERROR,
            "records_processed": records or 0,
        }

    # ------------------------------------------------------------------
    # Projection batches
    # ------------------------------------------------------------------

    async def _project_all(self, day: date) -> dict[str, list[ProjectionResult]]:
        by_sport = {}
        for sport in self.sports:
            by_sport[sport] = await self.compute_daily_projections(sport, day)
        return by_sport

    async def compute_daily_projections(self, sport: str, day: date) -> list[ProjectionResult]:
        """
        Project every active player with a scheduled game on `day`.

        Batches run sequentially; players inside a batch run concurrently. A
        failing player is logged and dropped. Results are persisted in one
        transaction (PersistenceFailure propagates), then cached.
        """
        players = await self.store.get_players_with_games(sport, day)
        batches = split_batches(players, self.settings.PROJECTION_BATCH_SIZE)
        logger.info(
            f"[PROJECTIONS] {sport} {day}: {len(players)} players in {len(batches)} batches"
        )

        results: list[ProjectionResult] = []
        for index, batch in enumerate(batches, 1):
            batch_results = await asyncio.gather(
                *(self._project_one(player, sport, day) for player in batch)
            )
            completed = [r for r in batch_results if r is not None]
            results.extend(completed)
            logger.info(
                f"[PROJECTIONS] {sport} batch {index}/{len(batches)}: "
                f"{len(completed)}/{len(batch)} projected"
            )

        await self.store.upsert_projections(results)
        record_projections_computed(sport, len(results))
        await self.publisher.cache_projections(sport, day, results)

        logger.info(f"[PROJECTIONS] {sport} {day}: {len(results)}/{len(players)} projections")
        return results

    async def _project_one(
        self, player: ScheduledPlayer, sport: str, day: date
    ) -> Optional[ProjectionResult]:
        try:
            result = await self.engine.project(player.player_id, day, sport)
        except InsufficientHistory as e:
            logger.warning(f"[PROJECTIONS] Skipping player {player.player_id}: {e}")
            record_projection_failure(sport, "insufficient_history")
            return None
        except Exception as e:
            logger.error(f"[PROJECTIONS] Projection failed for player {player.player_id}: {e}")
            record_projection_failure(sport, "error")
            return None

        if result.game_id is None:
            result.game_id = player.game_id
        return result

    # ------------------------------------------------------------------
    # Insights
    # ------------------------------------------------------------------

    async def generate_daily_insights(
        self,
        projections_by_sport: dict[str, list[ProjectionResult]],
        day: date,
        is_final: bool,
    ) -> dict:
        """Publish the merged bundle and one bundle per sport."""
        generated_at = self.now()
        ttl = self.publisher.ttl_for(is_final)
        merged = [p for results in projections_by_sport.values() for p in results]

        bundle = build_insight_bundle(
            merged,
            day,
            is_final=is_final,
            generated_at=generated_at,
            timezone_name=self.settings.SCHEDULER_TIMEZONE,
            limit=self.settings.INSIGHTS_TOP_N,
        )
        await self.publisher.publish(day, bundle, ttl)

        for sport, results in projections_by_sport.items():
            sport_bundle = build_insight_bundle(
                results,
                day,
                is_final=is_final,
                generated_at=generated_at,
                timezone_name=self.settings.SCHEDULER_TIMEZONE,
                limit=self.settings.INSIGHTS_TOP_N,
                sport=sport,
            )
            await self.publisher.publish(day, sport_bundle, ttl, sport=sport)

        logger.info(
            f"[INSIGHTS] {day} ({'final' if is_final else 'interim'}): "
            f"{bundle['insights']['total_analyzed']} top players - {bundle['insights']['headline']}"
        )
        return bundle
