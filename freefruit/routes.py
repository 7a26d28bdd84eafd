"""HTTP routes: health, manual job trigger, scheduler status, insights, player detail, metrics.

Services are read from app.state (built in the lifespan):
    app.state.settings, .store, .publisher, .orchestrator, .scheduler
"""

from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from freefruit.insights import load_daily_insights
from freefruit.orchestrator import MANUAL_JOBS
from freefruit.projections import get_sport_profile
from freefruit.projections.engine import calculate_trend
from freefruit.telemetry import get_metrics_text, is_sentry_enabled

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    scheduler_running: bool
    tracked_sports: list[str]
    sentry_enabled: bool


class JobRunResponse(BaseModel):
    job: str
    status: str
    records_processed: int


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Health check endpoint."""
    scheduler = getattr(request.app.state, "scheduler", None)
    return HealthResponse(
        status="ok",
        scheduler_running=bool(scheduler and scheduler.scheduler.running),
        tracked_sports=request.app.state.settings.tracked_sports,
        sentry_enabled=is_sentry_enabled(),
    )


@router.post("/jobs/{kind}", response_model=JobRunResponse)
async def trigger_job(kind: str, request: Request):
    """
    Run a refresh job now.

    Accepts full_refresh, midday_update, pregame_update. Runs inline; the
    response reports the RefreshLog outcome. A failing full_refresh returns 500.
    """
    if kind not in MANUAL_JOBS:
        raise HTTPException(status_code=404, detail=f"Unknown job kind: {kind}")

    try:
        result = await request.app.state.orchestrator.run_job(kind)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"{kind} failed: {e}")

    return JobRunResponse(**result)


@router.get("/scheduler/status")
async def scheduler_status(request: Request):
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        return {"running": False, "timezone": None, "jobs": []}
    return scheduler.get_status()


@router.get("/jobs/health")
async def jobs_health(request: Request):
    """Last run / last success per job kind from refresh_logs."""
    return await request.app.state.store.get_jobs_health()


@router.get("/insights/{day}")
async def get_insights(day: date, request: Request, sport: Optional[str] = None):
    """
    Insight bundle for a date (YYYY-MM-DD), optionally scoped to one sport.

    Served from the cache; rebuilt from stored projections on a miss.
    """
    state = request.app.state
    bundle = await load_daily_insights(
        state.publisher,
        state.store,
        day,
        sport,
        generated_at=state.orchestrator.now(),
        timezone_name=state.settings.SCHEDULER_TIMEZONE,
        limit=state.settings.INSIGHTS_TOP_N,
    )
    if bundle is None:
        raise HTTPException(status_code=404, detail=f"No projections for {day.isoformat()}")
    return bundle


RECENT_STATS_LIMIT = 5


@router.get("/players/{player_id}")
async def get_player_detail(player_id: int, request: Request):
    """
    One player: roster info, last 5 stat lines, stored projections
    (newest first) and the trend over the recent lines.
    """
    state = request.app.state
    player = await state.store.get_player(player_id)
    if player is None:
        raise HTTPException(status_code=404, detail=f"Unknown player: {player_id}")

    profile = get_sport_profile(player.sport)
    # Include today's games once they are completed
    samples = await state.store.get_recent_samples(
        player_id, profile.code, limit=RECENT_STATS_LIMIT, before=state.orchestrator.today() + timedelta(days=1)
    )
    projections = await state.store.get_player_projections(player_id, profile.code)

    primary = profile.primary_stat(samples)
    trend = calculate_trend([sample.value(primary) for sample in samples])

    return {
        "player": {
            "id": player.id,
            "sport": player.sport,
            "first_name": player.first_name,
            "last_name": player.last_name,
            "position": player.position,
            "team_id": player.team_id,
            "active": player.active,
            "availability": player.availability,
        },
        "recent_stats": [
            {"game_id": s.game_id, "game_date": s.game_date.isoformat(), "stats": s.stats}
            for s in samples
        ],
        "projections": [p.to_dict() for p in projections],
        "trend": trend.to_dict(),
        "fruit_score": projections[0].fruit_score if projections else None,
        "generated_at": state.orchestrator.now().isoformat(),
    }


@router.get("/metrics")
async def prometheus_metrics(
    request: Request,
    authorization: str = Header(None, alias="Authorization"),
):
    """
    Prometheus metrics endpoint.

    Requires Bearer token authentication when METRICS_BEARER_TOKEN is set.
    """
    expected_token = request.app.state.settings.METRICS_BEARER_TOKEN
    if expected_token:
        if not authorization:
            return PlainTextResponse(
                content="# Unauthorized: Missing Authorization header\n",
                status_code=401,
                media_type="text/plain",
            )
        parts = authorization.split(" ", 1)
        if len(parts) != 2 or parts[0].lower() != "bearer" or parts[1] != expected_token:
            return PlainTextResponse(
                content="# Unauthorized: Invalid token\n",
                status_code=401,
                media_type="text/plain",
            )

    content, content_type = get_metrics_text()
    return PlainTextResponse(content=content, media_type=content_type)
