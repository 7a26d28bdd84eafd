"""FastAPI application for the Free Fruit projection service."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from freefruit.cache import MemoryCache
from freefruit.config import get_settings
from freefruit.database import build_engine, build_session_factory, close_db, init_db
from freefruit.etl import ETLPipeline, SportsDataProvider
from freefruit.insights import InsightPublisher
from freefruit.orchestrator import RefreshOrchestrator
from freefruit.projections import ProjectionEngine
from freefruit.routes import router
from freefruit.scheduler import RefreshScheduler
from freefruit.store import StatStore
from freefruit.telemetry import init_sentry

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

init_sentry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting Free Fruit...")

    engine = build_engine(settings.DATABASE_URL)
    await init_db(engine)
    session_factory = build_session_factory(engine)

    store = StatStore(session_factory)
    provider = SportsDataProvider()
    publisher = InsightPublisher(
        MemoryCache(),
        interim_ttl=settings.INSIGHTS_TTL_INTERIM_SECONDS,
        final_ttl=settings.INSIGHTS_TTL_FINAL_SECONDS,
        projections_ttl=settings.PROJECTIONS_CACHE_TTL_SECONDS,
    )
    orchestrator = RefreshOrchestrator(
        store=store,
        engine=ProjectionEngine(store),
        pipeline=ETLPipeline(provider, session_factory),
        publisher=publisher,
        settings=settings,
    )
    scheduler = RefreshScheduler(orchestrator, timezone_name=settings.SCHEDULER_TIMEZONE)

    app.state.settings = settings
    app.state.store = store
    app.state.publisher = publisher
    app.state.orchestrator = orchestrator
    app.state.scheduler = scheduler

    catchup_task = None
    if settings.SCHEDULER_ENABLED:
        scheduler.start()
        if settings.STARTUP_CATCHUP_ENABLED:
            # Runs in the background so startup is not blocked by a full refresh
            catchup_task = asyncio.create_task(scheduler.run_startup_catchup())
    else:
        logger.info("[SCHEDULER] Disabled via SCHEDULER_ENABLED=false")

    yield

    # Shutdown
    logger.info("Shutting down...")
    scheduler.stop()
    if catchup_task is not None and not catchup_task.done():
        catchup_task.cancel()
        try:
            await catchup_task
        except asyncio.CancelledError:
            pass
    await provider.close()
    await close_db(engine)


app = FastAPI(
    title="Free Fruit",
    description="Daily NBA/NFL player projections with Fruit Scores",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)
