"""
Insight aggregation and cache publication.

The bundle for a date ranks every projection by Fruit Score, summarizes the
top slice (high-confidence / improving / declining counts) with a one-line
headline, and is written to the cache under:

    daily_insights:<YYYY-MM-DD>            merged across sports
    daily_insights:<YYYY-MM-DD>:<SPORT>    one sport

Cache writes are best-effort: the Projection rows are already durable when a
bundle is published, so a cache outage is logged and swallowed.
"""

import json
import logging
from datetime import date, datetime, timezone
from typing import Iterable, Optional, Sequence
from zoneinfo import ZoneInfo

from freefruit.projections.types import DECLINING, IMPROVING, ProjectionResult
from freefruit.telemetry import record_insight_publication

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 20
HIGH_CONFIDENCE_SCORE = 80
HIGH_CONFIDENCE_DAY_COUNT = 10

HEADLINE_HIGH_CONFIDENCE = "High confidence day with multiple strong plays available"
HEADLINE_TRENDING_UP = "Market trending upward with several improving players"
HEADLINE_MIXED = "Mixed signals today - proceed with caution"


def insights_cache_key(day: date, sport: Optional[str] = None) -> str:
    key = f"daily_insights:{day.isoformat()}"
    return f"{key}:{sport.upper()}" if sport else key


def projections_cache_key(sport: str, day: date) -> str:
    return f"projections:{sport.upper()}:{day.isoformat()}"


def rank_top_fruit(
    projections: Iterable[ProjectionResult], limit: int = DEFAULT_TOP_N
) -> list[ProjectionResult]:
    """Highest Fruit Scores first; ties keep their input order."""
    ranked = sorted(projections, key=lambda p: -p.fruit_score)
    return ranked[:limit]


def summarize_insights(top: Sequence[ProjectionResult]) -> dict:
    """Counts over the ranked slice plus the headline."""
    summary = {
        "high_confidence": sum(1 for p in top if p.fruit_score >= HIGH_CONFIDENCE_SCORE),
        "improving": sum(1 for p in top if p.trend.direction == IMPROVING),
        "declining": sum(1 for p in top if p.trend.direction == DECLINING),
        "total_analyzed": len(top),
    }

    if summary["high_confidence"] > HIGH_CONFIDENCE_DAY_COUNT:
        summary["headline"] = HEADLINE_HIGH_CONFIDENCE
    elif summary["improving"] > summary["declining"]:
        summary["headline"] = HEADLINE_TRENDING_UP
    else:
        summary["headline"] = HEADLINE_MIXED

    return summary


def build_insight_bundle(
    projections: Iterable[ProjectionResult],
    day: date,
    *,
    is_final: bool,
    generated_at: datetime,
    timezone_name: str = "America/Chicago",
    limit: int = DEFAULT_TOP_N,
    sport: Optional[str] = None,
) -> dict:
    """JSON-ready insight bundle for one date (and optionally one sport)."""
    top = rank_top_fruit(projections, limit)
    if generated_at.tzinfo is None:
        generated_at = generated_at.replace(tzinfo=timezone.utc)

    return {
        "date": day.isoformat(),
        "sport": sport.upper() if sport else None,
        "top_fruit": [p.to_dict() for p in top],
        "insights": summarize_insights(top),
        "generated_at": generated_at.isoformat(),
        "local_time": generated_at.astimezone(ZoneInfo(timezone_name)).strftime("%Y-%m-%d %I:%M %p %Z"),
        "is_final": is_final,
    }


class InsightPublisher:
    """Writes insight bundles and per-sport projection lists to the cache."""

    def __init__(
        self,
        cache,
        interim_ttl: int = 3600,
        final_ttl: int = 7200,
        projections_ttl: int = 3600,
    ):
        self.cache = cache
        self.interim_ttl = interim_ttl
        self.final_ttl = final_ttl
        self.projections_ttl = projections_ttl

    def ttl_for(self, is_final: bool) -> int:
        return self.final_ttl if is_final else self.interim_ttl

    async def publish(self, day: date, bundle: dict, ttl: int, sport: Optional[str] = None) -> bool:
        """Write a bundle; returns False (and logs) when the cache is unavailable."""
        key = insights_cache_key(day, sport)
        scope = sport.upper() if sport else "all"
        try:
            await self.cache.set(key, json.dumps(bundle), ttl)
        except Exception as e:
            logger.error(f"[INSIGHTS] Failed to cache {key}: {e}")
            record_insight_publication(scope, "error")
            return False

        record_insight_publication(scope, "success")
        logger.info(f"[INSIGHTS] Cached {key} (TTL: {ttl}s)")
        return True

    async def cache_projections(
        self, sport: str, day: date, projections: Sequence[ProjectionResult]
    ) -> bool:
        key = projections_cache_key(sport, day)
        try:
            payload = json.dumps([p.to_dict() for p in projections])
            await self.cache.set(key, payload, self.projections_ttl)
        except Exception as e:
            logger.error(f"[INSIGHTS] Failed to cache {key}: {e}")
            return False
        return True

    async def get_daily_insights(self, day: date, sport: Optional[str] = None) -> Optional[dict]:
        """Cached bundle, or None on a miss or cache error."""
        key = insights_cache_key(day, sport)
        try:
            raw = await self.cache.get(key)
        except Exception as e:
            logger.warning(f"[INSIGHTS] Cache read failed for {key}: {e}")
            return None
        return json.loads(raw) if raw else None


async def load_daily_insights(
    publisher: InsightPublisher,
    store,
    day: date,
    sport: Optional[str] = None,
    *,
    generated_at: datetime,
    timezone_name: str = "America/Chicago",
    limit: int = DEFAULT_TOP_N,
) -> Optional[dict]:
    """
    Insight bundle for a date: cache first, else rebuilt from the durable
    Projection rows. Returns None when neither has data for the date.
    """
    cached = await publisher.get_daily_insights(day, sport)
    if cached is not None:
        return cached

    projections = await store.get_projections_for_date(day, sport.upper() if sport else None)
    if not projections:
        return None

    logger.info(f"[INSIGHTS] Cache miss for {insights_cache_key(day, sport)}; rebuilt from store")
    return build_insight_bundle(
        projections,
        day,
        is_final=False,
        generated_at=generated_at,
        timezone_name=timezone_name,
        limit=limit,
        sport=sport,
    )
