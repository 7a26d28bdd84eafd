"""
Projection Engine.

Weighted recent-form projection for one player and date:

1. Last k completed games before the target date (k = sport lookback).
2. Time-decayed weighted average per tracked stat (most recent first).
3. Contextual multipliers in sequence: home, rest, availability.
4. Fruit Score (consistency + sample size - reasonableness penalty).
5. Trend on the primary stat (recent 3 vs previous 2 games).

The module-level functions are pure; ProjectionEngine only adds the store
reads and the clock.
"""

import logging
import math
import statistics
from datetime import date, datetime
from typing import Callable, Optional, Sequence

from freefruit.errors import ContextResolutionFailure, InsufficientHistory
from freefruit.models import utcnow
from freefruit.projections.sports import SportProfile, get_sport_profile
from freefruit.projections.types import (
    DECLINING,
    IMPROVING,
    STABLE,
    PlayerContext,
    PlayerStatSample,
    ProjectionResult,
    Trend,
)

logger = logging.getLogger(__name__)

PROJECTION_METHOD = "weighted_avg_contextual"

HOME_ADVANTAGE = 0.03

# Rest-day multipliers: <=1 day poor, 2 days average, 3+ days good
REST_BONUS = {
    "poor": 0.0,
    "average": 0.02,
    "good": 0.05,
}
DEFAULT_REST_DAYS = 3

AVAILABILITY_MULTIPLIERS = {
    "active": 1.0,
    "limited": 0.85,
    "questionable": 0.70,
    "out": 0.0,
}

FRUIT_SCORE_MIN = 45
FRUIT_SCORE_MAX = 95
HIGH_CONFIDENCE_THRESHOLD = 80
MEDIUM_CONFIDENCE_THRESHOLD = 70

TREND_THRESHOLD_PCT = 10.0
TREND_RECENT_GAMES = 3
TREND_OLDER_GAMES = 2


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with ties going up (0.5 -> 1, -0.5 -> 0)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def compute_base_projection(
    samples: Sequence[PlayerStatSample], profile: SportProfile
) -> dict[str, float]:
    """
    Weighted sum per tracked stat.

    Weights are NOT renormalized when fewer than `lookback` samples exist,
    so a short history projects lower than the player's mean.
    """
    base: dict[str, float] = {}
    window = list(zip(samples, profile.weights))
    for stat in profile.stats:
        base[stat] = sum(sample.value(stat) * weight for sample, weight in window)
    return base


def rest_multiplier(rest_days: int) -> float:
    if rest_days <= 1:
        return 1.0 + REST_BONUS["poor"]
    if rest_days == 2:
        return 1.0 + REST_BONUS["average"]
    return 1.0 + REST_BONUS["good"]


def availability_multiplier(availability: str) -> float:
    return AVAILABILITY_MULTIPLIERS.get((availability or "active").lower(), 1.0)


def apply_contextual_adjustments(
    base: dict[str, float], context: PlayerContext, profile: SportProfile
) -> dict[str, float]:
    """Home, rest and availability multipliers chained in that order, then rounded."""
    digits = 0 if profile.integer_rounding else 1
    adjusted: dict[str, float] = {}
    for stat, value in base.items():
        if context.is_home:
            value *= 1.0 + HOME_ADVANTAGE
        value *= rest_multiplier(context.rest_days)
        value *= availability_multiplier(context.availability)
        adjusted[stat] = round_half_up(value, digits)
    return adjusted


def calculate_fruit_score(history: Sequence[float], projected: float, lookback: int) -> int:
    """
    Confidence score in [45, 95].

    Args:
        history: Primary-stat values, most recent first (unadjusted)
        projected: Adjusted primary-stat projection
        lookback: Sport lookback window (full sample bonus at this size)
    """
    if not history:
        return FRUIT_SCORE_MIN

    mean = statistics.fmean(history)
    volatility = statistics.pstdev(history)

    if mean > 0:
        score = max(50.0, 100.0 - (volatility / mean) * 100.0)
    else:
        score = 50.0

    score += (len(history) / lookback) * 10.0

    # Reasonableness penalty: distance of the adjusted line from the raw mean
    if projected > 0 and mean > 0:
        score -= abs(projected - mean) / mean * 20.0

    rounded = int(round_half_up(score))
    return max(FRUIT_SCORE_MIN, min(FRUIT_SCORE_MAX, rounded))


def confidence_level(fruit_score: int) -> str:
    if fruit_score >= HIGH_CONFIDENCE_THRESHOLD:
        return "high"
    if fruit_score >= MEDIUM_CONFIDENCE_THRESHOLD:
        return "medium"
    return "low"


def calculate_trend(history: Sequence[float]) -> Trend:
    """Compare the last 3 games with the 2 before them."""
    if len(history) < 2:
        return Trend(STABLE, 0)

    recent = list(history[:TREND_RECENT_GAMES])
    older = list(history[TREND_RECENT_GAMES:TREND_RECENT_GAMES + TREND_OLDER_GAMES])

    recent_avg = statistics.fmean(recent)
    older_avg = statistics.fmean(older) if older else recent_avg

    change_pct = (recent_avg - older_avg) * 100.0 / older_avg if older_avg > 0 else 0.0

    if change_pct > TREND_THRESHOLD_PCT:
        direction = IMPROVING
    elif change_pct < -TREND_THRESHOLD_PCT:
        direction = DECLINING
    else:
        direction = STABLE

    momentum = int(round_half_up(max(-100.0, min(100.0, change_pct))))
    return Trend(direction, momentum)


class ProjectionEngine:
    """
    Per-player projection against the stat store.

    Read-only: persistence is the orchestrator's job. The clock is injected so
    identical inputs produce identical results.
    """

    def __init__(self, store, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.clock = clock or utcnow

    async def project(self, player_id: int, target_date: date, sport: str) -> ProjectionResult:
        """
        Project a player's tracked stats for target_date.

        Raises:
            InsufficientHistory: no completed games before target_date
            ValueError: unknown sport
        """
        profile = get_sport_profile(sport)

        samples = await self.store.get_recent_samples(
            player_id, profile.code, limit=profile.lookback, before=target_date
        )
        if not samples:
            raise InsufficientHistory(player_id, profile.code)

        context = await self.resolve_context(player_id, target_date)

        base = compute_base_projection(samples, profile)
        adjusted = apply_contextual_adjustments(base, context, profile)

        primary = profile.primary_stat(samples)
        history = [sample.value(primary) for sample in samples]
        fruit_score = calculate_fruit_score(history, adjusted[primary], profile.lookback)
        trend = calculate_trend(history)

        return ProjectionResult(
            player_id=player_id,
            sport=profile.code,
            game_id=context.game_id,
            projection_date=target_date,
            projections=adjusted,
            fruit_score=fruit_score,
            confidence_level=confidence_level(fruit_score),
            trend=trend,
            projection_method=PROJECTION_METHOD,
            last_updated=self.clock(),
        )

    async def resolve_context(self, player_id: int, target_date: date) -> PlayerContext:
        """Home/away, rest days and availability for the target date."""
        last_game = await self.store.get_last_game_date_before(player_id, target_date)
        rest_days = (target_date - last_game).days if last_game else DEFAULT_REST_DAYS

        try:
            row = await self.store.get_player_context(player_id, target_date)
        except ContextResolutionFailure as e:
            logger.warning(f"[PROJECTIONS] {e}; using away/active defaults")
            return PlayerContext(
                player_id=player_id,
                target_date=target_date,
                is_home=False,
                rest_days=rest_days,
                availability="active",
            )

        return PlayerContext(
            player_id=player_id,
            target_date=target_date,
            is_home=row.is_home,
            rest_days=rest_days,
            availability=row.availability,
            game_id=row.game_id,
            team_id=row.team_id,
            venue=row.venue,
        )
