"""Projection engine package."""

from freefruit.projections.engine import ProjectionEngine
from freefruit.projections.sports import SPORT_PROFILES, SportProfile, get_sport_profile
from freefruit.projections.types import PlayerStatSample, ProjectionResult, Trend

__all__ = [
    "ProjectionEngine",
    "SPORT_PROFILES",
    "SportProfile",
    "get_sport_profile",
    "PlayerStatSample",
    "ProjectionResult",
    "Trend",
]
