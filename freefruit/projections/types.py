"""Value objects passed between the store, the engine and the orchestrator."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

# Trend directions
IMPROVING = "improving"
DECLINING = "declining"
STABLE = "stable"


@dataclass
class PlayerStatSample:
    """One completed game for a player; stats may contain None."""

    game_id: int
    game_date: date
    stats: dict[str, Optional[float]] = field(default_factory=dict)

    def value(self, stat: str) -> float:
        raw = self.stats.get(stat)
        return float(raw) if raw is not None else 0.0


@dataclass
class ScheduledPlayer:
    """Active player whose team plays on the target date."""

    player_id: int
    game_id: int
    team_id: int
    is_home: bool
    name: str = ""


@dataclass
class GameContextRow:
    """Schedule/availability row for a player on a date, as stored."""

    team_id: Optional[int]
    game_id: Optional[int]
    is_home: bool
    availability: str
    venue: Optional[str] = None


@dataclass
class PlayerContext:
    """Context used by the contextual multipliers."""

    player_id: int
    target_date: date
    is_home: bool
    rest_days: int
    availability: str
    game_id: Optional[int] = None
    team_id: Optional[int] = None
    venue: Optional[str] = None


@dataclass
class Trend:
    direction: str = STABLE
    momentum_score: int = 0

    def to_dict(self) -> dict:
        return {"direction": self.direction, "momentum_score": self.momentum_score}


@dataclass
class ProjectionResult:
    """Engine output for one player/game/date."""

    player_id: int
    sport: str
    projection_date: date
    projections: dict[str, float]
    fruit_score: int
    confidence_level: str
    trend: Trend
    game_id: Optional[int] = None
    projection_method: str = "weighted_avg_contextual"
    last_updated: Optional[datetime] = None

    def to_dict(self) -> dict:
        """JSON-safe payload for cache publication."""
        return {
            "player_id": self.player_id,
            "sport": self.sport,
            "game_id": self.game_id,
            "projection_date": self.projection_date.isoformat(),
            "projections": dict(self.projections),
            "fruit_score": self.fruit_score,
            "confidence_level": self.confidence_level,
            "trend": self.trend.to_dict(),
            "projection_method": self.projection_method,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }
