"""Exceptions raised by the projection pipeline."""

from datetime import date
from typing import Optional


class FreeFruitError(Exception):
    """Base class for pipeline errors."""


class InsufficientHistory(FreeFruitError):
    """Raised when a player has no completed-game samples to project from."""

    def __init__(self, player_id: int, sport: Optional[str] = None):
        self.player_id = player_id
        self.sport = sport
        super().__init__(f"No recent stats found for player {player_id}")


class ContextResolutionFailure(FreeFruitError):
    """Raised when no schedule/context row exists for a player on a date."""

    def __init__(self, player_id: int, game_date: date):
        self.player_id = player_id
        self.game_date = game_date
        super().__init__(f"No game context for player {player_id} on {game_date.isoformat()}")


class DataSourceFailure(FreeFruitError):
    """External feed request failed (transport error, timeout or non-2xx)."""

    def __init__(self, message: str, endpoint: Optional[str] = None, status_code: Optional[int] = None):
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(message)


class PersistenceFailure(FreeFruitError):
    """A write to the stat store failed."""


class CacheFailure(FreeFruitError):
    """The cache backend is unavailable."""
