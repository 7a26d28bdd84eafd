"""Abstract base class for sports data providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Optional


@dataclass
class TeamData:
    """Data transfer object for team information."""

    external_id: str
    name: str
    city: Optional[str] = None
    abbreviation: Optional[str] = None
    conference: Optional[str] = None
    division: Optional[str] = None
    logo_url: Optional[str] = None


@dataclass
class PlayerData:
    """Data transfer object for a rostered player."""

    external_id: str
    first_name: str
    last_name: str
    team_external_id: Optional[str]
    position: Optional[str] = None
    jersey_number: Optional[int] = None
    photo_url: Optional[str] = None
    active: bool = True
    availability: str = "active"  # active, limited, questionable, out


@dataclass
class GameData:
    """Data transfer object for a game."""

    external_id: str
    game_date: date
    home_team_external_id: str
    away_team_external_id: str
    status: str  # scheduled, in_progress, completed, postponed, cancelled
    season: Optional[str] = None
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    venue: Optional[str] = None


@dataclass
class PlayerStatData:
    """Box-score line keyed by feed ids; stats uses player_stats column names."""

    player_external_id: str
    game_external_id: str
    stats: dict[str, Optional[int]] = field(default_factory=dict)


class DataProvider(ABC):
    """Abstract base class for NBA/NFL data providers."""

    @abstractmethod
    async def get_teams(self, sport: str) -> list[TeamData]:
        """
        Fetch all teams of a league.

        Args:
            sport: League code ("NBA" or "NFL").

        Returns:
            List of TeamData objects.
        """
        pass

    @abstractmethod
    async def get_players(self, sport: str) -> list[PlayerData]:
        """
        Fetch the league's player pool with current injury designations.

        Args:
            sport: League code.

        Returns:
            List of PlayerData objects.
        """
        pass

    @abstractmethod
    async def get_games_by_date(self, sport: str, day: date) -> list[GameData]:
        """
        Fetch games played or scheduled on a date.

        Args:
            sport: League code.
            day: Calendar date of the games.

        Returns:
            List of GameData objects.
        """
        pass

    @abstractmethod
    async def get_player_game_stats(self, sport: str, game_external_id: str) -> list[PlayerStatData]:
        """
        Fetch the box score for one game.

        Args:
            sport: League code.
            game_external_id: Feed GameID.

        Returns:
            List of PlayerStatData objects.
        """
        pass

    async def close(self) -> None:
        """Release provider resources."""
        pass
