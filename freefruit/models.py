"""Database models using SQLModel."""

from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime, Text, UniqueConstraint
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Naive UTC timestamp. Timestamp columns are plain DateTime holding naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Team(SQLModel, table=True):
    """Team of a tracked league."""

    __tablename__ = "teams"
    __table_args__ = (
        UniqueConstraint("sport", "external_id", name="uq_team_sport_external"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    sport: str = Field(max_length=10, index=True, description="'NBA' or 'NFL'")
    external_id: str = Field(max_length=20, description="SportsData TeamID")
    name: str = Field(max_length=100)
    city: Optional[str] = Field(default=None, max_length=100)
    abbreviation: Optional[str] = Field(default=None, max_length=10)
    conference: Optional[str] = Field(default=None, max_length=20)
    division: Optional[str] = Field(default=None, max_length=20)
    logo_url: Optional[str] = Field(default=None, max_length=255)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class Player(SQLModel, table=True):
    """Rostered player."""

    __tablename__ = "players"
    __table_args__ = (
        UniqueConstraint("sport", "external_id", name="uq_player_sport_external"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    sport: str = Field(max_length=10, index=True)
    external_id: str = Field(max_length=50, description="SportsData PlayerID")
    first_name: str = Field(max_length=50)
    last_name: str = Field(max_length=50)
    position: Optional[str] = Field(default=None, max_length=10)
    jersey_number: Optional[int] = Field(default=None)
    team_id: Optional[int] = Field(default=None, foreign_key="teams.id", index=True)
    photo_url: Optional[str] = Field(default=None, max_length=255)
    active: bool = Field(default=True, index=True, description="On an active roster")
    availability: str = Field(
        default="active", max_length=20, description="active, limited, questionable, out"
    )
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class Game(SQLModel, table=True):
    """Scheduled or completed game."""

    __tablename__ = "games"
    __table_args__ = (
        UniqueConstraint("sport", "external_id", name="uq_game_sport_external"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    sport: str = Field(max_length=10, index=True)
    external_id: str = Field(max_length=50, description="SportsData GameID")
    season: Optional[str] = Field(default=None, max_length=20)
    game_date: date = Field(index=True)
    home_team_id: int = Field(foreign_key="teams.id", index=True)
    away_team_id: int = Field(foreign_key="teams.id", index=True)
    home_score: Optional[int] = Field(default=None)
    away_score: Optional[int] = Field(default=None)
    status: str = Field(
        default="scheduled",
        max_length=20,
        description="scheduled, in_progress, completed, postponed, cancelled",
    )
    venue: Optional[str] = Field(default=None, max_length=100)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class PlayerStat(SQLModel, table=True):
    """Box-score line for one player in one game."""

    __tablename__ = "player_stats"
    __table_args__ = (
        UniqueConstraint("player_id", "game_id", name="uq_player_game_stat"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    player_id: int = Field(foreign_key="players.id", index=True)
    game_id: int = Field(foreign_key="games.id", index=True)
    sport: str = Field(max_length=10)

    # NBA
    points: Optional[int] = Field(default=None)
    rebounds: Optional[int] = Field(default=None)
    assists: Optional[int] = Field(default=None)
    steals: Optional[int] = Field(default=None)
    blocks: Optional[int] = Field(default=None)
    turnovers: Optional[int] = Field(default=None)
    minutes_played: Optional[int] = Field(default=None)

    # NFL
    passing_yards: Optional[int] = Field(default=None)
    passing_touchdowns: Optional[int] = Field(default=None)
    rushing_yards: Optional[int] = Field(default=None)
    rushing_touchdowns: Optional[int] = Field(default=None)
    receiving_yards: Optional[int] = Field(default=None)
    receiving_touchdowns: Optional[int] = Field(default=None)
    receptions: Optional[int] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class Projection(SQLModel, table=True):
    """Daily projection for a player's game. One live row per (player, game, date)."""

    __tablename__ = "projections"
    __table_args__ = (
        UniqueConstraint("player_id", "game_id", "projection_date", name="uq_projection_player_game_date"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    player_id: int = Field(foreign_key="players.id", index=True)
    game_id: Optional[int] = Field(default=None, foreign_key="games.id")
    sport: str = Field(max_length=10, index=True)
    projection_date: date = Field(index=True)

    projected_points: Optional[float] = Field(default=None)
    projected_rebounds: Optional[float] = Field(default=None)
    projected_assists: Optional[float] = Field(default=None)
    projected_passing_yards: Optional[float] = Field(default=None)
    projected_rushing_yards: Optional[float] = Field(default=None)
    projected_receiving_yards: Optional[float] = Field(default=None)

    fruit_score: int = Field(description="Confidence 0-100")
    confidence_level: str = Field(max_length=20, description="low, medium, high")
    trend_direction: str = Field(default="stable", max_length=10)
    momentum_score: int = Field(default=0)
    projection_method: str = Field(default="weighted_avg_contextual", max_length=50)
    last_updated: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class RefreshLog(SQLModel, table=True):
    """Audit row for one job invocation."""

    __tablename__ = "refresh_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    refresh_type: str = Field(max_length=50, index=True)
    sport: Optional[str] = Field(default=None, max_length=10)
    status: str = Field(max_length=20, description="running, success, error")
    records_processed: int = Field(default=0)
    error_message: Optional[str] = Field(default=None, sa_column=Column(Text))
    started_at: datetime = Field(sa_type=DateTime, index=True)
    completed_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    duration_ms: Optional[int] = Field(default=None)
