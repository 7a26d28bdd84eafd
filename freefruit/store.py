"""
Stat store: the query-shaped reads and writes the projection pipeline needs.

Each operation opens its own session from the injected factory, so
concurrent per-player reads inside a projection batch never share an
AsyncSession.
"""

import logging
from datetime import date, datetime
from typing import Optional, Sequence

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError

from freefruit.database import get_session_with_retry
from freefruit.db_utils import bulk_upsert, to_naive_utc
from freefruit.errors import ContextResolutionFailure, PersistenceFailure
from freefruit.jobs import tracking
from freefruit.models import Game, Player, PlayerStat, Projection, utcnow
from freefruit.projections.types import (
    GameContextRow,
    PlayerStatSample,
    ProjectionResult,
    ScheduledPlayer,
    Trend,
)

logger = logging.getLogger(__name__)

# Counting-stat columns copied into PlayerStatSample.stats
STAT_COLUMNS = (
    "points",
    "rebounds",
    "assists",
    "steals",
    "blocks",
    "turnovers",
    "minutes_played",
    "passing_yards",
    "passing_touchdowns",
    "rushing_yards",
    "rushing_touchdowns",
    "receiving_yards",
    "receiving_touchdowns",
    "receptions",
)

# Stats persisted as projected_<stat> columns
PROJECTED_STATS = (
    "points",
    "rebounds",
    "assists",
    "passing_yards",
    "rushing_yards",
    "receiving_yards",
)

PROJECTION_KEY = ["player_id", "game_id", "projection_date"]


class StatStore:
    """Async facade over the SQLModel tables."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_players_with_games(self, sport: str, game_date: date) -> list[ScheduledPlayer]:
        """Active players whose team has a scheduled game on game_date."""
        stmt = (
            select(Player, Game)
            .join(
                Game,
                or_(Game.home_team_id == Player.team_id, Game.away_team_id == Player.team_id),
            )
            .where(
                Player.sport == sport,
                Player.active.is_(True),
                Game.sport == sport,
                Game.game_date == game_date,
                Game.status == "scheduled",
            )
            .order_by(Player.last_name, Player.first_name, Player.id)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            rows = result.all()

        return [
            ScheduledPlayer(
                player_id=player.id,
                game_id=game.id,
                team_id=player.team_id,
                is_home=game.home_team_id == player.team_id,
                name=f"{player.first_name} {player.last_name}",
            )
            for player, game in rows
        ]

    async def get_recent_samples(
        self, player_id: int, sport: str, limit: int, before: date
    ) -> list[PlayerStatSample]:
        """Last `limit` completed-game stat lines strictly before `before`, newest first."""
        stmt = (
            select(PlayerStat, Game.game_date)
            .join(Game, Game.id == PlayerStat.game_id)
            .where(
                PlayerStat.player_id == player_id,
                PlayerStat.sport == sport,
                Game.status == "completed",
                Game.game_date < before,
            )
            .order_by(Game.game_date.desc(), Game.id.desc())
            .limit(limit)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            rows = result.all()

        return [
            PlayerStatSample(
                game_id=stat.game_id,
                game_date=game_date,
                stats={column: getattr(stat, column) for column in STAT_COLUMNS},
            )
            for stat, game_date in rows
        ]

    async def get_last_game_date_before(self, player_id: int, before: date) -> Optional[date]:
        """Date of the player's most recent counted game before `before`."""
        stmt = (
            select(Game.game_date)
            .join(PlayerStat, PlayerStat.game_id == Game.id)
            .where(PlayerStat.player_id == player_id, Game.game_date < before)
            .order_by(Game.game_date.desc())
            .limit(1)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def get_player_context(self, player_id: int, game_date: date) -> GameContextRow:
        """
        Team, game and availability for a player on a date.

        Raises:
            ContextResolutionFailure: player unknown or no team game that day
        """
        async with self.session_factory() as session:
            player = await session.get(Player, player_id)
            if player is None or player.team_id is None:
                raise ContextResolutionFailure(player_id, game_date)

            result = await session.execute(
                select(Game)
                .where(
                    Game.game_date == game_date,
                    or_(Game.home_team_id == player.team_id, Game.away_team_id == player.team_id),
                )
                .order_by(Game.id)
                .limit(1)
            )
            game = result.scalar_one_or_none()

        if game is None:
            raise ContextResolutionFailure(player_id, game_date)

        return GameContextRow(
            team_id=player.team_id,
            game_id=game.id,
            is_home=game.home_team_id == player.team_id,
            availability=player.availability or "active",
            venue=game.venue,
        )

    async def get_projections_for_date(
        self, day: date, sport: Optional[str] = None
    ) -> list[ProjectionResult]:
        """Durable projections for a date (all sports unless one is given)."""
        stmt = select(Projection).where(Projection.projection_date == day)
        if sport:
            stmt = stmt.where(Projection.sport == sport)
        stmt = stmt.order_by(Projection.fruit_score.desc(), Projection.id)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            rows = result.scalars().all()

        return [_row_to_result(row) for row in rows]

    async def get_player(self, player_id: int) -> Optional[Player]:
        async with self.session_factory() as session:
            return await session.get(Player, player_id)

    async def get_player_projections(
        self, player_id: int, sport: str, limit: int = 7
    ) -> list[ProjectionResult]:
        """A player's stored projections for one sport, newest projection date first."""
        stmt = (
            select(Projection)
            .where(Projection.player_id == player_id, Projection.sport == sport.upper())
            .order_by(Projection.projection_date.desc(), Projection.id.desc())
            .limit(limit)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            rows = result.scalars().all()

        return [_row_to_result(row) for row in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert_projections(self, results: Sequence[ProjectionResult]) -> int:
        """
        Upsert a sport's projections in one transaction.

        Raises:
            PersistenceFailure: the batch was rolled back
        """
        if not results:
            return 0

        values_list = [_result_to_values(r) for r in results]
        async with self.session_factory() as session:
            try:
                count = await bulk_upsert(session, Projection, values_list, PROJECTION_KEY)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"[PROJECTIONS] Projection upsert rolled back: {e}")
                raise PersistenceFailure(f"Failed to persist {len(values_list)} projections: {e}") from e

        logger.info(f"[PROJECTIONS] Persisted {count} projections")
        return count

    async def start_refresh_log(
        self, refresh_type: str, sport: Optional[str] = None, started_at: Optional[datetime] = None
    ) -> int:
        async with get_session_with_retry(self.session_factory) as session:
            return await tracking.start_refresh_log(session, refresh_type, sport, started_at)

    async def complete_refresh_log(
        self,
        log_id: int,
        status: str,
        records: int = 0,
        error: Optional[str] = None,
        completed_at: Optional[datetime] = None,
    ) -> None:
        async with get_session_with_retry(self.session_factory) as session:
            await tracking.complete_refresh_log(session, log_id, status, records, error, completed_at)

    async def get_jobs_health(self) -> dict:
        async with self.session_factory() as session:
            return await tracking.get_jobs_health_from_db(session)

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    async def purge_refresh_logs(self, older_than: datetime) -> int:
        """Delete RefreshLog rows started strictly before the cutoff."""
        async with get_session_with_retry(self.session_factory) as session:
            return await tracking.cleanup_old_runs(session, older_than)

    async def purge_projections(self, before_date: date) -> int:
        """Delete projections dated strictly before before_date."""
        async with get_session_with_retry(self.session_factory) as session:
            result = await session.execute(
                delete(Projection).where(Projection.projection_date < before_date)
            )
            await session.commit()
        deleted = result.rowcount or 0
        logger.info(f"[CLEANUP] Deleted {deleted} projections before {before_date}")
        return deleted

    async def purge_player_stats(self, before_date: date) -> int:
        """Delete stat lines of games played strictly before before_date."""
        old_games = select(Game.id).where(Game.game_date < before_date)
        async with get_session_with_retry(self.session_factory) as session:
            result = await session.execute(
                delete(PlayerStat).where(PlayerStat.game_id.in_(old_games))
            )
            await session.commit()
        deleted = result.rowcount or 0
        logger.info(f"[CLEANUP] Deleted {deleted} player stat lines before {before_date}")
        return deleted


def _result_to_values(result: ProjectionResult) -> dict:
    values = {
        "player_id": result.player_id,
        "game_id": result.game_id,
        "sport": result.sport,
        "projection_date": result.projection_date,
        "fruit_score": result.fruit_score,
        "confidence_level": result.confidence_level,
        "trend_direction": result.trend.direction,
        "momentum_score": result.trend.momentum_score,
        "projection_method": result.projection_method,
        "last_updated": to_naive_utc(result.last_updated or utcnow()),
    }
    for stat in PROJECTED_STATS:
        values[f"projected_{stat}"] = result.projections.get(stat)
    return values


def _row_to_result(row: Projection) -> ProjectionResult:
    projections = {}
    for stat in PROJECTED_STATS:
        value = getattr(row, f"projected_{stat}")
        if value is not None:
            projections[stat] = value
    return ProjectionResult(
        player_id=row.player_id,
        sport=row.sport,
        game_id=row.game_id,
        projection_date=row.projection_date,
        projections=projections,
        fruit_score=row.fruit_score,
        confidence_level=row.confidence_level,
        trend=Trend(row.trend_direction, row.momentum_score),
        projection_method=row.projection_method,
        last_updated=row.last_updated,
    )
