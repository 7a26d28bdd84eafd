"""Ingestion pipeline: SportsData feed -> teams, players, games, player_stats."""

import logging
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from freefruit.db_utils import upsert
from freefruit.etl.base import DataProvider, GameData, PlayerData
from freefruit.models import Game, Player, PlayerStat, Team, utcnow

logger = logging.getLogger(__name__)

EXTERNAL_KEY = ["sport", "external_id"]
STAT_KEY = ["player_id", "game_id"]


class ETLPipeline:
    """Orchestrates ingestion for one provider; each step runs in its own session."""

    def __init__(self, provider: DataProvider, session_factory):
        self.provider = provider
        self.session_factory = session_factory

    async def _id_map(self, session: AsyncSession, model, sport: str) -> dict[str, int]:
        """external_id -> internal id for a sport."""
        result = await session.execute(
            select(model.external_id, model.id).where(model.sport == sport)
        )
        return {row[0]: row[1] for row in result.all()}

    # ------------------------------------------------------------------
    # Per-domain syncs
    # ------------------------------------------------------------------

    async def sync_teams(self, sport: str) -> int:
        teams = await self.provider.get_teams(sport)
        async with self.session_factory() as session:
            for team in teams:
                await upsert(
                    session,
                    Team,
                    {
                        "sport": sport,
                        "external_id": team.external_id,
                        "name": team.name,
                        "city": team.city,
                        "abbreviation": team.abbreviation,
                        "conference": team.conference,
                        "division": team.division,
                        "logo_url": team.logo_url,
                        "updated_at": utcnow(),
                    },
                    EXTERNAL_KEY,
                )
            await session.commit()

        logger.info(f"[ETL] Updated {len(teams)} {sport} teams")
        return len(teams)

    def _player_values(self, sport: str, player: PlayerData, team_id: int) -> dict:
        return {
            "sport": sport,
            "external_id": player.external_id,
            "first_name": player.first_name,
            "last_name": player.last_name,
            "position": player.position,
            "jersey_number": player.jersey_number,
            "team_id": team_id,
            "photo_url": player.photo_url,
            "active": player.active,
            "availability": player.availability,
            "updated_at": utcnow(),
        }

    async def sync_players(self, sport: str) -> int:
        """Upsert the player pool; players without a known team are skipped."""
        players = await self.provider.get_players(sport)
        updated = 0
        async with self.session_factory() as session:
            team_ids = await self._id_map(session, Team, sport)
            for player in players:
                team_id = team_ids.get(player.team_external_id)
                if team_id is None:
                    continue
                await upsert(session, Player, self._player_values(sport, player, team_id), EXTERNAL_KEY)
                updated += 1
            await session.commit()

        logger.info(f"[ETL] Updated {updated} {sport} players")
        return updated

    async def refresh_availability(self, sport: str) -> int:
        """Re-read injury designations and roster flags for known players only."""
        players = await self.provider.get_players(sport)
        updated = 0
        async with self.session_factory() as session:
            team_ids = await self._id_map(session, Team, sport)
            known = await self._id_map(session, Player, sport)
            for player in players:
                team_id = team_ids.get(player.team_external_id)
                if player.external_id not in known or team_id is None:
                    continue
                await upsert(
                    session,
                    Player,
                    self._player_values(sport, player, team_id),
                    EXTERNAL_KEY,
                    update_columns=["team_id", "active", "availability", "updated_at"],
                )
                updated += 1
            await session.commit()

        logger.info(f"[ETL] Refreshed availability for {updated} {sport} players")
        return updated

    async def _upsert_games(self, session: AsyncSession, sport: str, games: list[GameData]) -> int:
        team_ids = await self._id_map(session, Team, sport)
        updated = 0
        for game in games:
            home_id = team_ids.get(game.home_team_external_id)
            away_id = team_ids.get(game.away_team_external_id)
            if home_id is None or away_id is None:
                continue
            await upsert(
                session,
                Game,
                {
                    "sport": sport,
                    "external_id": game.external_id,
                    "season": game.season,
                    "game_date": game.game_date,
                    "home_team_id": home_id,
                    "away_team_id": away_id,
                    "home_score": game.home_score,
                    "away_score": game.away_score,
                    "status": game.status,
                    "venue": game.venue,
                    "updated_at": utcnow(),
                },
                EXTERNAL_KEY,
            )
            updated += 1
        return updated

    async def refresh_schedule(self, sport: str, day: date) -> int:
        """Upsert the games of one date (status, scores, venue)."""
        games = await self.provider.get_games_by_date(sport, day)
        async with self.session_factory() as session:
            updated = await self._upsert_games(session, sport, games)
            await session.commit()

        logger.info(f"[ETL] Updated {updated} {sport} games for {day}")
        return updated

    async def sync_stats_for_date(self, sport: str, day: date) -> int:
        """Upsert games of a date and the box scores of the completed ones."""
        games = await self.provider.get_games_by_date(sport, day)
        lines = 0
        async with self.session_factory() as session:
            await self._upsert_games(session, sport, games)
            game_ids = await self._id_map(session, Game, sport)
            player_ids = await self._id_map(session, Player, sport)

            for game in games:
                game_id = game_ids.get(game.external_id)
                if game.status != "completed" or game_id is None:
                    continue
                for line in await self.provider.get_player_game_stats(sport, game.external_id):
                    player_id = player_ids.get(line.player_external_id)
                    if player_id is None:
                        continue
                    values = {
                        "player_id": player_id,
                        "game_id": game_id,
                        "sport": sport,
                        "created_at": utcnow(),
                        **line.stats,
                    }
                    await upsert(
                        session,
                        PlayerStat,
                        values,
                        STAT_KEY,
                        update_columns=list(line.stats.keys()),
                    )
                    lines += 1
            await session.commit()

        return lines

    # ------------------------------------------------------------------
    # Entry points used by the orchestrator
    # ------------------------------------------------------------------

    async def refresh_sport(self, sport: str, today: date, lookback_days: int = 7) -> dict:
        """
        Full ingestion for one sport: teams, players, today's schedule, and box
        scores for the last `lookback_days` days.

        Team, player and schedule failures propagate. A failing stats date is
        logged and skipped.
        """
        counts = {
            "teams": await self.sync_teams(sport),
            "players": await self.sync_players(sport),
            "games": await self.refresh_schedule(sport, today),
            "stats": 0,
        }

        for offset in range(1, lookback_days + 1):
            day = today - timedelta(days=offset)
            try:
                counts["stats"] += await self.sync_stats_for_date(sport, day)
            except Exception as e:
                logger.warning(f"[ETL] Failed to update {sport} stats for {day}: {e}")

        logger.info(
            f"[ETL] {sport} refresh complete: {counts['teams']} teams, {counts['players']} players, "
            f"{counts['games']} games, {counts['stats']} stat lines"
        )
        return counts
