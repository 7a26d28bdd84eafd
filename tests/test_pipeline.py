"""Tests for the ETL pipeline against in-memory SQLite with a fake provider."""

from datetime import date, timedelta

import pytest
from sqlalchemy import select

from freefruit.errors import DataSourceFailure
from freefruit.etl.base import DataProvider, GameData, PlayerData, PlayerStatData, TeamData
from freefruit.etl.pipeline import ETLPipeline
from freefruit.models import Game, Player, PlayerStat, Team

TODAY = date(2024, 1, 15)


class FakeProvider(DataProvider):
    """Serves a two-team league; one completed game yesterday, one scheduled today."""

    def __init__(self, failing_dates=()):
        self.failing_dates = set(failing_dates)
        self.injuries = {"100": "active", "200": "active"}
        self.extra_players = []

    async def get_teams(self, sport):
        return [
            TeamData(external_id="1", name="Lakers", city="Los Angeles", abbreviation="LAL"),
            TeamData(external_id="2", name="Celtics", city="Boston", abbreviation="BOS"),
        ]

    async def get_players(self, sport):
        players = [
            PlayerData("100", "LeBron", "James", "1", availability=self.injuries["100"]),
            PlayerData("200", "Jayson", "Tatum", "2", availability=self.injuries["200"]),
            PlayerData("999", "Free", "Agent", None),
        ]
        return players + self.extra_players

    async def get_games_by_date(self, sport, day):
        if day in self.failing_dates:
            raise DataSourceFailure("HTTP 503", endpoint="GamesByDate", status_code=503)
        if day == TODAY:
            return [GameData("g-today", day, "1", "2", "scheduled", venue="Crypto.com Arena")]
        if day == TODAY - timedelta(days=1):
            return [GameData("g-yday", day, "2", "1", "completed", home_score=110, away_score=104)]
        return []

    async def get_player_game_stats(self, sport, game_external_id):
        return [
            PlayerStatData("100", game_external_id, {"points": 28, "rebounds": 9, "assists": 7}),
            PlayerStatData("200", game_external_id, {"points": 31, "rebounds": 6, "assists": None}),
            PlayerStatData("unknown", game_external_id, {"points": 2}),
        ]


async def fetch_all(session_factory, model):
    async with session_factory() as session:
        return (await session.execute(select(model))).scalars().all()


class TestRefreshSport:
    @pytest.mark.asyncio
    async def test_full_ingestion(self, session_factory):
        pipeline = ETLPipeline(FakeProvider(), session_factory)

        counts = await pipeline.refresh_sport("NBA", TODAY, lookback_days=3)

        assert counts == {"teams": 2, "players": 2, "games": 1, "stats": 2}
        assert len(await fetch_all(session_factory, Team)) == 2
        assert sorted(p.last_name for p in await fetch_all(session_factory, Player)) == ["James", "Tatum"]

        games = {g.external_id: g for g in await fetch_all(session_factory, Game)}
        assert games["g-today"].status == "scheduled"
        assert games["g-today"].venue == "Crypto.com Arena"
        assert games["g-yday"].status == "completed"
        assert games["g-yday"].home_score == 110

        stats = await fetch_all(session_factory, PlayerStat)
        assert sorted(s.points for s in stats) == [28, 31]

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, session_factory):
        pipeline = ETLPipeline(FakeProvider(), session_factory)

        await pipeline.refresh_sport("NBA", TODAY, lookback_days=2)
        await pipeline.refresh_sport("NBA", TODAY, lookback_days=2)

        assert len(await fetch_all(session_factory, Game)) == 2
        assert len(await fetch_all(session_factory, PlayerStat)) == 2

    @pytest.mark.asyncio
    async def test_failing_stats_date_is_skipped(self, session_factory):
        provider = FakeProvider(failing_dates={TODAY - timedelta(days=2)})
        pipeline = ETLPipeline(provider, session_factory)

        counts = await pipeline.refresh_sport("NBA", TODAY, lookback_days=3)

        assert counts["stats"] == 2

    @pytest.mark.asyncio
    async def test_schedule_failure_propagates(self, session_factory):
        pipeline = ETLPipeline(FakeProvider(failing_dates={TODAY}), session_factory)

        with pytest.raises(DataSourceFailure):
            await pipeline.refresh_sport("NBA", TODAY, lookback_days=1)


class TestRefreshAvailability:
    @pytest.mark.asyncio
    async def test_updates_known_players_only(self, session_factory):
        provider = FakeProvider()
        pipeline = ETLPipeline(provider, session_factory)
        await pipeline.sync_teams("NBA")
        await pipeline.sync_players("NBA")

        provider.injuries["100"] = "out"
        provider.extra_players = [PlayerData("300", "New", "Signing", "1")]

        assert await pipeline.refresh_availability("NBA") == 2

        players = {p.external_id: p for p in await fetch_all(session_factory, Player)}
        assert set(players) == {"100", "200"}
        assert players["100"].availability == "out"
        assert players["200"].availability == "active"
