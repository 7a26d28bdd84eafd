"""Tests for StatStore against in-memory SQLite (aiosqlite)."""

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import DateTime, func, select

from freefruit.errors import ContextResolutionFailure
from freefruit.models import PlayerStat, Projection, RefreshLog, Team
from freefruit.projections.types import Trend

from tests.helpers import make_result, seed_league

TODAY = date(2024, 1, 15)


class TestScheduledPlayers:
    @pytest.mark.asyncio
    async def test_active_players_with_scheduled_game(self, store, session_factory):
        ids = await seed_league(session_factory, TODAY)

        players = await store.get_players_with_games("NBA", TODAY)

        assert [p.player_id for p in players] == [ids["james"], ids["tatum"]]
        by_id = {p.player_id: p for p in players}
        assert by_id[ids["james"]].is_home is True
        assert by_id[ids["tatum"]].is_home is False
        assert all(p.game_id == ids["tonight"] for p in players)

    @pytest.mark.asyncio
    async def test_no_scheduled_games(self, store, session_factory):
        await seed_league(session_factory, TODAY)
        assert await store.get_players_with_games("NBA", TODAY + timedelta(days=1)) == []
        assert await store.get_players_with_games("NFL", TODAY) == []


class TestSamples:
    @pytest.mark.asyncio
    async def test_recent_samples_newest_first(self, store, session_factory):
        ids = await seed_league(session_factory, TODAY)

        samples = await store.get_recent_samples(ids["james"], "NBA", limit=3, before=TODAY)

        assert [s.value("points") for s in samples] == [30.0, 25.0, 22.0]
        assert [s.game_date for s in samples] == [
            TODAY - timedelta(days=2),
            TODAY - timedelta(days=4),
            TODAY - timedelta(days=7),
        ]
        assert samples[0].stats["assists"] is None
        assert samples[0].value("assists") == 0.0

    @pytest.mark.asyncio
    async def test_samples_strictly_before_date(self, store, session_factory):
        ids = await seed_league(session_factory, TODAY)

        samples = await store.get_recent_samples(ids["james"], "NBA", limit=5, before=TODAY - timedelta(days=4))

        assert [s.value("points") for s in samples] == [22.0, 18.0]

    @pytest.mark.asyncio
    async def test_last_game_date(self, store, session_factory):
        ids = await seed_league(session_factory, TODAY)

        assert await store.get_last_game_date_before(ids["james"], TODAY) == TODAY - timedelta(days=2)
        assert await store.get_last_game_date_before(ids["tatum"], TODAY) is None


class TestPlayerContext:
    @pytest.mark.asyncio
    async def test_context_row(self, store, session_factory):
        ids = await seed_league(session_factory, TODAY)

        row = await store.get_player_context(ids["james"], TODAY)

        assert row.is_home is True
        assert row.game_id == ids["tonight"]
        assert row.availability == "questionable"
        assert row.venue == "Crypto.com Arena"

    @pytest.mark.asyncio
    async def test_missing_context_raises(self, store, session_factory):
        ids = await seed_league(session_factory, TODAY)

        with pytest.raises(ContextResolutionFailure):
            await store.get_player_context(ids["james"], TODAY + timedelta(days=1))
        with pytest.raises(ContextResolutionFailure):
            await store.get_player_context(9999, TODAY)


class TestProjectionUpsert:
    @pytest.mark.asyncio
    async def test_upsert_keeps_one_row_per_key(self, store, session_factory):
        ids = await seed_league(session_factory, TODAY)
        first = make_result(ids["james"], fruit_score=70, game_id=ids["tonight"])
        second = make_result(ids["james"], fruit_score=85, direction="improving", game_id=ids["tonight"])

        await store.upsert_projections([first])
        await store.upsert_projections([second])

        async with session_factory() as session:
            count = (await session.execute(select(func.count()).select_from(Projection))).scalar_one()
        assert count == 1

        stored = await store.get_projections_for_date(TODAY)
        assert len(stored) == 1
        assert stored[0].fruit_score == 85
        assert stored[0].trend == Trend("improving", 0)
        assert stored[0].projections == {"points": 20.0, "rebounds": 5.0, "assists": 4.0}

    @pytest.mark.asyncio
    async def test_empty_batch(self, store):
        assert await store.upsert_projections([]) == 0

    @pytest.mark.asyncio
    async def test_projections_filtered_by_sport(self, store, session_factory):
        ids = await seed_league(session_factory, TODAY)
        await store.upsert_projections([make_result(ids["james"], game_id=ids["tonight"])])

        assert len(await store.get_projections_for_date(TODAY, "NBA")) == 1
        assert await store.get_projections_for_date(TODAY, "NFL") == []


class TestRefreshLog:
    @pytest.mark.asyncio
    async def test_start_and_complete(self, store, session_factory):
        started = datetime(2024, 1, 15, 12, 0, 0)
        log_id = await store.start_refresh_log("full_refresh", started_at=started)
        await store.complete_refresh_log(
            log_id, "success", records=42, completed_at=started + timedelta(seconds=3)
        )
        # Completed exactly once: a second completion is ignored
        await store.complete_refresh_log(log_id, "error", error="late", completed_at=started + timedelta(seconds=9))

        async with session_factory() as session:
            log = await session.get(RefreshLog, log_id)
        assert log.status == "success"
        assert log.records_processed == 42
        assert log.duration_ms == 3000
        assert log.error_message is None

    @pytest.mark.asyncio
    async def test_jobs_health(self, store):
        started = datetime(2024, 1, 15, 12, 0, 0)
        ok_id = await store.start_refresh_log("midday_update", started_at=started)
        await store.complete_refresh_log(ok_id, "success", records=5, completed_at=started + timedelta(seconds=1))
        err_id = await store.start_refresh_log("midday_update", started_at=started + timedelta(days=1))
        await store.complete_refresh_log(err_id, "error", error="feed down", completed_at=started + timedelta(days=1))

        health = await store.get_jobs_health()

        assert health["midday_update"]["last_run_status"] == "error"
        assert health["midday_update"]["last_error"] == "feed down"
        assert health["midday_update"]["last_success_at"] == (started + timedelta(seconds=1)).isoformat()


class TestRetention:
    @pytest.mark.asyncio
    async def test_refresh_logs_boundary(self, store, session_factory):
        """Rows older than 30 days go; the row at exactly 30 days stays."""
        now = datetime(2024, 1, 15, 2, 0, 0)
        for age in (31, 30, 1):
            await store.start_refresh_log("full_refresh", started_at=now - timedelta(days=age))

        deleted = await store.purge_refresh_logs(now - timedelta(days=30))

        assert deleted == 1
        async with session_factory() as session:
            remaining = (await session.execute(select(RefreshLog.started_at))).scalars().all()
        assert sorted(remaining) == [now - timedelta(days=30), now - timedelta(days=1)]

    @pytest.mark.asyncio
    async def test_projection_retention(self, store, session_factory):
        ids = await seed_league(session_factory, TODAY)
        cutoff = TODAY - timedelta(days=14)
        await store.upsert_projections([
            make_result(ids["james"], day=cutoff - timedelta(days=1), game_id=ids["tonight"]),
            make_result(ids["james"], day=cutoff, game_id=ids["tonight"]),
            make_result(ids["james"], day=TODAY, game_id=ids["tonight"]),
        ])

        assert await store.purge_projections(cutoff) == 1
        assert len(await store.get_projections_for_date(cutoff)) == 1

    @pytest.mark.asyncio
    async def test_player_stats_retention(self, store, session_factory):
        ids = await seed_league(session_factory, TODAY)

        # Games at 10 and 7 days old are before the cutoff; 4 and 2 are not
        deleted = await store.purge_player_stats(TODAY - timedelta(days=5))

        assert deleted == 2
        async with session_factory() as session:
            count = (await session.execute(select(func.count()).select_from(PlayerStat))).scalar_one()
        assert count == 2


class TestPlayerReads:
    @pytest.mark.asyncio
    async def test_get_player(self, store, session_factory):
        ids = await seed_league(session_factory, TODAY)

        player = await store.get_player(ids["james"])

        assert player.last_name == "James"
        assert player.availability == "questionable"
        assert await store.get_player(9999) is None

    @pytest.mark.asyncio
    async def test_player_projections_newest_first(self, store, session_factory):
        ids = await seed_league(session_factory, TODAY)
        await store.upsert_projections([
            make_result(ids["james"], fruit_score=70, day=TODAY - timedelta(days=1), game_id=ids["tonight"]),
            make_result(ids["james"], fruit_score=88, day=TODAY, game_id=ids["tonight"]),
            make_result(ids["tatum"], fruit_score=90, day=TODAY, game_id=ids["tonight"]),
        ])

        projections = await store.get_player_projections(ids["james"], "nba")

        assert [p.projection_date for p in projections] == [TODAY, TODAY - timedelta(days=1)]
        assert [p.fruit_score for p in projections] == [88, 70]
        assert len(await store.get_player_projections(ids["james"], "NBA", limit=1)) == 1
        assert await store.get_player_projections(ids["james"], "NFL") == []


class TestTimestampStorage:
    def test_timestamp_columns_are_naive(self):
        for column in (
            RefreshLog.__table__.c.started_at,
            RefreshLog.__table__.c.completed_at,
            Projection.__table__.c.last_updated,
            Team.__table__.c.updated_at,
        ):
            assert isinstance(column.type, DateTime)
            assert column.type.timezone is False

    @pytest.mark.asyncio
    async def test_naive_and_aware_values_stored_as_naive_utc(self, store, session_factory):
        ids = await seed_league(session_factory, TODAY)
        result = make_result(ids["james"], game_id=ids["tonight"])
        result.last_updated = datetime(2024, 1, 15, 12, 0, tzinfo=timezone(timedelta(hours=-6)))
        await store.upsert_projections([result])

        log_id = await store.start_refresh_log(
            "midday_update", started_at=datetime(2024, 1, 15, 18, 0, tzinfo=timezone.utc)
        )

        async with session_factory() as session:
            row = (await session.execute(select(Projection))).scalar_one()
            log = await session.get(RefreshLog, log_id)
            team = await session.get(Team, ids["lakers"])
        assert row.last_updated == datetime(2024, 1, 15, 18, 0)
        assert log.started_at == datetime(2024, 1, 15, 18, 0)
        assert team.updated_at.tzinfo is None
