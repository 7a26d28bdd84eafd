"""Tests for the HTTP routes with services stubbed on app.state."""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from freefruit.cache import MemoryCache
from freefruit.config import Settings
from freefruit.errors import DataSourceFailure
from freefruit.insights import InsightPublisher
from freefruit.models import Player
from freefruit.projections.types import PlayerStatSample
from freefruit.routes import router

from tests.helpers import make_result


def build_app(settings=None, projections=()):
    app = FastAPI()
    app.include_router(router)

    orchestrator = MagicMock()
    orchestrator.run_job = AsyncMock(
        return_value={"job": "midday_update", "status": "success", "records_processed": 12}
    )
    orchestrator.now = MagicMock(return_value=datetime(2024, 1, 15, 23, 0, tzinfo=timezone.utc))
    orchestrator.today = MagicMock(return_value=date(2024, 1, 15))

    store = MagicMock()
    store.get_projections_for_date = AsyncMock(return_value=list(projections))
    store.get_player = AsyncMock(return_value=None)
    store.get_recent_samples = AsyncMock(return_value=[])
    store.get_player_projections = AsyncMock(return_value=[])
    store.get_jobs_health = AsyncMock(return_value={"full_refresh": {"last_run_status": "success"}})

    scheduler = MagicMock()
    scheduler.scheduler.running = True
    scheduler.get_status = MagicMock(return_value={"running": True, "timezone": "America/Chicago", "jobs": []})

    app.state.settings = settings or Settings(TRACKED_SPORTS="NBA,NFL", METRICS_BEARER_TOKEN="")
    app.state.orchestrator = orchestrator
    app.state.store = store
    app.state.scheduler = scheduler
    app.state.publisher = InsightPublisher(MemoryCache())
    return app


@pytest.fixture
def client():
    return TestClient(build_app())


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "scheduler_running": True,
            "tracked_sports": ["NBA", "NFL"],
            "sentry_enabled": False,
        }

    def test_scheduler_status(self, client):
        assert client.get("/scheduler/status").json()["timezone"] == "America/Chicago"

    def test_jobs_health(self, client):
        assert client.get("/jobs/health").json() == {"full_refresh": {"last_run_status": "success"}}


class TestManualTrigger:
    def test_known_job(self, client):
        response = client.post("/jobs/midday_update")
        assert response.status_code == 200
        assert response.json()["records_processed"] == 12

    def test_unknown_job(self, client):
        assert client.post("/jobs/weekly_cleanup").status_code == 404
        assert client.post("/jobs/bogus").status_code == 404

    def test_failing_job(self):
        app = build_app()
        app.state.orchestrator.run_job = AsyncMock(side_effect=DataSourceFailure("HTTP 503"))

        response = TestClient(app).post("/jobs/full_refresh")

        assert response.status_code == 500
        assert "HTTP 503" in response.json()["detail"]


class TestInsights:
    def test_rebuilt_from_store(self):
        client = TestClient(build_app(projections=[make_result(1, 90), make_result(2, 72)]))

        response = client.get("/insights/2024-01-15")

        assert response.status_code == 200
        body = response.json()
        assert body["date"] == "2024-01-15"
        assert [p["player_id"] for p in body["top_fruit"]] == [1, 2]

    def test_missing_date(self, client):
        assert client.get("/insights/2024-01-15").status_code == 404

    def test_invalid_date(self, client):
        assert client.get("/insights/not-a-date").status_code == 422


class TestMetrics:
    def test_open_when_no_token(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "freefruit_job_runs_total" in response.text

    def test_bearer_token_required(self):
        client = TestClient(build_app(settings=Settings(METRICS_BEARER_TOKEN="s3cret")))

        assert client.get("/metrics").status_code == 401
        assert client.get("/metrics", headers={"Authorization": "Bearer wrong"}).status_code == 401
        assert client.get("/metrics", headers={"Authorization": "Bearer s3cret"}).status_code == 200


class TestPlayerDetail:
    def test_player_detail(self):
        app = build_app()
        store = app.state.store
        store.get_player = AsyncMock(return_value=Player(
            id=7, sport="NBA", external_id="100", first_name="LeBron", last_name="James",
            team_id=1, availability="questionable",
        ))
        store.get_recent_samples = AsyncMock(return_value=[
            PlayerStatSample(game_id=100 + i, game_date=date(2024, 1, 14 - i), stats={"points": points})
            for i, points in enumerate([30, 28, 25, 22, 20])
        ])
        store.get_player_projections = AsyncMock(return_value=[make_result(7, 88), make_result(7, 70)])

        response = TestClient(app).get("/players/7")

        assert response.status_code == 200
        body = response.json()
        assert body["player"]["last_name"] == "James"
        assert body["player"]["availability"] == "questionable"
        assert [s["stats"]["points"] for s in body["recent_stats"]] == [30, 28, 25, 22, 20]
        assert body["trend"] == {"direction": "improving", "momentum_score": 32}
        assert body["fruit_score"] == 88
        assert len(body["projections"]) == 2

        # Today's completed games are included
        store.get_recent_samples.assert_awaited_once_with(7, "NBA", limit=5, before=date(2024, 1, 16))
        store.get_player_projections.assert_awaited_once_with(7, "NBA")

    def test_player_without_history(self):
        app = build_app()
        app.state.store.get_player = AsyncMock(return_value=Player(
            id=8, sport="NFL", external_id="200", first_name="New", last_name="Rookie", team_id=2,
        ))

        body = TestClient(app).get("/players/8").json()

        assert body["recent_stats"] == []
        assert body["projections"] == []
        assert body["fruit_score"] is None
        assert body["trend"] == {"direction": "stable", "momentum_score": 0}

    def test_unknown_player(self, client):
        assert client.get("/players/9999").status_code == 404
