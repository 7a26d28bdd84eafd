"""Builders shared by the store, insights and orchestrator tests."""

from datetime import date, datetime

from freefruit.models import Game, Player, PlayerStat, Team
from freefruit.projections.types import ProjectionResult, Trend


def make_result(
    player_id: int,
    fruit_score: int = 75,
    direction: str = "stable",
    sport: str = "NBA",
    day: date = date(2024, 1, 15),
    game_id: int = 1,
) -> ProjectionResult:
    return ProjectionResult(
        player_id=player_id,
        sport=sport,
        game_id=game_id,
        projection_date=day,
        projections={"points": 20.0, "rebounds": 5.0, "assists": 4.0},
        fruit_score=fruit_score,
        confidence_level="high" if fruit_score >= 80 else "medium" if fruit_score >= 70 else "low",
        trend=Trend(direction, 0),
        last_updated=datetime(2024, 1, 15, 12, 0, 0),
    )


async def seed_league(session_factory, today: date = date(2024, 1, 15)) -> dict:
    """
    Two NBA teams, three players (one inactive), four completed games before
    `today` and one scheduled game on `today` (Lakers at home).
    """
    async with session_factory() as session:
        lakers = Team(sport="NBA", external_id="1", name="Lakers", city="Los Angeles")
        celtics = Team(sport="NBA", external_id="2", name="Celtics", city="Boston")
        session.add_all([lakers, celtics])
        await session.flush()

        james = Player(
            sport="NBA", external_id="100", first_name="LeBron", last_name="James",
            team_id=lakers.id, availability="questionable",
        )
        tatum = Player(sport="NBA", external_id="200", first_name="Jayson", last_name="Tatum", team_id=celtics.id)
        bench = Player(
            sport="NBA", external_id="300", first_name="Old", last_name="Bench",
            team_id=lakers.id, active=False,
        )
        session.add_all([james, tatum, bench])
        await session.flush()

        completed = []
        for offset, points in [(10, 18), (7, 22), (4, 25), (2, 30)]:
            game = Game(
                sport="NBA", external_id=f"g{offset}", game_date=date.fromordinal(today.toordinal() - offset),
                home_team_id=lakers.id, away_team_id=celtics.id, status="completed",
            )
            session.add(game)
            await session.flush()
            session.add(PlayerStat(player_id=james.id, game_id=game.id, sport="NBA", points=points, rebounds=7, assists=None))
            completed.append(game)

        tonight = Game(
            sport="NBA", external_id="tonight", game_date=today,
            home_team_id=lakers.id, away_team_id=celtics.id, status="scheduled", venue="Crypto.com Arena",
        )
        session.add(tonight)
        await session.commit()

        return {
            "lakers": lakers.id,
            "celtics": celtics.id,
            "james": james.id,
            "tatum": tatum.id,
            "bench": bench.id,
            "tonight": tonight.id,
            "completed": [g.id for g in completed],
        }
