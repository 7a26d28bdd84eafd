"""SportsData.io provider for NBA and NFL teams, players, games and box scores."""

import logging
import time
from datetime import date
from typing import Any, Optional

import httpx

from freefruit.config import get_settings
from freefruit.errors import DataSourceFailure
from freefruit.etl.base import DataProvider, GameData, PlayerData, PlayerStatData, TeamData
from freefruit.telemetry import record_provider_request

logger = logging.getLogger(__name__)

# Feed game status -> games.status
GAME_STATUS_MAP = {
    "Scheduled": "scheduled",
    "InProgress": "in_progress",
    "Final": "completed",
    "F/OT": "completed",
    "Postponed": "postponed",
    "Canceled": "cancelled",
    "Cancelled": "cancelled",
}

# Feed InjuryStatus -> players.availability
INJURY_STATUS_MAP = {
    "Probable": "limited",
    "Questionable": "questionable",
    "Doubtful": "questionable",
    "Out": "out",
}

# Feed box-score field -> player_stats column
STAT_FIELDS = {
    "NBA": {
        "Points": "points",
        "Rebounds": "rebounds",
        "Assists": "assists",
        "Steals": "steals",
        "BlockedShots": "blocks",
        "Turnovers": "turnovers",
        "Minutes": "minutes_played",
    },
    "NFL": {
        "PassingYards": "passing_yards",
        "PassingTouchdowns": "passing_touchdowns",
        "RushingYards": "rushing_yards",
        "RushingTouchdowns": "rushing_touchdowns",
        "ReceivingYards": "receiving_yards",
        "ReceivingTouchdowns": "receiving_touchdowns",
        "Receptions": "receptions",
    },
}


def map_game_status(api_status: Optional[str]) -> str:
    return GAME_STATUS_MAP.get(api_status or "", "scheduled")


def map_availability(injury_status: Optional[str]) -> str:
    return INJURY_STATUS_MAP.get(injury_status or "", "active")


def _as_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return None


def _as_str(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def _first_present(record: dict, *fields: str) -> Any:
    """Value of the first field that is not None (0 counts as present)."""
    for name in fields:
        value = record.get(name)
        if value is not None:
            return value
    return None


class SportsDataProvider(DataProvider):
    """SportsData.io v3 client (one shared httpx.AsyncClient, no retries)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.SPORTS_API_URL).rstrip("/")
        self.client = httpx.AsyncClient(
            headers={
                "Ocp-Apim-Subscription-Key": api_key if api_key is not None else settings.SPORTS_API_KEY,
                "Accept": "application/json",
            },
            timeout=timeout or settings.SPORTS_API_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def _request(self, sport: str, resource: str, *path_args: str) -> Any:
        """
        GET {base}/{sport}/scores/json/{resource}[/{args}] and return parsed JSON.

        Raises:
            DataSourceFailure: timeout, transport error or non-2xx response
        """
        path = "/".join([sport.lower(), "scores", "json", resource, *path_args])
        url = f"{self.base_url}/{path}"
        start_time = time.time()

        try:
            response = await self.client.get(url)
            latency_ms = (time.time() - start_time) * 1000
            record_provider_request(resource, response.status_code, latency_ms)
            response.raise_for_status()
            return response.json()

        except httpx.TimeoutException as e:
            record_provider_request(resource, 0, (time.time() - start_time) * 1000)
            logger.error(f"[ETL] Timeout calling {path}: {e}")
            raise DataSourceFailure(f"Timeout calling {path}", endpoint=resource) from e

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.error(f"[ETL] HTTP {status_code} from {path}")
            raise DataSourceFailure(
                f"HTTP {status_code} from {path}", endpoint=resource, status_code=status_code
            ) from e

        except httpx.RequestError as e:
            record_provider_request(resource, 0, (time.time() - start_time) * 1000)
            logger.error(f"[ETL] Request error calling {path}: {e}")
            raise DataSourceFailure(f"Request error calling {path}: {e}", endpoint=resource) from e

        except ValueError as e:
            logger.error(f"[ETL] Invalid JSON from {path}: {e}")
            raise DataSourceFailure(f"Invalid JSON from {path}", endpoint=resource) from e

    async def get_teams(self, sport: str) -> list[TeamData]:
        data = await self._request(sport, "teams")
        teams = []
        for team in data or []:
            if team.get("TeamID") is None:
                continue
            teams.append(
                TeamData(
                    external_id=str(team["TeamID"]),
                    name=team.get("Name") or team.get("FullName") or team.get("Key") or "",
                    city=team.get("City"),
                    abbreviation=team.get("Key"),
                    conference=team.get("Conference"),
                    division=team.get("Division"),
                    logo_url=team.get("WikipediaLogoUrl"),
                )
            )
        return teams

    async def get_players(self, sport: str) -> list[PlayerData]:
        data = await self._request(sport, "Players")
        players = []
        for player in data or []:
            if player.get("PlayerID") is None:
                continue
            players.append(
                PlayerData(
                    external_id=str(player["PlayerID"]),
                    first_name=player.get("FirstName") or "",
                    last_name=player.get("LastName") or "",
                    team_external_id=_as_str(player.get("TeamID")),
                    position=player.get("Position"),
                    jersey_number=_as_int(_first_present(player, "Jersey", "Number")),
                    photo_url=player.get("PhotoUrl"),
                    active=player.get("Status", "Active") == "Active",
                    availability=map_availability(player.get("InjuryStatus")),
                )
            )
        return players

    async def get_games_by_date(self, sport: str, day: date) -> list[GameData]:
        data = await self._request(sport, "GamesByDate", day.isoformat())
        games = []
        for game in data or []:
            game_id = _first_present(game, "GameID", "GameKey")
            day_str = game.get("Day") or game.get("DateTime") or game.get("Date")
            if game_id is None or game.get("HomeTeamID") is None or game.get("AwayTeamID") is None:
                continue
            games.append(
                GameData(
                    external_id=str(game_id),
                    game_date=date.fromisoformat(day_str[:10]) if day_str else day,
                    home_team_external_id=str(game["HomeTeamID"]),
                    away_team_external_id=str(game["AwayTeamID"]),
                    status=map_game_status(game.get("Status")),
                    season=_as_str(game.get("Season")),
                    home_score=_as_int(_first_present(game, "HomeTeamScore", "HomeScore")),
                    away_score=_as_int(_first_present(game, "AwayTeamScore", "AwayScore")),
                    venue=_as_str(_first_present(game, "StadiumID", "Stadium")),
                )
            )
        return games

    async def get_player_game_stats(self, sport: str, game_external_id: str) -> list[PlayerStatData]:
        fields = STAT_FIELDS[sport.upper()]
        data = await self._request(sport, "PlayerGameStatsByGame", str(game_external_id))
        lines = []
        for row in data or []:
            if row.get("PlayerID") is None:
                continue
            lines.append(
                PlayerStatData(
                    player_external_id=str(row["PlayerID"]),
                    game_external_id=str(game_external_id),
                    stats={column: _as_int(row.get(field)) for field, column in fields.items()},
                )
            )
        return lines

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
