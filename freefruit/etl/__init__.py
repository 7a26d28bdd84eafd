"""Ingestion from the SportsData feed."""

from freefruit.etl.base import DataProvider, GameData, PlayerData, PlayerStatData, TeamData
from freefruit.etl.pipeline import ETLPipeline
from freefruit.etl.sportsdata import SportsDataProvider

__all__ = [
    "DataProvider",
    "TeamData",
    "PlayerData",
    "GameData",
    "PlayerStatData",
    "ETLPipeline",
    "SportsDataProvider",
]
