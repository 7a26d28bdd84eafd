"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite:///./freefruit.db"

    # SportsData feed
    SPORTS_API_KEY: str = ""
    SPORTS_API_URL: str = "https://api.sportsdata.io/v3"
    SPORTS_API_TIMEOUT_SECONDS: float = 30.0
    STATS_LOOKBACK_DAYS: int = 7  # Box scores re-fetched on full refresh

    # Leagues covered by every job, in processing order
    TRACKED_SPORTS: str = "NBA,NFL"

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_TIMEZONE: str = "America/Chicago"
    STARTUP_CATCHUP_ENABLED: bool = True

    # Projection batching
    PROJECTION_BATCH_SIZE: int = 50

    # Insights / cache publication
    INSIGHTS_TOP_N: int = 20
    INSIGHTS_TTL_INTERIM_SECONDS: int = 3600
    INSIGHTS_TTL_FINAL_SECONDS: int = 7200
    PROJECTIONS_CACHE_TTL_SECONDS: int = 3600

    # Weekly cleanup retention windows
    REFRESH_LOG_RETENTION_DAYS: int = 30
    PROJECTION_RETENTION_DAYS: int = 14
    PLAYER_STATS_RETENTION_DAYS: int = 30

    # /metrics auth (Bearer token); empty disables auth
    METRICS_BEARER_TOKEN: str = ""

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def tracked_sports(self) -> list[str]:
        """TRACKED_SPORTS as a list of upper-case sport codes."""
        return [s.strip().upper() for s in self.TRACKED_SPORTS.split(",") if s.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
