"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env file.
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from . import constants


class OddsAPISettings(BaseSettings):
    """Settings for The Odds API."""

    model_config = SettingsConfigDict(env_prefix="ODDS_")

    api_key: str = Field(
        default="",
        description="API key from the-odds-api.com",
    )
    base_url: str = Field(
        default="https://api.the-odds-api.com/v4",
        description="Base URL for the API",
    )
    sport_key: str = Field(default="basketball_nba")
    regions: list[str] = Field(
        default=["us"],
        description="Regions to fetch odds from",
    )
    bookmakers: list[str] = Field(
        default=[
            "draftkings",
            "fanduel",
            "betmgm",
            "caesars",
            "espnbet",
        ],
        description="Bookmakers to fetch",
    )
    timeout_seconds: float = Field(default=15.0)


class PlayerStatsSettings(BaseSettings):
    """Settings for the API-Sports NBA endpoints (player logs and league games)."""

    model_config = SettingsConfigDict(env_prefix="APISPORTS_")

    api_key: str = Field(default="", description="x-apisports-key header value")
    base_url: str = Field(default="https://v2.nba.api-sports.io")
    timeout_seconds: float = Field(default=10.0)
    defense_timeout_seconds: float = Field(default=20.0)
    id_batch_size: int = Field(default=5, ge=1)
    log_batch_size: int = Field(default=4, ge=1)
    max_game_logs: int = Field(default=82, ge=1)
    min_finished_games: int = Field(
        default=100,
        description="Finished league games required before defense ranks are trusted",
    )


class InferenceSettings(BaseSettings):
    """Settings for the remote prediction endpoint (Vertex AI)."""

    model_config = SettingsConfigDict(env_prefix="VERTEX_")

    project_id: Optional[str] = Field(default=None)
    location: str = Field(default="us-central1")
    endpoint_id: Optional[str] = Field(default=None)
    access_token: Optional[str] = Field(
        default=None,
        description="Static bearer token; when unset google-auth default credentials are used",
    )
    batch_size: int = Field(default=10, ge=1)
    timeout_seconds: float = Field(default=60.0)

    @property
    def is_configured(self) -> bool:
        return bool(self.project_id and self.endpoint_id)


class CacheSettings(BaseSettings):
    """Fresh TTLs and stale ceilings, in seconds, per cached data type."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    backend: str = Field(default="memory", description="memory, sqlite, or redis")
    game_logs_ttl: int = Field(default=3600)
    game_logs_stale_ttl: int = Field(default=86400)
    defense_ttl: int = Field(default=86400)
    defense_stale_ttl: int = Field(default=259200)
    player_ids_ttl: int = Field(default=86400)
    player_ids_stale_ttl: int = Field(default=604800)
    props_ttl: int = Field(default=300)
    props_stale_ttl: int = Field(default=1800)

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        allowed = ["memory", "sqlite", "redis"]
        if v not in allowed:
            raise ValueError(f"backend must be one of {allowed}")
        return v


class EdgeBoardSettings(BaseSettings):
    """Settings for the ML-ranked value board."""

    model_config = SettingsConfigDict(env_prefix="EDGE_")

    temperature: float = Field(default=constants.CALIBRATION_TEMPERATURE, gt=0)
    probability_cap: float = Field(default=constants.PROBABILITY_CAP, gt=0, le=1)
    odds_ceiling: int = Field(
        default=constants.EDGE_ODDS_CEILING,
        description="Picks priced heavier than this belong to the Parlay Stack",
    )
    top_n: int = Field(default=constants.EDGE_TOP_N, ge=1)
    safer_line_threshold: int = Field(default=constants.SAFER_LINE_ODDS_THRESHOLD)
    calibrator_path: Optional[str] = Field(
        default=None,
        description="Calibrator written by `nba-props calibrate`; its temperature replaces `temperature`",
    )

    @field_validator("odds_ceiling", "safer_line_threshold")
    @classmethod
    def validate_negative_odds(cls, v: int) -> int:
        if v >= 0:
            raise ValueError("odds thresholds must be negative American odds")
        return v


class ParlayStackSettings(BaseSettings):
    """Settings for the five-signal alternate-line validator."""

    model_config = SettingsConfigDict(env_prefix="STACK_")

    goblin_ceiling: int = Field(default=constants.GOBLIN_ODDS_CEILING)
    goblin_floor: int = Field(default=constants.GOBLIN_ODDS_FLOOR)
    min_l10_hit_rate: int = Field(default=constants.STACK_MIN_L10_HIT_RATE)
    min_season_hit_rate: int = Field(default=constants.STACK_MIN_SEASON_HIT_RATE)
    min_margin: float = Field(default=constants.STACK_MIN_MARGIN)
    strong_defense_rank: int = Field(default=constants.STACK_STRONG_DEFENSE_RANK)
    weak_defense_rank: int = Field(default=constants.STACK_WEAK_DEFENSE_RANK)
    min_game_logs: int = Field(default=constants.STACK_MIN_GAME_LOGS)


class OrchestratorSettings(BaseSettings):
    """Settings for batch runs, the circuit breaker and self-heal passes."""

    model_config = SettingsConfigDict(env_prefix="BATCH_")

    circuit_breaker_threshold: int = Field(default=3, ge=1)
    max_heal_passes: int = Field(default=3, ge=0)
    heal_cooldown_seconds: float = Field(default=30.0, ge=0)
    time_budget_seconds: float = Field(
        default=540.0,
        description="Overall invocation budget",
    )
    safety_margin_seconds: float = Field(
        default=60.0,
        description="No self-heal pass starts with less budget left than this",
    )
    slip_size: int = Field(default=constants.SLIP_SIZE, ge=2)


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Result store
    database_url: str = Field(
        default="sqlite:///nba_props.db",
        description="Database connection URL for stored results",
    )

    # Redis (optional)
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL for caching",
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None, description="Defaults to logs/nba_props.log")
    debug: bool = Field(default=False)

    # Sub-settings
    odds_api: OddsAPISettings = Field(default_factory=OddsAPISettings)
    player_stats: PlayerStatsSettings = Field(default_factory=PlayerStatsSettings)
    inference: InferenceSettings = Field(default_factory=InferenceSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    edge_board: EdgeBoardSettings = Field(default_factory=EdgeBoardSettings)
    parlay_stack: ParlayStackSettings = Field(default_factory=ParlayStackSettings)
    orchestrator: OrchestratorSettings = Field(default_factory=OrchestratorSettings)

    @property
    def project_root(self) -> Path:
        """Get project root directory."""
        return Path(__file__).parent.parent.parent

    @property
    def data_dir(self) -> Path:
        """Get data directory."""
        data_path = self.project_root / "data"
        data_path.mkdir(parents=True, exist_ok=True)
        return data_path

    @property
    def logs_dir(self) -> Path:
        """Get logs directory."""
        logs_path = self.project_root / "logs"
        logs_path.mkdir(parents=True, exist_ok=True)
        return logs_path


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
