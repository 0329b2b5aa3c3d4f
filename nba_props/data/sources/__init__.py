"""
Data source clients for the NBA props pipeline.

Available sources:
- OddsAPIClient: The Odds API for standard and alternate player prop lines
- PlayerStatsClient: API-Sports player search and game logs
- DefenseClient: API-Sports league scores reduced to defensive ranks
- InferenceClient: Vertex AI prediction endpoint
"""
from .base import (
    BaseDataSource,
    CachedDataSource,
    DataSourceError,
    DataSourceHealth,
    DataSourceStatus,
    RateLimitError,
    AuthenticationError,
    DataNotAvailableError,
    ConfigurationError,
    RetryConfig,
    is_transient_error,
    with_retry,
)
from .odds_api import EventProps, OddsAPIClient, find_best_goblin_line
from .player_stats import PlayerStatsClient, current_season, match_player
from .defense import DefenseClient, get_opponent_defense, rank_defenses
from .inference import InferenceClient, parse_prediction

__all__ = [
    # Base classes
    "BaseDataSource",
    "CachedDataSource",
    "DataSourceError",
    "DataSourceHealth",
    "DataSourceStatus",
    "RateLimitError",
    "AuthenticationError",
    "DataNotAvailableError",
    "ConfigurationError",
    "RetryConfig",
    "is_transient_error",
    "with_retry",
    # Clients
    "OddsAPIClient",
    "PlayerStatsClient",
    "DefenseClient",
    "InferenceClient",
    # Helpers
    "EventProps",
    "find_best_goblin_line",
    "current_season",
    "match_player",
    "get_opponent_defense",
    "rank_defenses",
    "parse_prediction",
]
