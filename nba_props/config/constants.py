"""
Constants and market definitions for the NBA props system.

Contains the stat type enumeration, odds market tables, bookmaker names,
and the business tuning thresholds used by both scoring engines.
"""
from enum import Enum
from typing import Final, Optional


# =============================================================================
# STAT TYPES
# =============================================================================
class StatType(str, Enum):
    """Player prop stat categories, including the combined markets."""

    POINTS = "points"
    REBOUNDS = "rebounds"
    ASSISTS = "assists"
    STEALS = "steals"
    BLOCKS = "blocks"
    TURNOVERS = "turnovers"
    THREES_MADE = "threes_made"
    POINTS_REBOUNDS_ASSISTS = "points_rebounds_assists"
    POINTS_REBOUNDS = "points_rebounds"
    POINTS_ASSISTS = "points_assists"
    REBOUNDS_ASSISTS = "rebounds_assists"
    BLOCKS_STEALS = "blocks_steals"

    @property
    def components(self) -> tuple[str, ...]:
        """Box-score fields summed to produce this stat."""
        return STAT_COMPONENTS[self]

    @property
    def label(self) -> str:
        """Short display label (PTS, PRA, ...)."""
        return STAT_LABELS[self]

    @property
    def prop_type(self) -> str:
        """Category value the inference model was trained on."""
        return STAT_PROP_TYPES[self]


class Side(str, Enum):
    """Direction of a prop pick."""

    OVER = "Over"
    UNDER = "Under"


STAT_COMPONENTS: Final[dict[StatType, tuple[str, ...]]] = {
    StatType.POINTS: ("points",),
    StatType.REBOUNDS: ("rebounds",),
    StatType.ASSISTS: ("assists",),
    StatType.STEALS: ("steals",),
    StatType.BLOCKS: ("blocks",),
    StatType.TURNOVERS: ("turnovers",),
    StatType.THREES_MADE: ("threes_made",),
    StatType.POINTS_REBOUNDS_ASSISTS: ("points", "rebounds", "assists"),
    StatType.POINTS_REBOUNDS: ("points", "rebounds"),
    StatType.POINTS_ASSISTS: ("points", "assists"),
    StatType.REBOUNDS_ASSISTS: ("rebounds", "assists"),
    StatType.BLOCKS_STEALS: ("blocks", "steals"),
}

STAT_LABELS: Final[dict[StatType, str]] = {
    StatType.POINTS: "PTS",
    StatType.REBOUNDS: "REB",
    StatType.ASSISTS: "AST",
    StatType.STEALS: "STL",
    StatType.BLOCKS: "BLK",
    StatType.TURNOVERS: "TOV",
    StatType.THREES_MADE: "3PM",
    StatType.POINTS_REBOUNDS_ASSISTS: "PRA",
    StatType.POINTS_REBOUNDS: "PR",
    StatType.POINTS_ASSISTS: "PA",
    StatType.REBOUNDS_ASSISTS: "RA",
    StatType.BLOCKS_STEALS: "BS",
}

# Model category value for the prop_type feature
STAT_PROP_TYPES: Final[dict[StatType, str]] = {
    StatType.POINTS: "points",
    StatType.REBOUNDS: "rebounds",
    StatType.ASSISTS: "assists",
    StatType.STEALS: "steals",
    StatType.BLOCKS: "blocks",
    StatType.TURNOVERS: "turnovers",
    StatType.THREES_MADE: "threePointersMade",
    StatType.POINTS_REBOUNDS_ASSISTS: "points_rebounds_assists",
    StatType.POINTS_REBOUNDS: "points_rebounds",
    StatType.POINTS_ASSISTS: "points_assists",
    StatType.REBOUNDS_ASSISTS: "rebounds_assists",
    StatType.BLOCKS_STEALS: "blocks_steals",
}


# =============================================================================
# ODDS API MARKETS
# =============================================================================
# Market key -> stat type, for standard lines
MARKET_TO_STAT: Final[dict[str, StatType]] = {
    "player_points": StatType.POINTS,
    "player_rebounds": StatType.REBOUNDS,
    "player_assists": StatType.ASSISTS,
    "player_threes": StatType.THREES_MADE,
    "player_blocks": StatType.BLOCKS,
    "player_steals": StatType.STEALS,
    "player_turnovers": StatType.TURNOVERS,
    "player_points_rebounds_assists": StatType.POINTS_REBOUNDS_ASSISTS,
    "player_points_rebounds": StatType.POINTS_REBOUNDS,
    "player_points_assists": StatType.POINTS_ASSISTS,
    "player_rebounds_assists": StatType.REBOUNDS_ASSISTS,
    "player_blocks_steals": StatType.BLOCKS_STEALS,
}

ALT_SUFFIX: Final[str] = "_alternate"

# Blocks+steals is parsed when present but not requested by default
STANDARD_MARKETS: Final[list[str]] = [m for m in MARKET_TO_STAT if m != "player_blocks_steals"]
ALT_MARKETS: Final[list[str]] = [f"{market}{ALT_SUFFIX}" for market in STANDARD_MARKETS]


def market_to_stat(market_key: str) -> Optional[StatType]:
    """Map a standard or alternate market key to its stat type."""
    if market_key.endswith(ALT_SUFFIX):
        market_key = market_key[: -len(ALT_SUFFIX)]
    return MARKET_TO_STAT.get(market_key)


# Bookmaker key -> display name
BOOKMAKER_NAMES: Final[dict[str, str]] = {
    "draftkings": "DraftKings",
    "fanduel": "FanDuel",
    "betmgm": "BetMGM",
    "caesars": "Caesars",
    "williamhill_us": "Caesars",
    "bovada": "Bovada",
    "pointsbetus": "PointsBet",
    "betrivers": "BetRivers",
    "bet365": "Bet365",
    "unibet_us": "Unibet",
    "wynnbet": "WynnBet",
    "espnbet": "ESPNBet",
    "hardrockbet": "Hard Rock",
    "fanatics": "Fanatics",
    "ballybet": "BallyBet",
}


def normalize_bookmaker(key: str) -> str:
    """Get the display name for a bookmaker key."""
    return BOOKMAKER_NAMES.get(key.lower(), key)


# =============================================================================
# TEAM NAME ALIASES
# =============================================================================
# Provider spellings -> canonical lowercase team name
TEAM_ALIASES: Final[dict[str, str]] = {
    "la clippers": "los angeles clippers",
    "la lakers": "los angeles lakers",
}


# =============================================================================
# EDGEBOARD THRESHOLDS
# =============================================================================
CALIBRATION_TEMPERATURE: Final[float] = 2.0
PROBABILITY_CAP: Final[float] = 0.85
PROBABILITY_CLAMP: Final[tuple[float, float]] = (0.001, 0.999)
EDGE_ODDS_CEILING: Final[int] = -300
EDGE_TOP_N: Final[int] = 10
SAFER_LINE_ODDS_THRESHOLD: Final[int] = -400

# Hit-rate thresholds shared by green score and sanity filter
HIT_RATE_OVER_THRESHOLD: Final[int] = 60
HIT_RATE_UNDER_THRESHOLD: Final[int] = 40
GREEN_DEFENSE_PIVOT_RANK: Final[int] = 15
SANITY_WEAK_DEFENSE_RANK: Final[int] = 21
SANITY_STRONG_DEFENSE_RANK: Final[int] = 10


# =============================================================================
# PARLAY STACK THRESHOLDS
# =============================================================================
GOBLIN_ODDS_CEILING: Final[int] = -400
GOBLIN_ODDS_FLOOR: Final[int] = -650
STACK_MIN_L10_HIT_RATE: Final[int] = 60
STACK_MIN_SEASON_HIT_RATE: Final[int] = 50
STACK_MIN_MARGIN: Final[float] = 0.5
STACK_STRONG_DEFENSE_RANK: Final[int] = 10
STACK_WEAK_DEFENSE_RANK: Final[int] = 21
STACK_MIN_GAME_LOGS: Final[int] = 5


# =============================================================================
# SLIPS
# =============================================================================
SLIP_SIZE: Final[int] = 5
SAFE_SLIP_MIN_HIT_RATE: Final[int] = 80

DEFAULT_ODDS: Final[int] = -110
