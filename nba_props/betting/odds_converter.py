"""
Odds conversion and calculation utilities.

Provides functions for converting American odds to implied probability,
and pricing a multi-leg parlay.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from nba_props.config.constants import DEFAULT_ODDS


def american_to_decimal(american: int) -> Decimal:
    """
    Convert American odds to decimal odds.

    Examples:
        >>> american_to_decimal(-110)
        Decimal('1.909090909090909090909090909')
        >>> american_to_decimal(+150)
        Decimal('2.5')
    """
    if american > 0:
        return Decimal(american) / Decimal("100") + Decimal("1")
    else:
        return Decimal("100") / Decimal(abs(american)) + Decimal("1")


def american_to_implied_probability(american: int) -> Decimal:
    """
    Convert American odds to implied probability.

    Negative odds O give |O| / (|O| + 100); positive odds give
    100 / (O + 100). The bookmaker's vig is included.

    Examples:
        >>> american_to_implied_probability(-110)
        Decimal('0.5238095238095238095238095238')
        >>> american_to_implied_probability(+150)
        Decimal('0.4')
    """
    if american > 0:
        return Decimal("100") / (Decimal(american) + Decimal("100"))
    else:
        return Decimal(abs(american)) / (Decimal(abs(american)) + Decimal("100"))


def implied_probability(american: Optional[int], default: int = DEFAULT_ODDS) -> float:
    """Float implied probability; missing odds are priced at ``default``."""
    if american is None:
        american = default
    return float(american_to_implied_probability(int(american)))


def implied_probability_to_american(probability: Decimal) -> int:
    """
    Convert a win probability to American odds.

    At or above 0.5 the price is negative, -round(100p / (1 - p));
    below it is positive, round(100(1 - p) / p).

    Examples:
        >>> implied_probability_to_american(Decimal('0.6'))
        -150
        >>> implied_probability_to_american(Decimal('0.4'))
        150
    """
    probability = Decimal(probability)
    if probability >= Decimal("1"):
        raise ValueError("probability must be below 1")
    if probability <= Decimal("0"):
        raise ValueError("probability must be above 0")

    if probability >= Decimal("0.5"):
        value = probability * 100 / (1 - probability)
        return -int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    value = (1 - probability) * 100 / probability
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def combined_american_odds(leg_odds: Iterable[Optional[int]]) -> int:
    """
    Price a parlay from its legs' American odds.

    The joint probability is the product of each leg's implied
    probability (legs are treated as independent).

    Examples:
        >>> combined_american_odds([-300, -300])
        -129
        >>> combined_american_odds([-450] * 5)
        173
    """
    probability = Decimal("1")
    count = 0
    for odds in leg_odds:
        probability *= american_to_implied_probability(DEFAULT_ODDS if odds is None else int(odds))
        count += 1
    if count == 0:
        raise ValueError("a parlay needs at least one leg")
    return implied_probability_to_american(probability)


def format_american_odds(odds: int) -> str:
    """
    Format American odds with proper sign.

    Examples:
        >>> format_american_odds(-110)
        '-110'
        >>> format_american_odds(150)
        '+150'
    """
    if odds > 0:
        return f"+{odds}"
    return str(odds)
