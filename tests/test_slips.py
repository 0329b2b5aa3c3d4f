"""Tests for LOCK / SAFE / VALUE slip assembly."""
import pytest

from nba_props.betting.parlay_stack import ParlayLeg
from nba_props.betting.slip_builder import ParlaySlip, build_slips, pick_legs
from nba_props.config.constants import Side, StatType
from nba_props.data.models import HitRate, HitRateSummary

G1 = ("Boston Celtics", "New York Knicks")
G2 = ("Los Angeles Lakers", "Denver Nuggets")
G3 = ("Miami Heat", "Chicago Bulls")
G4 = ("Phoenix Suns", "Utah Jazz")
G5 = ("Orlando Magic", "Detroit Pistons")


def leg(
    player: str,
    game: tuple[str, str],
    odds: int,
    edge: float,
    l10_pct: int,
    side: Side = Side.OVER,
    stat: StatType = StatType.POINTS,
) -> ParlayLeg:
    rate = HitRate(hits=l10_pct // 10, total=10, pct=l10_pct)
    return ParlayLeg(
        player_name=player,
        stat_type=stat,
        side=side,
        line=10.5,
        odds=odds,
        bookmaker="DraftKings",
        hit_rates=HitRateSummary(l10=rate, season=rate),
        l10_avg=14.0,
        avg_margin=3.5,
        parlay_edge=edge,
        green_score=4,
        green_signals=("avg", "l10", "season", "odds"),
        team=game[0],
        opponent=game[1],
    )


POOL = [
    leg("P1", G1, -450, 0.20, 100),
    leg("P2", G1, -420, 0.18, 90),
    leg("P3", G2, -500, 0.16, 80),
    leg("P4", G2, -600, 0.14, 70),
    leg("P5", G3, -400, 0.12, 100),
    leg("P6", G3, -650, 0.10, 60),
    leg("P1", G1, -410, 0.05, 80, stat=StatType.REBOUNDS),
    leg("P7", G3, -450, -0.02, 50),
]


def names(slip: ParlaySlip) -> list[str]:
    return [leg.player_name for leg in slip.legs]


class TestBuildSlips:
    """The three policies over a cross-game pool."""

    def test_too_few_legs(self):
        assert build_slips(POOL[:4]) == []

    def test_lock_spreads_across_games_first(self):
        slips = {slip.name: slip for slip in build_slips(list(reversed(POOL)))}

        assert names(slips["LOCK"]) == ["P1", "P3", "P5", "P2", "P4"]
        assert slips["LOCK"].subtitle == "Highest edge across games"

    def test_safe_needs_enough_high_hit_rate_legs(self):
        slips = {slip.name for slip in build_slips(POOL)}

        # Only four distinct players hit 80%+
        assert "SAFE" not in slips

    def test_value_prefers_light_juice_with_positive_edge(self):
        slips = {slip.name: slip for slip in build_slips(POOL)}

        assert names(slips["VALUE"]) == ["P5", "P1", "P3", "P2", "P4"]
        assert slips["VALUE"].legs[1].stat_type is StatType.REBOUNDS
        assert all(leg.parlay_edge > 0 for leg in slips["VALUE"].legs)

    def test_no_player_repeats(self):
        for slip in build_slips(POOL):
            assert len(set(names(slip))) == len(slip.legs)

    def test_safe_slip_with_under_legs(self):
        pool = [
            leg("S1", G1, -450, 0.15, 90),
            leg("S2", G2, -450, 0.14, 10, side=Side.UNDER),
            leg("S3", G3, -450, 0.13, 80),
            leg("S4", G4, -450, 0.12, 100),
            leg("S5", G5, -450, 0.11, 20, side=Side.UNDER),
            leg("S6", G5, -450, 0.30, 70),
        ]

        slips = {slip.name: slip for slip in build_slips(pool)}

        assert sorted(names(slips["SAFE"])) == ["S1", "S2", "S3", "S4", "S5"]
        assert slips["SAFE"].combined_odds == 173
        assert slips["SAFE"].combined_odds_display == "+173"

    def test_slip_serialization(self):
        slip = build_slips(POOL)[0]
        payload = slip.to_dict()

        assert payload["name"] == "LOCK"
        assert len(payload["legs"]) == 5
        assert payload["combined_odds"] == slip.combined_odds


class TestPickLegs:
    def test_without_diversity_takes_pool_order(self):
        picked = pick_legs(POOL, 3, prefer_diversity=False)

        assert [leg.player_name for leg in picked] == ["P1", "P2", "P3"]

    def test_short_pool_returns_what_it_can(self):
        assert len(pick_legs(POOL[:2], 5)) == 2

    @pytest.mark.parametrize("count", [1, 2])
    def test_stops_at_count(self, count):
        assert len(pick_legs(POOL, count)) == count
