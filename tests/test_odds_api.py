"""Tests for odds response parsing and goblin line selection."""
from nba_props.config.constants import Side, StatType
from nba_props.data.models import AltLine
from nba_props.data.sources.odds_api import OddsAPIClient, find_best_goblin_line


def _outcome(player, side, point, price):
    return {"name": side, "description": player, "point": point, "price": price}


EVENT_ODDS = {
    "id": "evt-1",
    "home_team": "Boston Celtics",
    "away_team": "New York Knicks",
    "commence_time": "2025-01-15T00:30:00Z",
    "bookmakers": [
        {
            "key": "draftkings",
            "markets": [
                {
                    "key": "player_points",
                    "outcomes": [
                        _outcome("Jayson Tatum", "Over", 27.5, -115),
                        _outcome("Jayson Tatum", "Under", 27.5, -105),
                    ],
                },
                {
                    "key": "player_points_alternate",
                    "outcomes": [
                        _outcome("Jayson Tatum", "Over", 19.5, -600),
                        _outcome("Jayson Tatum", "Over", 22.5, -420),
                    ],
                },
            ],
        },
        {
            "key": "fanduel",
            "markets": [
                {
                    "key": "player_points",
                    "outcomes": [
                        _outcome("Jayson Tatum", "Over", 27.5, -120),
                        _outcome("Jayson Tatum", "Under", 27.5, -102),
                        {"name": "Over", "description": "No Point", "price": -110},
                    ],
                },
                {
                    "key": "player_fantasy_points",
                    "outcomes": [_outcome("Jayson Tatum", "Over", 45.5, -110)],
                },
            ],
        },
    ],
}


class TestParseEventProps:
    """Best-price aggregation across bookmakers."""

    def test_event_metadata(self):
        parsed = OddsAPIClient.parse_event_props("evt-1", EVENT_ODDS)

        assert parsed.home_team == "Boston Celtics"
        assert parsed.away_team == "New York Knicks"
        assert parsed.commence_time.year == 2025

    def test_best_price_and_bookmaker_per_side(self):
        parsed = OddsAPIClient.parse_event_props("evt-1", EVENT_ODDS)
        standard = parsed.lines[("Jayson Tatum", StatType.POINTS)]

        line = next(alt for alt in standard if alt.line == 27.5)
        assert line.odds_over == -115
        assert line.bookmaker_over == "DraftKings"
        assert line.odds_under == -102
        assert line.bookmaker_under == "FanDuel"

    def test_alternate_lines_sorted_ascending(self):
        parsed = OddsAPIClient.parse_event_props("evt-1", EVENT_ODDS)
        alts = parsed.alt_props()

        assert [alt.line for alt in alts[0].lines] == [19.5, 22.5, 27.5]

    def test_unknown_markets_and_incomplete_outcomes_are_ignored(self):
        parsed = OddsAPIClient.parse_event_props("evt-1", EVENT_ODDS)

        assert parsed.player_names == {"Jayson Tatum"}
        assert len(parsed.lines) == 1

    def test_standard_props_take_first_line(self):
        data = {
            "bookmakers": [
                {
                    "key": "betmgm",
                    "markets": [
                        {
                            "key": "player_rebounds",
                            "outcomes": [
                                _outcome("Josh Hart", "Over", 9.5, -110),
                                _outcome("Josh Hart", "Under", 9.5, -110),
                            ],
                        }
                    ],
                }
            ]
        }
        props = OddsAPIClient.parse_event_props("evt-2", data).standard_props()

        assert len(props) == 1
        assert props[0].stat_type is StatType.REBOUNDS
        assert props[0].line == 9.5
        assert props[0].bookmaker_over == "BetMGM"

    def test_missing_response_gives_empty_props(self):
        parsed = OddsAPIClient.parse_event_props("evt-3", None)

        assert parsed.standard_props() == []
        assert parsed.alt_props() == []


class TestFindBestGoblinLine:
    """Safest useful alternate line per side."""

    LINES = [
        AltLine(line=18.5, odds_over=-900, odds_under=500),
        AltLine(line=21.5, odds_over=-650, odds_under=400),
        AltLine(line=24.5, odds_over=-420, odds_under=300),
        AltLine(line=27.5, odds_over=-200, odds_under=160),
        AltLine(line=33.5, odds_over=220, odds_under=-450),
    ]

    def test_over_takes_highest_line_below_average(self):
        best = find_best_goblin_line(self.LINES, Side.OVER, player_avg=28.5)

        assert best.line == 24.5

    def test_under_takes_lowest_line_above_average(self):
        best = find_best_goblin_line(self.LINES, Side.UNDER, player_avg=28.5)

        assert best.line == 33.5

    def test_falls_back_to_heaviest_price_without_average(self):
        best = find_best_goblin_line(self.LINES, Side.OVER, player_avg=None)

        assert best.line == 18.5

    def test_none_when_nothing_priced_past_threshold(self):
        assert find_best_goblin_line(self.LINES[3:4], Side.OVER, player_avg=28.5) is None


class TestCreditTracking:
    def test_headers_update_credit_status(self):
        client = OddsAPIClient(api_key="key")

        client._on_response_headers({"x-requests-remaining": "450", "x-requests-used": "50.0"})

        status = client.get_credit_status()
        assert status["remaining"] == 450
        assert status["used"] == 50
        assert status["last_check"] is not None

    def test_unknown_before_first_response(self):
        assert OddsAPIClient(api_key="key").get_credit_status()["remaining"] is None
