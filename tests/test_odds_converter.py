"""Tests for odds conversion and payouts."""

from decimal import Decimal

import pytest

from tavern.betting.odds_converter import (
    american_to_decimal,
    american_to_implied_probability,
    calculate_potential_payout,
    calculate_profit,
    format_american_odds,
    implied_probability_to_american,
    market_hold,
    price_two_way,
    round_to_half,
    win_probability_from_spread,
)


def test_american_to_decimal():
    assert american_to_decimal(150) == Decimal("2.5")
    assert american_to_decimal(-200) == Decimal("1.5")
    with pytest.raises(ValueError):
        american_to_decimal(0)


def test_implied_probability():
    assert american_to_implied_probability(150) == Decimal("0.4")
    assert american_to_implied_probability(-150) == Decimal("0.6")


def test_probability_to_american():
    assert implied_probability_to_american(Decimal("0.5")) == 100
    assert implied_probability_to_american(Decimal("0.6")) == -150
    assert implied_probability_to_american(Decimal("0.4")) == 150
    with pytest.raises(ValueError):
        implied_probability_to_american(Decimal("1"))


def test_payouts_include_stake():
    assert calculate_potential_payout(Decimal("100"), -110) == Decimal("190.91")
    assert calculate_potential_payout(Decimal("20"), 150) == Decimal("50.00")
    assert calculate_profit(Decimal("100"), 150) == Decimal("150.00")


def test_even_market_prices_standard_juice():
    assert price_two_way(0.5, 0.0476) == (-110, -110)


def test_lopsided_market_is_clamped():
    favorite, underdog = price_two_way(0.999, 0.0476, max_probability=0.97)
    assert favorite == implied_probability_to_american(Decimal("0.97"))
    assert underdog > 0


def test_spread_probability_is_symmetric():
    assert win_probability_from_spread(0, 10) == 0.5
    assert win_probability_from_spread(7, 10) == pytest.approx(1 - win_probability_from_spread(-7, 10))
    with pytest.raises(ValueError):
        win_probability_from_spread(3, 0)


def test_hold_of_standard_line():
    hold = market_hold(-110, -110)
    assert hold.hold_percent.quantize(Decimal("0.01")) == Decimal("4.76")


@pytest.mark.parametrize(
    "value, expected",
    [(3.2, 3.0), (3.25, 3.5), (3.74, 3.5), (39.75, 40.0), (0.0, 0.0)],
)
def test_round_to_half(value, expected):
    assert round_to_half(value) == expected


def test_format_american_odds():
    assert format_american_odds(150) == "+150"
    assert format_american_odds(-110) == "-110"
