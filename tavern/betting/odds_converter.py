"""
American odds arithmetic for the house book.

Money math runs on Decimal and is rounded to the cent; probabilities coming
from the pricing model are floats and are converted at the boundary.
"""
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import NamedTuple


CENT = Decimal("0.01")
ONE = Decimal("1")
HUNDRED = Decimal("100")


class MarketHold(NamedTuple):
    """Implied probabilities of a two-way market and the house's margin."""

    side1_implied: Decimal
    side2_implied: Decimal
    overround: Decimal
    hold_percent: Decimal


def american_to_decimal(american: int) -> Decimal:
    """
    Decimal odds (total return per unit staked) for an American price.

    Examples:
        >>> american_to_decimal(+150)
        Decimal('2.5')
        >>> american_to_decimal(-200)
        Decimal('1.5')
    """
    if american == 0:
        raise ValueError("American odds cannot be zero")
    if american > 0:
        return ONE + Decimal(american) / HUNDRED
    return ONE + HUNDRED / Decimal(-american)


def american_to_implied_probability(american: int) -> Decimal:
    """
    Break-even probability of an American price, margin included.

    Examples:
        >>> american_to_implied_probability(-150)
        Decimal('0.6')
    """
    risk = Decimal(abs(american))
    if american > 0:
        return HUNDRED / (risk + HUNDRED)
    return risk / (risk + HUNDRED)


def implied_probability_to_american(probability: Decimal) -> int:
    """
    American price whose break-even probability is `probability`.

    Even money is +100. Favourites get negative prices.

    Examples:
        >>> implied_probability_to_american(Decimal('0.6'))
        -150
    """
    if not 0 < probability < 1:
        raise ValueError(f"Probability must be strictly between 0 and 1: {probability}")

    against = 1 - probability
    if probability > Decimal("0.5"):
        price = -(probability / against) * HUNDRED
    else:
        price = against / probability * HUNDRED
    return int(price.quantize(ONE))


def win_probability_from_spread(spread: float, scale: float) -> float:
    """Logistic win probability for the side favoured by `spread` points."""
    if scale <= 0:
        raise ValueError("Logistic scale must be positive")
    return 1.0 / (1.0 + math.exp(-spread / scale))


def price_two_way(
    probability: float,
    hold: float,
    max_probability: float = 0.97,
) -> tuple[int, int]:
    """
    American prices for both sides of a two-way market.

    Half of `hold` is added to each side's probability, so a coin flip
    always prices symmetrically (0.0476 gives -110/-110). Probabilities are
    clamped to [1 - max_probability, max_probability] first so a mismatch
    cannot produce an absurd price.
    """
    floor = 1 - max_probability
    prices = []
    for side_probability in (probability, 1 - probability):
        loaded = min(max(side_probability + hold / 2, floor), max_probability)
        prices.append(implied_probability_to_american(Decimal(str(round(loaded, 4)))))
    return prices[0], prices[1]


def market_hold(odds1: int, odds2: int) -> MarketHold:
    """
    Margin the house holds on a two-way market.

    Examples:
        >>> market_hold(-110, -110).hold_percent.quantize(CENT)
        Decimal('4.76')
    """
    implied1 = american_to_implied_probability(odds1)
    implied2 = american_to_implied_probability(odds2)
    overround = implied1 + implied2
    return MarketHold(
        side1_implied=implied1,
        side2_implied=implied2,
        overround=overround,
        hold_percent=(overround - ONE) * HUNDRED,
    )


def calculate_potential_payout(stake: Decimal, american_odds: int) -> Decimal:
    """
    Amount credited when a bet wins: stake plus profit, rounded to the cent.

    Examples:
        >>> calculate_potential_payout(Decimal('100'), -110)
        Decimal('190.91')
    """
    payout = stake * american_to_decimal(american_odds)
    return payout.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_profit(stake: Decimal, american_odds: int) -> Decimal:
    return calculate_potential_payout(stake, american_odds) - stake


def format_american_odds(odds: int) -> str:
    return f"{odds:+d}"


def round_to_half(value: float) -> float:
    """Nearest half point, ties away from zero (3.25 -> 3.5)."""
    halves = (Decimal(str(value)) * 2).quantize(ONE, rounding=ROUND_HALF_UP)
    return float(halves / 2)
