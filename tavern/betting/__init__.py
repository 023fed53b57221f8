"""
Betting markets and wager validation.

Provides tools for:
- Odds conversion and two-way pricing
- Weekly line generation from league records
- The Thursday-night lock window
- Pre-commit validation of bet batches
"""

from .errors import (
    BetNotFoundError,
    BettingLockedError,
    InsufficientBalanceError,
    InvalidBetError,
    UnknownMarketError,
    UserNotFoundError,
    WagerError,
    WeekClosedError,
)

from .odds_converter import (
    american_to_decimal,
    american_to_implied_probability,
    implied_probability_to_american,
    win_probability_from_spread,
    price_two_way,
    market_hold,
    calculate_potential_payout,
    calculate_profit,
)

from .line_generator import (
    BettingLine,
    LineGenerator,
    MatchupMarket,
    TeamProfile,
    generate_lines,
    matchup_key,
)

from .lock_window import LockWindow, is_locked

from .validator import (
    PricedBet,
    ProposedBet,
    ValidationResult,
    check_bets,
    check_week_open,
    price_bets,
    validate,
)

__all__ = [
    # Errors
    "WagerError",
    "InvalidBetError",
    "UnknownMarketError",
    "InsufficientBalanceError",
    "BettingLockedError",
    "BetNotFoundError",
    "UserNotFoundError",
    "WeekClosedError",
    # Odds converter
    "american_to_decimal",
    "american_to_implied_probability",
    "implied_probability_to_american",
    "win_probability_from_spread",
    "price_two_way",
    "market_hold",
    "calculate_potential_payout",
    "calculate_profit",
    # Lines
    "BettingLine",
    "LineGenerator",
    "MatchupMarket",
    "TeamProfile",
    "generate_lines",
    "matchup_key",
    # Lock window
    "LockWindow",
    "is_locked",
    # Validation
    "PricedBet",
    "ProposedBet",
    "ValidationResult",
    "check_bets",
    "check_week_open",
    "price_bets",
    "validate",
]
