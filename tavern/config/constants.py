"""
Constants shared across the betting service.

Contains bet enums, market defaults, and Sleeper week bounds.
"""
from enum import Enum
from typing import Final


# =============================================================================
# BET TYPES
# =============================================================================
class BetType(str, Enum):
    """Markets offered on each matchup."""

    SPREAD = "spread"
    TOTAL = "total"
    MONEYLINE = "moneyline"


class BetStatus(str, Enum):
    """Bet lifecycle status. PENDING moves to exactly one terminal state."""

    PENDING = "PENDING"
    WON = "WON"
    LOST = "LOST"
    PUSH = "PUSH"


class TransactionType(str, Enum):
    """Audit trail entries for FAAB movements."""

    BET_PLACED = "BET_PLACED"
    BET_WON = "BET_WON"
    BET_LOST = "BET_LOST"
    BET_PUSH = "BET_PUSH"


class TotalSide(str, Enum):
    """Selections on a total market."""

    OVER = "over"
    UNDER = "under"


TERMINAL_STATUSES: Final[frozenset[BetStatus]] = frozenset(
    {BetStatus.WON, BetStatus.LOST, BetStatus.PUSH}
)

SETTLEMENT_TRANSACTIONS: Final[dict[BetStatus, TransactionType]] = {
    BetStatus.WON: TransactionType.BET_WON,
    BetStatus.LOST: TransactionType.BET_LOST,
    BetStatus.PUSH: TransactionType.BET_PUSH,
}


# =============================================================================
# MARKET PRICING
# =============================================================================
STANDARD_JUICE: Final[int] = -110

# (max spread size, American odds) checked in order; larger spreads fall through
SPREAD_JUICE_TIERS: Final[list[tuple[float, int]]] = [
    (3.0, -110),
    (7.0, -105),
    (14.0, -115),
]
LARGE_SPREAD_JUICE: Final[int] = -120


# =============================================================================
# SEASON
# =============================================================================
MIN_WEEK: Final[int] = 1
MAX_WEEK: Final[int] = 18

FAAB_REPORT_LOOKBACK_DAYS: Final[int] = 7
