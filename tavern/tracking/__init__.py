"""
Wager ledger and reporting.

Provides:
- All-or-nothing bet placement against FAAB balances
- Idempotent settlement from final scores
- League member sync and sign-in
- Betting stats and the FAAB adjustment export
"""

from .accounts import AccountService, SignInError
from .ledger import (
    BetView,
    MatchupResult,
    PlacementResult,
    SettlementSummary,
    WagerLedger,
    grade_bet,
    results_from_matchups,
)
from .reports import (
    BettingStats,
    FaabAdjustment,
    compute_stats,
    faab_adjustments,
    faab_adjustments_csv,
)

__all__ = [
    "AccountService",
    "SignInError",
    "BetView",
    "MatchupResult",
    "PlacementResult",
    "SettlementSummary",
    "WagerLedger",
    "grade_bet",
    "results_from_matchups",
    "BettingStats",
    "FaabAdjustment",
    "compute_stats",
    "faab_adjustments",
    "faab_adjustments_csv",
]
