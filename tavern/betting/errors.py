"""
Exceptions raised while validating, placing, and settling wagers.

Structural problems with a request (InvalidBetError, UnknownMarketError) are
kept apart from business-rule rejections (InsufficientBalanceError,
BettingLockedError) so callers can show a specific message.
"""
from typing import Optional


class WagerError(Exception):
    """Base exception for wager rejections."""

    code = "wager_rejected"
    status_code = 400

    def __init__(self, message: str, bet_index: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.bet_index = bet_index

    def to_dict(self) -> dict:
        payload = {"error": self.code, "detail": self.message}
        if self.bet_index is not None:
            payload["bet_index"] = self.bet_index
        return payload


class InvalidBetError(WagerError):
    """Malformed bet: bad stake, missing fields, unknown bet type."""

    code = "invalid_bet"


class UnknownMarketError(WagerError):
    """Bet references a matchup or selection not currently offered."""

    code = "unknown_market"


class InsufficientBalanceError(WagerError):
    """Combined stake exceeds the user's FAAB balance."""

    code = "insufficient_balance"

    def __init__(self, total_stake: float, balance: float):
        super().__init__(
            f"Total stake (${total_stake:.2f}) exceeds balance (${balance:.2f})"
        )
        self.total_stake = total_stake
        self.balance = balance


class BettingLockedError(WagerError):
    """Wager submitted while the weekly lock window is closed."""

    code = "betting_locked"
    status_code = 403

    def __init__(self, message: str = "Betting is currently locked. Lines reopen Monday."):
        super().__init__(message)


class BetNotFoundError(WagerError):
    """Referenced bet does not exist."""

    code = "bet_not_found"
    status_code = 404

    def __init__(self, bet_id: int):
        super().__init__(f"Bet not found: {bet_id}")
        self.bet_id = bet_id


class UserNotFoundError(WagerError):
    """Referenced user does not exist in the league."""

    code = "user_not_found"
    status_code = 404

    def __init__(self, user_id: int):
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class WeekClosedError(WagerError):
    """Bet targets a week other than the current one, or one already being scored."""

    code = "week_closed"

    def __init__(self, week: int, reason: str):
        super().__init__(f"Week {week} is not open for betting: {reason}")
        self.week = week
