"""
Pre-commit validation for bet batches.

The validator is a pure gate: it inspects a proposed batch against the
user's balance and the lock window and never mutates anything. The ledger
runs it again inside the commit transaction.
"""
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, NamedTuple, Optional

from tavern.betting.errors import (
    BettingLockedError,
    InsufficientBalanceError,
    InvalidBetError,
    UnknownMarketError,
    WagerError,
    WeekClosedError,
)
from tavern.betting.line_generator import BettingLine
from tavern.betting.lock_window import LockWindow
from tavern.betting.odds_converter import calculate_potential_payout
from tavern.config.constants import BetType


@dataclass
class ProposedBet:
    """A bet as submitted by the client, before pricing."""

    matchup_id: str
    bet_type: str
    selection: str
    stake: float
    odds: Optional[int] = None
    line: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProposedBet":
        return cls(
            matchup_id=data.get("matchup_id") or "",
            bet_type=data.get("bet_type") or "",
            selection=str(data.get("selection") or ""),
            stake=data.get("stake", 0),
            odds=data.get("odds"),
            line=data.get("line"),
        )


@dataclass
class PricedBet:
    """A proposed bet resolved against the currently offered lines."""

    matchup_id: str
    bet_type: BetType
    selection: str
    stake: float
    odds: int
    line: Optional[float]
    potential_payout: float
    week: Optional[int] = None

    @property
    def description(self) -> str:
        if self.line is None:
            return f"{self.selection} {self.bet_type.value}"
        return f"{self.selection} {self.bet_type.value} {self.line:+g}"


class ValidationResult(NamedTuple):
    """Outcome of validating a batch."""

    ok: bool
    reason: str = ""
    error: Optional[WagerError] = None

    @property
    def code(self) -> Optional[str]:
        return self.error.code if self.error else None


def _check_structure(bets: list, max_bets: Optional[int]) -> None:
    if not bets:
        raise InvalidBetError("No valid bets provided")
    if max_bets is not None and len(bets) > max_bets:
        raise InvalidBetError(f"A batch may hold at most {max_bets} bets")

    for index, bet in enumerate(bets):
        stake = bet.stake
        if not isinstance(stake, (int, float)) or isinstance(stake, bool):
            raise InvalidBetError(f"Invalid stake amount: {stake!r}", bet_index=index)
        if not math.isfinite(stake) or stake <= 0:
            raise InvalidBetError(f"Invalid stake amount: {stake}", bet_index=index)

        if not bet.matchup_id or not bet.bet_type or not bet.selection:
            raise InvalidBetError("Missing required bet information", bet_index=index)

        bet_type = bet.bet_type.value if isinstance(bet.bet_type, BetType) else bet.bet_type
        if bet_type not in {t.value for t in BetType}:
            raise InvalidBetError(f"Unknown bet type: {bet_type}", bet_index=index)


def check_bets(
    balance: float,
    bets: Iterable,
    now: Optional[datetime] = None,
    lock_window: Optional[LockWindow] = None,
    max_bets: Optional[int] = None,
) -> float:
    """
    Validate a batch, raising on the first problem.

    Checks run structure first, then the lock window, then the balance, so a
    malformed batch is reported as such even outside betting hours.

    Args:
        balance: User's current FAAB balance
        bets: ProposedBet or PricedBet items
        now: Instant of submission (defaults to the current time)
        lock_window: Lock policy (defaults to Thursday 20:20 Eastern)
        max_bets: Optional cap on batch size

    Returns:
        Total stake of the batch

    Raises:
        InvalidBetError: Malformed bet or empty batch
        BettingLockedError: Lock window closed at evaluation time
        InsufficientBalanceError: Total stake exceeds balance
    """
    bets = list(bets)
    _check_structure(bets, max_bets)

    window = lock_window or LockWindow()
    if window.is_locked(now):
        raise BettingLockedError()

    # Money is compared in whole cents
    total_stake = round(sum(bet.stake for bet in bets), 2)
    if total_stake > round(balance, 2):
        raise InsufficientBalanceError(total_stake, balance)

    return total_stake


def validate(
    balance: float,
    bets: Iterable,
    now: Optional[datetime] = None,
    lock_window: Optional[LockWindow] = None,
    max_bets: Optional[int] = None,
) -> ValidationResult:
    """Validate a batch without raising; see check_bets for the rules."""
    try:
        check_bets(balance, bets, now=now, lock_window=lock_window, max_bets=max_bets)
    except WagerError as e:
        return ValidationResult(ok=False, reason=e.message, error=e)
    return ValidationResult(ok=True)


def price_bets(
    proposed: Iterable[ProposedBet],
    lines: Iterable[BettingLine],
    week: Optional[int] = None,
) -> list[PricedBet]:
    """
    Resolve proposed bets against the lines currently on offer.

    Odds and line always come from the server-side market; whatever the
    client sent is ignored. Potential payout includes the stake.

    Raises:
        InvalidBetError: Malformed bet
        UnknownMarketError: Matchup or selection not offered
    """
    proposed = list(proposed)
    _check_structure(proposed, None)

    offered = {
        (line.matchup_id, line.bet_type.value, line.selection): line for line in lines
    }

    priced = []
    for index, bet in enumerate(proposed):
        bet_type = bet.bet_type.value if isinstance(bet.bet_type, BetType) else bet.bet_type
        line = offered.get((bet.matchup_id, bet_type, str(bet.selection)))
        if line is None:
            raise UnknownMarketError(
                f"No {bet_type} market for selection {bet.selection} on matchup {bet.matchup_id}",
                bet_index=index,
            )

        stake = round(float(bet.stake), 2)
        payout = calculate_potential_payout(Decimal(str(stake)), line.odds)
        priced.append(
            PricedBet(
                matchup_id=line.matchup_id,
                bet_type=line.bet_type,
                selection=line.selection,
                stake=stake,
                odds=line.odds,
                line=line.line,
                potential_payout=float(payout),
                week=week,
            )
        )

    return priced


def check_week_open(week: int, current_week: int, matchups: Iterable[dict]) -> None:
    """
    Only the current week takes bets, and only before any of it is scored.

    A past week's results are already known, and a week showing points has
    kicked off even if the lock window has not caught up.

    Raises:
        WeekClosedError: week is not current, or a matchup already has points
    """
    if week != current_week:
        raise WeekClosedError(week, f"the current week is {current_week}")

    for entry in matchups:
        if float(entry.get("custom_points") or entry.get("points") or 0) > 0:
            raise WeekClosedError(week, "games are already being scored")
