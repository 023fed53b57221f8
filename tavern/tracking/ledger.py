"""
FAAB wager ledger: bet placement and settlement.

Placement commits a whole batch in one transaction. Each stake is taken with
a conditional decrement, so two concurrent batches for the same user cannot
both spend the same balance. Settlement grades each bet in its own
transaction, keyed on the bet's PENDING status, so re-running it never pays
twice.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional

from loguru import logger

from tavern.betting.errors import (
    BetNotFoundError,
    InsufficientBalanceError,
    InvalidBetError,
    UserNotFoundError,
)
from tavern.betting.line_generator import matchup_key
from tavern.betting.lock_window import LockWindow
from tavern.betting.validator import PricedBet, check_bets
from tavern.config.constants import (
    SETTLEMENT_TRANSACTIONS,
    TERMINAL_STATUSES,
    BetStatus,
    BetType,
    TotalSide,
    TransactionType,
)
from tavern.database.models import Bet, utc_now
from tavern.database.repository import BetRepository
from tavern.database.session import Database


@dataclass
class BetView:
    """Detached snapshot of a bet row, safe to use after the session closes."""

    id: int
    user_id: int
    matchup_id: str
    week: Optional[int]
    bet_type: BetType
    selection: str
    description: str
    stake: float
    odds: int
    line: Optional[float]
    potential_payout: float
    status: BetStatus
    actual_payout: Optional[float]
    placed_at: datetime
    settled_at: Optional[datetime] = None
    roster_id: Optional[int] = None
    team_name: Optional[str] = None
    owner_name: Optional[str] = None

    @classmethod
    def from_model(cls, bet: Bet) -> "BetView":
        user = bet.user
        return cls(
            id=bet.id,
            user_id=bet.user_id,
            matchup_id=bet.matchup_id,
            week=bet.week,
            bet_type=bet.bet_type,
            selection=bet.selection,
            description=bet.description,
            stake=bet.stake,
            odds=bet.odds,
            line=bet.line,
            potential_payout=bet.potential_payout,
            status=bet.status,
            actual_payout=bet.actual_payout,
            placed_at=bet.placed_at,
            settled_at=bet.settled_at,
            roster_id=user.roster_id if user else None,
            team_name=user.team_name if user else None,
            owner_name=user.owner_name if user else None,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "matchup_id": self.matchup_id,
            "week": self.week,
            "bet_type": self.bet_type.value,
            "selection": self.selection,
            "description": self.description,
            "stake": self.stake,
            "odds": self.odds,
            "line": self.line,
            "potential_payout": self.potential_payout,
            "status": self.status.value,
            "actual_payout": self.actual_payout,
            "placed_at": self.placed_at.isoformat(),
            "settled_at": self.settled_at.isoformat() if self.settled_at else None,
        }


@dataclass
class PlacementResult:
    """Outcome of placing a batch."""

    requested: int
    placed: int
    total_stake: float
    new_balance: float
    bets: list[BetView] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.placed == self.requested

    def to_dict(self) -> dict:
        return {
            "success": self.complete,
            "bets_placed": self.placed,
            "total_bets": self.requested,
            "total_stake": self.total_stake,
            "new_balance": self.new_balance,
            "bets": [bet.to_dict() for bet in self.bets],
        }


@dataclass
class MatchupResult:
    """Final score of a head-to-head matchup, keyed by roster id."""

    matchup_id: str
    scores: dict[str, float]

    def opponent_of(self, roster_id: str) -> Optional[str]:
        others = [rid for rid in self.scores if rid != roster_id]
        return others[0] if len(others) == 1 else None


@dataclass
class SettlementSummary:
    """Counts from one settlement pass."""

    won: int = 0
    lost: int = 0
    pushed: int = 0
    already_settled: int = 0
    ungraded: int = 0
    total_credited: float = 0.0

    @property
    def settled(self) -> int:
        return self.won + self.lost + self.pushed

    def to_dict(self) -> dict:
        return {
            "settled": self.settled,
            "won": self.won,
            "lost": self.lost,
            "pushed": self.pushed,
            "already_settled": self.already_settled,
            "ungraded": self.ungraded,
            "total_credited": round(self.total_credited, 2),
        }


def results_from_matchups(
    matchups: Iterable[dict],
    week: int,
    league_id: Optional[str] = None,
) -> list[MatchupResult]:
    """
    Build MatchupResults from Sleeper matchup entries for a finished week.

    Byes, incomplete pairings, and pairings where neither side has scored
    (week not played yet) are left out so their bets stay pending.
    """
    grouped: dict[Any, dict[str, float]] = {}
    for entry in matchups or []:
        if entry.get("matchup_id") is None:
            continue
        scores = grouped.setdefault(entry["matchup_id"], {})
        scores[str(entry.get("roster_id"))] = float(
            entry.get("custom_points") or entry.get("points") or 0
        )

    return [
        MatchupResult(matchup_key(week, sleeper_id, league_id), scores)
        for sleeper_id, scores in grouped.items()
        if len(scores) == 2 and any(scores.values())
    ]


def grade_bet(
    bet_type: BetType,
    selection: str,
    line: Optional[float],
    result: MatchupResult,
) -> Optional[BetStatus]:
    """
    Grade one bet against a final score.

    Returns:
        WON, LOST, or PUSH; None when the result cannot grade the bet
    """
    if len(result.scores) != 2:
        return None

    if bet_type == BetType.TOTAL:
        if line is None:
            return None
        margin = round(sum(result.scores.values()) - line, 2)
        if selection == TotalSide.UNDER.value:
            margin = -margin
        elif selection != TotalSide.OVER.value:
            return None
    else:
        opponent = result.opponent_of(selection)
        if selection not in result.scores or opponent is None:
            return None
        handicap = (line or 0.0) if bet_type == BetType.SPREAD else 0.0
        margin = round(result.scores[selection] + handicap - result.scores[opponent], 2)

    if margin > 0:
        return BetStatus.WON
    if margin < 0:
        return BetStatus.LOST
    return BetStatus.PUSH


class WagerLedger:
    """
    Records bets, moves FAAB balances, and settles results.

    Example:
        >>> ledger = WagerLedger(database, LockWindow())
        >>> result = ledger.place_bets(user_id, priced_bets)
        >>> print(f"Placed {result.placed}/{result.requested}, balance ${result.new_balance:.2f}")
        >>> ledger.settle(results_from_matchups(final_matchups, week=6))
    """

    def __init__(
        self,
        database: Database,
        lock_window: Optional[LockWindow] = None,
        max_bets_per_batch: Optional[int] = None,
    ):
        """
        Initialize the ledger.

        Args:
            database: Database providing transactional sessions
            lock_window: Weekly lock policy checked at commit time
            max_bets_per_batch: Optional cap on bets per batch
        """
        self.database = database
        self.lock_window = lock_window or LockWindow()
        self.max_bets_per_batch = max_bets_per_batch

    def get_balance(self, user_id: int) -> float:
        with self.database.session_scope() as session:
            return BetRepository(session).get_balance(user_id)

    def get_bets(self, user_id: int) -> list[BetView]:
        """Bet history for a user, newest first."""
        with self.database.session_scope() as session:
            repo = BetRepository(session)
            if repo.get_user(user_id) is None:
                raise UserNotFoundError(user_id)
            return [BetView.from_model(bet) for bet in repo.list_bets_by_user(user_id)]

    def get_settled_since(self, league_id: str, since: datetime) -> list[BetView]:
        """League bets settled at or after `since`, oldest first."""
        with self.database.session_scope() as session:
            return [
                BetView.from_model(bet)
                for bet in BetRepository(session).settled_bets_since(league_id, since)
            ]

    def place_bets(
        self,
        user_id: int,
        bets: list[PricedBet],
        now: Optional[datetime] = None,
    ) -> PlacementResult:
        """
        Place a batch of priced bets, all or nothing.

        Validation runs again inside the transaction against the balance as
        stored at that moment, and each debit is conditional on funds still
        being there. Any failure rolls back every bet in the batch.

        Args:
            user_id: Bettor's user id
            bets: Bets priced against current lines
            now: Submission instant for the lock check (defaults to now)

        Returns:
            PlacementResult with placed bets and the new balance

        Raises:
            InvalidBetError, BettingLockedError, InsufficientBalanceError
        """
        bets = list(bets)
        placed_at = utc_now()

        with self.database.session_scope() as session:
            repo = BetRepository(session)
            user = repo.get_user(user_id)
            if user is None:
                raise UserNotFoundError(user_id)

            balance = repo.get_balance(user_id)
            total_stake = check_bets(
                balance,
                bets,
                now=now,
                lock_window=self.lock_window,
                max_bets=self.max_bets_per_batch,
            )

            placed = []
            for index, priced in enumerate(bets):
                if not isinstance(priced, PricedBet):
                    raise InvalidBetError("Bet has not been priced", bet_index=index)

                if not repo.debit_if_sufficient(user_id, priced.stake):
                    # Another request spent the balance after our read
                    raise InsufficientBalanceError(total_stake, repo.get_balance(user_id))

                bet = repo.create_bet(
                    Bet(
                        user_id=user_id,
                        league_id=user.league_id,
                        matchup_id=priced.matchup_id,
                        week=priced.week,
                        bet_type=priced.bet_type,
                        selection=priced.selection,
                        description=priced.description,
                        stake=priced.stake,
                        odds=priced.odds,
                        line=priced.line,
                        potential_payout=priced.potential_payout,
                        status=BetStatus.PENDING,
                        placed_at=placed_at,
                    )
                )
                repo.record_transaction(
                    user_id,
                    TransactionType.BET_PLACED,
                    -priced.stake,
                    f"Bet placed: {priced.description}",
                    bet_id=bet.id,
                )
                placed.append(BetView.from_model(bet))

            new_balance = repo.get_balance(user_id)

        logger.info(
            f"User {user_id} placed {len(placed)} bets for ${total_stake:.2f}; "
            f"balance ${new_balance:.2f}"
        )
        return PlacementResult(
            requested=len(bets),
            placed=len(placed),
            total_stake=total_stake,
            new_balance=new_balance,
            bets=placed,
        )

    def _apply_settlement(
        self,
        bet_id: int,
        status: BetStatus,
        actual_payout: Optional[float] = None,
        settled_at: Optional[datetime] = None,
    ) -> Optional[float]:
        """
        Settle one bet in its own transaction.

        Returns:
            Amount credited, or None if the bet was already settled
        """
        settled_at = settled_at or utc_now()

        with self.database.session_scope() as session:
            repo = BetRepository(session)
            bet = repo.get_bet(bet_id)
            if bet is None:
                raise BetNotFoundError(bet_id)

            if status == BetStatus.WON:
                credit = actual_payout if actual_payout is not None else bet.potential_payout
            elif status == BetStatus.PUSH:
                credit = bet.stake
            else:
                credit = 0.0
            credit = round(credit, 2)

            if not repo.mark_settled_if_pending(bet_id, status, credit, settled_at):
                logger.debug(f"Bet {bet_id} already settled, skipping")
                return None

            if credit > 0:
                repo.credit(bet.user_id, credit)
            repo.record_transaction(
                bet.user_id,
                SETTLEMENT_TRANSACTIONS[status],
                credit,
                f"Bet {status.value.lower()}: {bet.description}",
                bet_id=bet_id,
            )

        return credit

    def settle_bet(
        self,
        bet_id: int,
        status: BetStatus,
        actual_payout: Optional[float] = None,
    ) -> bool:
        """
        Manually settle a single bet.

        Args:
            bet_id: Bet to settle
            status: WON, LOST, or PUSH
            actual_payout: Override for a WON payout (defaults to potential payout)

        Returns:
            True if settled now, False if it had already been settled

        Raises:
            InvalidBetError: status is not terminal
            BetNotFoundError: unknown bet
        """
        status = BetStatus(status)
        if status not in TERMINAL_STATUSES:
            raise InvalidBetError(f"Cannot settle a bet as {status.value}")
        if actual_payout is not None and actual_payout < 0:
            raise InvalidBetError("Payout cannot be negative")

        return self._apply_settlement(bet_id, status, actual_payout) is not None

    def settle(self, matchup_results: Iterable[MatchupResult]) -> SettlementSummary:
        """
        Grade and settle every pending bet on the given matchups.

        Safe to run repeatedly or concurrently: a bet that is no longer
        PENDING when its update runs is counted as already settled.
        """
        summary = SettlementSummary()

        for result in matchup_results:
            with self.database.session_scope() as session:
                pending = [
                    (bet.id, bet.bet_type, bet.selection, bet.line)
                    for bet in BetRepository(session).list_pending_bets_by_matchup(
                        result.matchup_id
                    )
                ]

            for bet_id, bet_type, selection, line in pending:
                status = grade_bet(bet_type, selection, line, result)
                if status is None:
                    logger.warning(
                        f"Cannot grade bet {bet_id} on {result.matchup_id}; leaving pending"
                    )
                    summary.ungraded += 1
                    continue

                credited = self._apply_settlement(bet_id, status)
                if credited is None:
                    summary.already_settled += 1
                    continue

                summary.total_credited += credited
                if status == BetStatus.WON:
                    summary.won += 1
                elif status == BetStatus.LOST:
                    summary.lost += 1
                else:
                    summary.pushed += 1

        logger.info(f"Settlement pass complete: {summary.to_dict()}")
        return summary
