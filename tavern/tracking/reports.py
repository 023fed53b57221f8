"""
Betting performance summaries and the weekly FAAB adjustment export.

All functions are pure aggregations over bet records. They accept ORM rows,
BetView snapshots, or plain dicts.
"""
import csv
import io
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Optional

from tavern.config.constants import BetStatus

FAAB_CSV_COLUMNS = ["Roster ID", "Team Name", "Owner Name", "FAAB Adjustment", "Notes"]


def get_val(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from either a dict or an object."""
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _status(bet: Any) -> Optional[BetStatus]:
    status = get_val(bet, "status")
    if status is None:
        return None
    return BetStatus(status)


@dataclass
class BettingStats:
    """Summary of a user's betting performance."""

    total_bets: int = 0
    total_stake: float = 0.0
    total_payout: float = 0.0
    settled_stake: float = 0.0
    net_profit: float = 0.0
    win_rate: float = 0.0
    wins: int = 0
    losses: int = 0
    pushes: int = 0
    pending_bets: int = 0
    pending_stake: float = 0.0
    roi: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def compute_stats(bets: Iterable[Any]) -> BettingStats:
    """
    Aggregate bets into summary statistics.

    Total payout counts WON payouts and PUSH refunds. Net profit is total
    payout minus settled stake, so pending bets never move it. Win rate is a
    fraction of settled bets.

    Args:
        bets: Bet rows, snapshots, or dicts

    Returns:
        BettingStats; all zeros for an empty list
    """
    stats = BettingStats()

    for bet in bets:
        stake = float(get_val(bet, "stake", 0) or 0)
        status = _status(bet)
        stats.total_bets += 1
        stats.total_stake += stake

        if status == BetStatus.PENDING:
            stats.pending_bets += 1
            stats.pending_stake += stake
            continue

        stats.settled_stake += stake
        if status == BetStatus.WON:
            stats.wins += 1
            payout = get_val(bet, "actual_payout")
            if payout is None:
                payout = get_val(bet, "potential_payout", 0)
            stats.total_payout += float(payout or 0)
        elif status == BetStatus.PUSH:
            stats.pushes += 1
            stats.total_payout += stake
        else:
            stats.losses += 1

    stats.total_stake = round(stats.total_stake, 2)
    stats.total_payout = round(stats.total_payout, 2)
    stats.settled_stake = round(stats.settled_stake, 2)
    stats.pending_stake = round(stats.pending_stake, 2)
    stats.net_profit = round(stats.total_payout - stats.settled_stake, 2)

    settled = stats.wins + stats.losses + stats.pushes
    stats.win_rate = stats.wins / settled if settled else 0.0
    stats.roi = stats.net_profit / stats.settled_stake if stats.settled_stake > 0 else 0.0

    return stats


@dataclass
class FaabAdjustment:
    """One row of the FAAB adjustment report."""

    roster_id: int
    team_name: str
    owner_name: str
    adjustment: float
    notes: str = "Betting winnings/losses"


def faab_adjustments(bets: Iterable[Any]) -> list[FaabAdjustment]:
    """
    Net FAAB change per roster from settled bets.

    Each bet contributes (payout credited - stake). Bets must carry
    roster_id, team_name and owner_name (BetView snapshots do). Rosters that
    net to zero are left out.
    """
    rows: dict[int, FaabAdjustment] = {}

    for bet in bets:
        status = _status(bet)
        if status is None or status == BetStatus.PENDING:
            continue

        roster_id = get_val(bet, "roster_id")
        if roster_id is None:
            continue

        row = rows.setdefault(
            roster_id,
            FaabAdjustment(
                roster_id=roster_id,
                team_name=get_val(bet, "team_name") or f"Team {roster_id}",
                owner_name=get_val(bet, "owner_name") or "",
                adjustment=0.0,
            ),
        )
        credited = float(get_val(bet, "actual_payout") or 0)
        row.adjustment += credited - float(get_val(bet, "stake", 0) or 0)

    adjustments = []
    for roster_id in sorted(rows):
        row = rows[roster_id]
        row.adjustment = round(row.adjustment, 2)
        if row.adjustment != 0:
            adjustments.append(row)
    return adjustments


def faab_adjustments_csv(adjustments: Iterable[FaabAdjustment]) -> str:
    """Render adjustments as CSV text for the commissioner."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(FAAB_CSV_COLUMNS)
    for row in adjustments:
        writer.writerow(
            [
                row.roster_id,
                row.team_name,
                row.owner_name,
                f"{row.adjustment:.2f}",
                row.notes,
            ]
        )
    return buffer.getvalue()
