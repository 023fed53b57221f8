"""Tests for betting stats and the FAAB adjustment export."""

import csv
import io

from tavern.tracking.reports import (
    FAAB_CSV_COLUMNS,
    FaabAdjustment,
    compute_stats,
    faab_adjustments,
    faab_adjustments_csv,
)


def _bet(status, stake, actual_payout=None, potential_payout=None, roster_id=1, **extra):
    bet = {
        "status": status,
        "stake": stake,
        "actual_payout": actual_payout,
        "potential_payout": potential_payout if potential_payout is not None else stake * 2,
        "roster_id": roster_id,
        "team_name": f"Team {roster_id}",
        "owner_name": f"owner{roster_id}",
    }
    bet.update(extra)
    return bet


def test_empty_stats_are_zero():
    stats = compute_stats([])
    assert stats.total_bets == 0
    assert stats.net_profit == 0
    assert stats.win_rate == 0
    assert stats.roi == 0


def test_stats_mix():
    bets = [
        _bet("WON", 20, actual_payout=38),
        _bet("LOST", 10, actual_payout=0),
        _bet("PUSH", 5, actual_payout=5),
        _bet("PENDING", 15),
    ]
    stats = compute_stats(bets)

    assert stats.total_bets == 4
    assert stats.total_stake == 50
    assert stats.settled_stake == 35
    assert stats.total_payout == 43
    assert stats.net_profit == 8
    assert stats.net_profit == stats.total_payout - stats.settled_stake
    assert (stats.wins, stats.losses, stats.pushes) == (1, 1, 1)
    assert stats.pending_bets == 1
    assert stats.pending_stake == 15
    assert stats.win_rate == 1 / 3


def test_won_without_actual_payout_uses_potential():
    stats = compute_stats([_bet("WON", 10, potential_payout=19.09)])
    assert stats.total_payout == 19.09


def test_adjustments_net_per_roster():
    bets = [
        _bet("WON", 20, actual_payout=38, roster_id=2),
        _bet("LOST", 10, actual_payout=0, roster_id=2),
        _bet("LOST", 15, actual_payout=0, roster_id=1),
        _bet("PUSH", 5, actual_payout=5, roster_id=3),
        _bet("PENDING", 50, roster_id=4),
    ]
    adjustments = faab_adjustments(bets)

    assert [(a.roster_id, a.adjustment) for a in adjustments] == [(1, -15.0), (2, 8.0)]
    assert adjustments[1].team_name == "Team 2"


def test_csv_layout():
    content = faab_adjustments_csv(
        [FaabAdjustment(roster_id=4, team_name="Gridiron, Inc", owner_name="dave", adjustment=12.5)]
    )
    rows = list(csv.reader(io.StringIO(content)))

    assert rows[0] == FAAB_CSV_COLUMNS
    assert rows[0] == ["Roster ID", "Team Name", "Owner Name", "FAAB Adjustment", "Notes"]
    assert rows[1] == ["4", "Gridiron, Inc", "dave", "12.50", "Betting winnings/losses"]


def test_csv_empty_report_has_header_only():
    assert faab_adjustments_csv([]).strip() == ",".join(FAAB_CSV_COLUMNS)
