"""Tests for bet placement and settlement against a real SQLite database."""

from datetime import timedelta

import pytest

from tavern.betting.errors import (
    BetNotFoundError,
    BettingLockedError,
    InsufficientBalanceError,
    InvalidBetError,
    UserNotFoundError,
)
from tavern.betting.validator import PricedBet
from tavern.config.constants import BetStatus, BetType, TransactionType
from tavern.database.models import utc_now
from tavern.database.repository import BetRepository
from tavern.tracking.ledger import (
    MatchupResult,
    WagerLedger,
    grade_bet,
    results_from_matchups,
)

from conftest import FINAL_MATCHUPS, LEAGUE_ID, LOCKED_TIME, FrozenLockWindow, OPEN_TIME

MATCHUP = f"{LEAGUE_ID}:10:1"


def _priced(stake=20.0, bet_type=BetType.MONEYLINE, selection="1", odds=-110, line=None, payout=None):
    return PricedBet(
        matchup_id=MATCHUP,
        bet_type=bet_type,
        selection=selection,
        stake=stake,
        odds=odds,
        line=line,
        potential_payout=payout if payout is not None else round(stake * 1.9, 2),
        week=10,
    )


@pytest.fixture
def ledger(database):
    return WagerLedger(database, FrozenLockWindow(OPEN_TIME))


def test_place_bets_debits_balance(ledger, make_user, database):
    user_id = make_user()

    result = ledger.place_bets(user_id, [_priced(20), _priced(30, selection="2")])

    assert result.complete
    assert result.total_stake == 50
    assert result.new_balance == 50
    assert [bet.status for bet in result.bets] == [BetStatus.PENDING] * 2
    assert ledger.get_balance(user_id) == 50

    with database.session_scope() as session:
        transactions = BetRepository(session).list_transactions(user_id)
        assert [t.type for t in transactions] == [TransactionType.BET_PLACED] * 2
        assert sorted(t.amount for t in transactions) == [-30, -20]


def test_overspent_batch_places_nothing(ledger, make_user):
    user_id = make_user()

    with pytest.raises(InsufficientBalanceError):
        ledger.place_bets(user_id, [_priced(30), _priced(80)])

    assert ledger.get_balance(user_id) == 100
    assert ledger.get_bets(user_id) == []


def test_locked_window_places_nothing(database, make_user):
    ledger = WagerLedger(database, FrozenLockWindow(LOCKED_TIME))
    user_id = make_user()

    with pytest.raises(BettingLockedError):
        ledger.place_bets(user_id, [_priced(10)])
    assert ledger.get_balance(user_id) == 100


def test_unpriced_bet_rolls_back_batch(ledger, make_user):
    user_id = make_user()

    class Loose:
        matchup_id = MATCHUP
        bet_type = "moneyline"
        selection = "1"
        stake = 10

    with pytest.raises(InvalidBetError):
        ledger.place_bets(user_id, [_priced(10), Loose()])

    assert ledger.get_balance(user_id) == 100
    assert ledger.get_bets(user_id) == []


def test_unknown_user(ledger):
    with pytest.raises(UserNotFoundError):
        ledger.place_bets(999, [_priced(10)])
    with pytest.raises(UserNotFoundError):
        ledger.get_bets(999)


def test_debit_if_sufficient(database, make_user):
    user_id = make_user(balance=25)

    with database.session_scope() as session:
        repo = BetRepository(session)
        assert repo.debit_if_sufficient(user_id, 25)
        assert not repo.debit_if_sufficient(user_id, 0.01)
        assert repo.get_balance(user_id) == 0


def test_remaining_balance_can_be_staked_exactly(ledger, make_user):
    user_id = make_user()

    ledger.place_bets(user_id, [_priced(99.7)])
    assert ledger.get_balance(user_id) == 0.3

    result = ledger.place_bets(user_id, [_priced(0.1), _priced(0.2)])
    assert result.new_balance == 0


def test_debit_compares_whole_cents(database, make_user):
    user_id = make_user(balance=10)

    with database.session_scope() as session:
        repo = BetRepository(session)
        assert repo.debit_if_sufficient(user_id, 9.9)
        assert repo.debit_if_sufficient(user_id, 0.1)
        assert repo.get_balance(user_id) == 0


def test_won_bet_credits_potential_payout(ledger, make_user):
    user_id = make_user()
    [bet] = ledger.place_bets(user_id, [_priced(20, payout=38)]).bets

    assert ledger.settle_bet(bet.id, BetStatus.WON)
    assert ledger.get_balance(user_id) == 118

    [settled] = ledger.get_bets(user_id)
    assert settled.status == BetStatus.WON
    assert settled.actual_payout == 38
    assert settled.settled_at is not None


def test_settling_twice_pays_once(ledger, make_user):
    user_id = make_user()
    [bet] = ledger.place_bets(user_id, [_priced(20, payout=38)]).bets

    assert ledger.settle_bet(bet.id, BetStatus.WON)
    assert not ledger.settle_bet(bet.id, BetStatus.WON)
    assert not ledger.settle_bet(bet.id, BetStatus.LOST)
    assert ledger.get_balance(user_id) == 118


def test_push_refunds_stake(ledger, make_user):
    user_id = make_user()
    [bet] = ledger.place_bets(user_id, [_priced(20)]).bets

    ledger.settle_bet(bet.id, BetStatus.PUSH)
    assert ledger.get_balance(user_id) == 100


def test_lost_bet_credits_nothing(ledger, make_user, database):
    user_id = make_user()
    [bet] = ledger.place_bets(user_id, [_priced(20)]).bets

    ledger.settle_bet(bet.id, BetStatus.LOST)
    assert ledger.get_balance(user_id) == 80

    with database.session_scope() as session:
        last = BetRepository(session).list_transactions(user_id)[-1]
        assert last.type == TransactionType.BET_LOST
        assert last.amount == 0


def test_manual_settlement_checks(ledger, make_user):
    user_id = make_user()
    [bet] = ledger.place_bets(user_id, [_priced(20)]).bets

    with pytest.raises(InvalidBetError):
        ledger.settle_bet(bet.id, BetStatus.PENDING)
    with pytest.raises(InvalidBetError):
        ledger.settle_bet(bet.id, BetStatus.WON, actual_payout=-1)
    with pytest.raises(BetNotFoundError):
        ledger.settle_bet(12345, BetStatus.WON)


def test_settle_grades_from_results(ledger, make_user):
    alice = make_user(roster_id=1)
    bob = make_user(roster_id=2)
    ledger.place_bets(alice, [_priced(10, payout=19.09), _priced(10, bet_type=BetType.SPREAD, line=-40.0, payout=18.33)])
    ledger.place_bets(bob, [_priced(10, bet_type=BetType.TOTAL, selection="under", line=215.0, payout=19.09)])

    results = results_from_matchups(FINAL_MATCHUPS, week=10, league_id=LEAGUE_ID)
    summary = ledger.settle(results)

    # 130.5 - 101.2: moneyline wins, -40 spread loses, 231.7 total goes over
    assert (summary.won, summary.lost, summary.pushed) == (1, 2, 0)
    assert summary.total_credited == pytest.approx(19.09)
    assert ledger.get_balance(alice) == pytest.approx(99.09)
    assert ledger.get_balance(bob) == 90

    again = ledger.settle(results)
    assert again.settled == 0
    assert ledger.get_balance(alice) == pytest.approx(99.09)


def test_settled_since_includes_owner(ledger, make_user):
    user_id = make_user(roster_id=3)
    [bet] = ledger.place_bets(user_id, [_priced(10, payout=19)]).bets
    ledger.settle_bet(bet.id, BetStatus.WON)

    since = utc_now() - timedelta(days=7)
    [view] = ledger.get_settled_since(LEAGUE_ID, since)
    assert view.roster_id == 3
    assert view.team_name == "Team 3"
    assert ledger.get_settled_since("other-league", since) == []


def test_results_skip_unplayed_and_byes():
    matchups = [
        {"roster_id": 1, "matchup_id": 1, "points": 0},
        {"roster_id": 2, "matchup_id": 1, "points": 0},
        {"roster_id": 3, "matchup_id": 2, "points": 99.5},
        {"roster_id": 4, "matchup_id": 2, "points": 88.0},
        {"roster_id": 5, "matchup_id": None, "points": 120.0},
    ]
    [result] = results_from_matchups(matchups, week=10, league_id=LEAGUE_ID)
    assert result.matchup_id == f"{LEAGUE_ID}:10:2"
    assert result.scores == {"3": 99.5, "4": 88.0}


def test_grade_bet():
    result = MatchupResult("m", {"1": 110.0, "2": 100.0})

    assert grade_bet(BetType.MONEYLINE, "1", None, result) == BetStatus.WON
    assert grade_bet(BetType.MONEYLINE, "2", None, result) == BetStatus.LOST
    assert grade_bet(BetType.SPREAD, "1", -10.0, result) == BetStatus.PUSH
    assert grade_bet(BetType.SPREAD, "2", 10.5, result) == BetStatus.WON
    assert grade_bet(BetType.TOTAL, "over", 210.0, result) == BetStatus.PUSH
    assert grade_bet(BetType.TOTAL, "under", 215.5, result) == BetStatus.WON
    assert grade_bet(BetType.MONEYLINE, "9", None, result) is None


def test_tied_moneyline_pushes():
    result = MatchupResult("m", {"3": 110.0, "4": 110.0})
    assert grade_bet(BetType.MONEYLINE, "3", None, result) == BetStatus.PUSH
