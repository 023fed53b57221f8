"""Tests for member sync and sign-in."""

import pytest

from tavern.database.repository import BetRepository
from tavern.tracking.accounts import AccountService, SignInError
from tavern.tracking.ledger import WagerLedger

from conftest import LEAGUE_ID, ROSTERS, USERS


@pytest.fixture
def accounts(database):
    return AccountService(database, default_balance=100.0)


def test_sync_creates_one_member_per_roster(accounts):
    members = accounts.sync_members(LEAGUE_ID, USERS, ROSTERS)

    assert [m.roster_id for m in members] == [1, 2, 3, 4]
    assert members[0].team_name == "Alice's Aces"
    assert members[2].team_name == "carol"
    assert all(m.faab_balance == 100.0 for m in members)


def test_resync_keeps_balances(accounts, database):
    [alice, *_] = accounts.sync_members(LEAGUE_ID, USERS, ROSTERS)
    with database.session_scope() as session:
        BetRepository(session).credit(alice.id, 25)

    accounts.sync_members(LEAGUE_ID, USERS, ROSTERS)
    assert WagerLedger(database).get_balance(alice.id) == 125
    assert len(accounts.list_members(LEAGUE_ID)) == 4


def test_sign_in_issues_token(accounts):
    member, token = accounts.sign_in(LEAGUE_ID, "BOB", USERS, ROSTERS)

    assert member.roster_id == 2
    assert accounts.authenticate(token).id == member.id
    assert accounts.authenticate(token, LEAGUE_ID).id == member.id
    assert accounts.authenticate(token, "other-league") is None
    assert accounts.authenticate("") is None


def test_new_sign_in_replaces_token(accounts):
    _, first = accounts.sign_in(LEAGUE_ID, "alice", USERS, ROSTERS)
    _, second = accounts.sign_in(LEAGUE_ID, "alice", USERS, ROSTERS)

    assert first != second
    assert accounts.authenticate(first) is None
    assert accounts.authenticate(second) is not None


def test_sign_in_requires_membership(accounts):
    with pytest.raises(SignInError):
        accounts.sign_in(LEAGUE_ID, "mallory", USERS, ROSTERS)


def test_sign_in_requires_roster(accounts):
    users = USERS + [{"user_id": "u9", "display_name": "spectator"}]
    with pytest.raises(SignInError):
        accounts.sign_in(LEAGUE_ID, "spectator", users, ROSTERS)
