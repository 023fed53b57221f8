"""Shared fixtures: league data, in-memory database, and a test API client."""

from datetime import datetime
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from api.state import AppState
from tavern.betting.lock_window import LockWindow
from tavern.config.settings import BettingSettings, SchedulerSettings, Settings
from tavern.data.sources.base import (
    DataNotAvailableError,
    DataSourceError,
    DataSourceHealth,
    DataSourceStatus,
)
from tavern.database.repository import BetRepository
from tavern.database.session import Database

LEAGUE_ID = "1180507846524702720"
ADMIN_TOKEN = "commish-token"

# Tuesday afternoon, betting open
OPEN_TIME = datetime(2025, 11, 11, 12, 0)
# Friday night, betting locked
LOCKED_TIME = datetime(2025, 11, 14, 21, 0)


def make_roster(roster_id, owner_id, wins, losses, points_for, points_against, ties=0, team_name=None):
    roster = {
        "roster_id": roster_id,
        "owner_id": owner_id,
        "settings": {
            "wins": wins,
            "losses": losses,
            "ties": ties,
            "fpts": int(points_for),
            "fpts_decimal": round((points_for - int(points_for)) * 100),
            "fpts_against": int(points_against),
            "fpts_against_decimal": round((points_against - int(points_against)) * 100),
        },
    }
    if team_name:
        roster["metadata"] = {"team_name": team_name}
    return roster


USERS = [
    {"user_id": "u1", "display_name": "alice", "metadata": {"team_name": "Alice's Aces"}},
    {"user_id": "u2", "display_name": "bob"},
    {"user_id": "u3", "display_name": "carol"},
    {"user_id": "u4", "display_name": "dave"},
]

ROSTERS = [
    make_roster(1, "u1", 8, 2, 1200.0, 1000.0),
    make_roster(2, "u2", 2, 8, 950.0, 1100.0, team_name="Bob's Busts"),
    make_roster(3, "u3", 5, 5, 1050.0, 1050.0),
    make_roster(4, "u4", 5, 5, 1050.0, 1050.0),
]

UPCOMING_WEEK = 11
UPCOMING_MATCHUPS = [
    {"roster_id": 1, "matchup_id": 1, "points": 0},
    {"roster_id": 2, "matchup_id": 1, "points": 0},
    {"roster_id": 3, "matchup_id": 2, "points": 0},
    {"roster_id": 4, "matchup_id": 2, "points": 0},
]
FINAL_MATCHUPS = [
    {"roster_id": 1, "matchup_id": 1, "points": 130.5},
    {"roster_id": 2, "matchup_id": 1, "points": 101.2},
    {"roster_id": 3, "matchup_id": 2, "points": 110.0},
    {"roster_id": 4, "matchup_id": 2, "points": 110.0},
]


class FakeSleeper:
    """In-memory stand-in for SleeperClient."""

    def __init__(self):
        self.week = UPCOMING_WEEK
        self.users = list(USERS)
        self.rosters = list(ROSTERS)
        self.matchups = {UPCOMING_WEEK: list(UPCOMING_MATCHUPS)}
        self.leagues = {LEAGUE_ID: {"league_id": LEAGUE_ID, "name": "Tavern League"}}
        self.fail = False
        self.closed = False

    def _check(self):
        if self.fail:
            raise DataSourceError("Sleeper is down", "sleeper", retry_allowed=False)

    async def get_state(self, use_cache: bool = True) -> dict:
        self._check()
        return {"week": self.week, "season": "2025"}

    async def get_current_week(self) -> int:
        if self.fail:
            return 1
        return self.week

    async def get_league(self, league_id: Optional[str] = None) -> dict:
        self._check()
        league = self.leagues.get(league_id or LEAGUE_ID)
        if league is None:
            raise DataNotAvailableError("sleeper", f"Unknown league: {league_id}")
        return league

    async def get_users(self, league_id: Optional[str] = None) -> list:
        self._check()
        return self.users

    async def get_rosters(self, league_id: Optional[str] = None) -> list:
        self._check()
        return self.rosters

    async def get_matchups(self, week, league_id=None, use_cache=True) -> list:
        self._check()
        return self.matchups.get(week, [])

    async def health_check(self) -> DataSourceHealth:
        return self.get_health()

    def get_health(self) -> DataSourceHealth:
        return DataSourceHealth(source_name="sleeper", status=DataSourceStatus.HEALTHY)

    async def close(self) -> None:
        self.closed = True


class FrozenLockWindow(LockWindow):
    """Lock window whose clock is pinned unless an instant is passed in."""

    def __init__(self, frozen: datetime, **kwargs):
        super().__init__(**kwargs)
        self.frozen = frozen

    def localize(self, now: Optional[datetime] = None) -> datetime:
        return super().localize(now or self.frozen)


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def make_user(database):
    """Create a league member and return their user id."""

    def _make_user(roster_id: int = 1, balance: float = 100.0, league_id: str = LEAGUE_ID) -> int:
        with database.session_scope() as session:
            user = BetRepository(session).upsert_user(
                league_id=league_id,
                roster_id=roster_id,
                team_name=f"Team {roster_id}",
                owner_name=f"Owner {roster_id}",
                default_balance=balance,
            )
            return user.id

    return _make_user


@pytest.fixture
def open_window():
    return FrozenLockWindow(OPEN_TIME)


@pytest.fixture
def sleeper():
    return FakeSleeper()


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        betting=BettingSettings(admin_token=ADMIN_TOKEN),
        scheduler=SchedulerSettings(scheduler_enabled=False),
    )


@pytest.fixture
def app_state(settings, database, sleeper, open_window):
    return AppState(
        settings=settings,
        database=database,
        sleeper=sleeper,
        lock_window=open_window,
    )


@pytest.fixture
def client(app_state):
    with TestClient(create_app(app_state)) as test_client:
        yield test_client


@pytest.fixture
def sign_in(client):
    """Sign a Sleeper user in and return auth headers."""

    def _sign_in(username: str = "alice") -> dict:
        response = client.post("/api/auth/signin", json={"sleeper_username": username})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _sign_in


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
