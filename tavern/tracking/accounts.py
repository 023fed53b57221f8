"""
League members and sign-in.

Users are synced from the league's Sleeper users and rosters, one per
roster. Signing in matches a Sleeper username against the league and issues
an opaque session token that authenticates later requests.
"""
import secrets
from dataclasses import dataclass
from typing import Iterable, Optional

from loguru import logger

from tavern.betting.errors import WagerError
from tavern.betting.line_generator import team_display_name
from tavern.database.models import utc_now
from tavern.database.repository import BetRepository
from tavern.database.session import Database


class SignInError(WagerError):
    """Username does not belong to any roster in the league."""

    code = "sign_in_failed"
    status_code = 404


@dataclass
class Member:
    """Detached view of a league member."""

    id: int
    league_id: str
    roster_id: int
    team_name: str
    owner_name: str
    sleeper_username: Optional[str]
    faab_balance: float

    @classmethod
    def from_model(cls, user) -> "Member":
        return cls(
            id=user.id,
            league_id=user.league_id,
            roster_id=user.roster_id,
            team_name=user.team_name,
            owner_name=user.owner_name,
            sleeper_username=user.sleeper_username,
            faab_balance=user.faab_balance,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "roster_id": self.roster_id,
            "team_name": self.team_name,
            "owner_name": self.owner_name,
            "sleeper_username": self.sleeper_username,
            "faab_balance": self.faab_balance,
        }


def _matches(user: dict, username: str) -> bool:
    wanted = username.strip().lower()
    return any(
        (user.get(field) or "").lower() == wanted
        for field in ("username", "display_name")
    )


class AccountService:
    """
    Keeps the users table in step with the league and hands out sessions.

    Example:
        >>> accounts = AccountService(database, default_balance=100.0)
        >>> accounts.sync_members(league_id, users, rosters)
        >>> member, token = accounts.sign_in(league_id, "sleeperfan", users, rosters)
    """

    def __init__(self, database: Database, default_balance: float = 100.0):
        self.database = database
        self.default_balance = default_balance

    def sync_members(
        self,
        league_id: str,
        users: Iterable[dict],
        rosters: Iterable[dict],
    ) -> list[Member]:
        """
        Create a user for every roster, refreshing names on existing ones.

        New users start with the default FAAB balance; existing balances are
        never touched.
        """
        users_by_id = {u.get("user_id"): u for u in users or []}

        with self.database.session_scope() as session:
            repo = BetRepository(session)
            members = []
            for roster in rosters or []:
                roster_id = roster.get("roster_id")
                if roster_id is None:
                    continue
                owner = users_by_id.get(roster.get("owner_id")) or {}
                user = repo.upsert_user(
                    league_id=league_id,
                    roster_id=int(roster_id),
                    team_name=team_display_name(roster, owner),
                    owner_name=owner.get("display_name") or f"Owner {roster_id}",
                    default_balance=self.default_balance,
                    sleeper_user_id=owner.get("user_id"),
                    sleeper_username=owner.get("username") or owner.get("display_name"),
                )
                members.append(Member.from_model(user))

        logger.info(f"Synced {len(members)} members for league {league_id}")
        return members

    def sign_in(
        self,
        league_id: str,
        username: str,
        users: Iterable[dict],
        rosters: Iterable[dict],
    ) -> tuple[Member, str]:
        """
        Sign a league member in by Sleeper username.

        Returns:
            The member and a fresh session token

        Raises:
            SignInError: username not in the league or owns no roster
        """
        users = list(users or [])
        rosters = list(rosters or [])

        sleeper_user = next((u for u in users if _matches(u, username)), None)
        if sleeper_user is None:
            raise SignInError(f"{username} is not a member of this league")

        roster = next(
            (r for r in rosters if r.get("owner_id") == sleeper_user.get("user_id")),
            None,
        )
        if roster is None:
            raise SignInError(f"{username} does not own a roster in this league")

        self.sync_members(league_id, users, rosters)

        token = secrets.token_urlsafe(32)
        with self.database.session_scope() as session:
            repo = BetRepository(session)
            user = repo.get_user_by_roster(league_id, int(roster["roster_id"]))
            user.session_token = token
            user.last_seen = utc_now()
            session.flush()
            member = Member.from_model(user)

        logger.info(f"Roster {member.roster_id} signed in to league {league_id}")
        return member, token

    def authenticate(self, token: str, league_id: Optional[str] = None) -> Optional[Member]:
        """Member for a session token, or None; a token is bound to its league."""
        if not token:
            return None
        with self.database.session_scope() as session:
            user = BetRepository(session).get_user_by_token(token)
            if user is None or (league_id is not None and user.league_id != league_id):
                return None
            return Member.from_model(user)

    def list_members(self, league_id: str) -> list[Member]:
        with self.database.session_scope() as session:
            return [Member.from_model(u) for u in BetRepository(session).list_users(league_id)]
