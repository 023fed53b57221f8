"""
Storage operations used by the wager ledger.

Every method works inside a caller-supplied Session so the ledger decides
transaction boundaries. Balance changes are single UPDATE statements with
the guard in the WHERE clause, which serialises concurrent writers on the
user row instead of reading, checking, and writing back.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import Numeric, cast, func, select, update
from sqlalchemy.orm import Session

from tavern.betting.errors import UserNotFoundError
from tavern.config.constants import BetStatus, TransactionType
from tavern.database.models import Bet, League, Transaction, User, utc_now


def _to_cents(expression):
    """Round a money expression to whole cents in SQL."""
    return func.round(cast(expression, Numeric(12, 2, asdecimal=False)), 2)


class BetRepository:
    """
    Handles reads and writes against users, bets, and transactions.
    """

    def __init__(self, session: Session):
        self.session = session

    # =========================================================================
    # USERS AND BALANCES
    # =========================================================================
    def get_user(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_user_by_token(self, token: str) -> Optional[User]:
        return self.session.scalar(select(User).where(User.session_token == token))

    def get_user_by_roster(self, league_id: str, roster_id: int) -> Optional[User]:
        return self.session.scalar(
            select(User).where(User.league_id == league_id, User.roster_id == roster_id)
        )

    def list_users(self, league_id: str) -> list[User]:
        return list(
            self.session.scalars(
                select(User).where(User.league_id == league_id).order_by(User.roster_id)
            )
        )

    def upsert_user(
        self,
        league_id: str,
        roster_id: int,
        team_name: str,
        owner_name: str,
        default_balance: float,
        sleeper_user_id: Optional[str] = None,
        sleeper_username: Optional[str] = None,
    ) -> User:
        """Create a league member or refresh their names; balance is left alone."""
        user = self.get_user_by_roster(league_id, roster_id)
        if user is None:
            user = User(
                league_id=league_id,
                roster_id=roster_id,
                team_name=team_name,
                owner_name=owner_name,
                faab_balance=default_balance,
                sleeper_user_id=sleeper_user_id,
                sleeper_username=sleeper_username,
            )
            self.session.add(user)
        else:
            user.team_name = team_name
            user.owner_name = owner_name
            user.sleeper_user_id = sleeper_user_id or user.sleeper_user_id
            user.sleeper_username = sleeper_username or user.sleeper_username
        self.session.flush()
        return user

    def get_balance(self, user_id: int) -> float:
        """Read the balance straight from the database, bypassing the identity map."""
        balance = self.session.scalar(select(User.faab_balance).where(User.id == user_id))
        if balance is None:
            raise UserNotFoundError(user_id)
        return round(float(balance), 2)

    def debit_if_sufficient(self, user_id: int, amount: float) -> bool:
        """
        Atomically subtract amount when the balance covers it.

        Both sides of the guard are compared in whole cents, so a stake equal
        to the displayed balance always clears.

        Returns:
            True if the row was debited, False if funds were insufficient
        """
        result = self.session.execute(
            update(User)
            .where(User.id == user_id, _to_cents(User.faab_balance) >= round(amount, 2))
            .values(faab_balance=_to_cents(User.faab_balance - amount))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def credit(self, user_id: int, amount: float) -> float:
        """Add amount to the balance and return the new balance."""
        result = self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(faab_balance=_to_cents(User.faab_balance + amount))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise UserNotFoundError(user_id)
        return self.get_balance(user_id)

    # =========================================================================
    # BETS
    # =========================================================================
    def create_bet(self, bet: Bet) -> Bet:
        self.session.add(bet)
        self.session.flush()
        return bet

    def get_bet(self, bet_id: int) -> Optional[Bet]:
        return self.session.get(Bet, bet_id)

    def list_bets_by_user(self, user_id: int) -> list[Bet]:
        return list(
            self.session.scalars(
                select(Bet)
                .where(Bet.user_id == user_id)
                .order_by(Bet.placed_at.desc(), Bet.id.desc())
            )
        )

    def list_pending_bets_by_matchup(self, matchup_id: str) -> list[Bet]:
        return list(
            self.session.scalars(
                select(Bet)
                .where(Bet.matchup_id == matchup_id, Bet.status == BetStatus.PENDING)
                .order_by(Bet.id)
            )
        )

    def mark_settled_if_pending(
        self,
        bet_id: int,
        status: BetStatus,
        actual_payout: float,
        settled_at: datetime,
    ) -> bool:
        """
        Move a bet from PENDING to a terminal status.

        Returns:
            True if this call settled the bet, False if it was already settled
        """
        result = self.session.execute(
            update(Bet)
            .where(Bet.id == bet_id, Bet.status == BetStatus.PENDING)
            .values(status=status, actual_payout=actual_payout, settled_at=settled_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def settled_bets_since(self, league_id: str, since: datetime) -> list[Bet]:
        return list(
            self.session.scalars(
                select(Bet)
                .where(
                    Bet.league_id == league_id,
                    Bet.status != BetStatus.PENDING,
                    Bet.settled_at >= since,
                )
                .order_by(Bet.settled_at)
            )
        )

    # =========================================================================
    # AUDIT TRAIL
    # =========================================================================
    def record_transaction(
        self,
        user_id: int,
        transaction_type: TransactionType,
        amount: float,
        description: str,
        bet_id: Optional[int] = None,
    ) -> Transaction:
        transaction = Transaction(
            user_id=user_id,
            bet_id=bet_id,
            type=transaction_type,
            amount=amount,
            balance_after=self.get_balance(user_id),
            description=description,
            created_at=utc_now(),
        )
        self.session.add(transaction)
        return transaction

    def list_transactions(self, user_id: int) -> list[Transaction]:
        return list(
            self.session.scalars(
                select(Transaction)
                .where(Transaction.user_id == user_id)
                .order_by(Transaction.id)
            )
        )


class LeagueRepository:
    """Lookups for league sites and their subdomains."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_subdomain(self, subdomain: str) -> Optional[League]:
        return self.session.scalar(
            select(League).where(League.subdomain == subdomain.lower())
        )

    def list_all(self) -> list[League]:
        return list(self.session.scalars(select(League).order_by(League.id)))

    def get_by_sleeper_id(self, sleeper_league_id: str) -> Optional[League]:
        return self.session.scalar(
            select(League).where(League.sleeper_league_id == sleeper_league_id)
        )

    def create(
        self,
        subdomain: str,
        sleeper_league_id: str,
        name: str,
        commissioner_email: Optional[str] = None,
    ) -> League:
        league = League(
            subdomain=subdomain.lower(),
            sleeper_league_id=sleeper_league_id,
            name=name,
            commissioner_email=commissioner_email,
            created_at=utc_now(),
        )
        self.session.add(league)
        self.session.flush()
        return league
