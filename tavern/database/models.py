"""
SQLAlchemy ORM models for the league betting service.

Defines database schema for leagues, users with FAAB balances, bets, and the
transaction audit trail.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from tavern.config.constants import BetStatus, BetType, TransactionType


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class League(Base):
    """A league site, reachable on its own subdomain."""

    __tablename__ = "leagues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subdomain: Mapped[str] = mapped_column(String(63), unique=True, nullable=False)
    sleeper_league_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    commissioner_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


class User(Base):
    """A league member (one per roster) and their FAAB betting balance."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    league_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    roster_id: Mapped[int] = mapped_column(Integer, nullable=False)

    sleeper_user_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    sleeper_username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    team_name: Mapped[str] = mapped_column(String(100), nullable=False)
    owner_name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Never negative: debits go through a conditional decrement
    faab_balance: Mapped[float] = mapped_column(Float, nullable=False, default=100.0)

    session_token: Mapped[Optional[str]] = mapped_column(
        String(64), unique=True, nullable=True
    )
    last_seen: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    bets: Mapped[list["Bet"]] = relationship(back_populates="user")

    __table_args__ = (UniqueConstraint("league_id", "roster_id", name="uq_users_league_roster"),)


class Bet(Base):
    """A wager. Only status, actual_payout and settled_at change after creation."""

    __tablename__ = "bets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    league_id: Mapped[str] = mapped_column(String(32), nullable=False)
    matchup_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    week: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    bet_type: Mapped[BetType] = mapped_column(Enum(BetType), nullable=False)
    selection: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    stake: Mapped[float] = mapped_column(Float, nullable=False)
    odds: Mapped[int] = mapped_column(Integer, nullable=False)  # American odds
    line: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    potential_payout: Mapped[float] = mapped_column(Float, nullable=False)

    status: Mapped[BetStatus] = mapped_column(
        Enum(BetStatus), default=BetStatus.PENDING, nullable=False
    )
    actual_payout: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    placed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    settled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped["User"] = relationship(back_populates="bets")

    __table_args__ = (
        Index("ix_bets_matchup_status", "matchup_id", "status"),
        Index("ix_bets_settled_at", "settled_at"),
    )


class Transaction(Base):
    """Immutable audit trail for every FAAB movement."""

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    bet_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("bets.id"), nullable=True
    )
    type: Mapped[TransactionType] = mapped_column(Enum(TransactionType), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)  # negative = debit
    balance_after: Mapped[float] = mapped_column(Float, nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False, index=True
    )
