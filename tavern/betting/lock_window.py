"""
Weekly lock window for new wagers.

Lines open Monday at midnight and lock at the Thursday night kickoff
(20:20 US Eastern by default), staying locked through Sunday. The policy is
a pure function of the instant it is asked about; callers must evaluate it at
submission time rather than caching the answer.
"""
from datetime import datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from tavern.config.settings import BettingSettings


class LockWindow:
    """
    Decides whether new bets are accepted at a given instant.

    Example:
        >>> window = LockWindow("America/New_York")
        >>> window.is_locked(datetime(2025, 9, 11, 20, 21))  # Thursday
        True
    """

    def __init__(
        self,
        timezone: str = "America/New_York",
        lock_weekday: int = 3,
        lock_time: time = time(20, 20),
        reopen_weekday: int = 0,
    ):
        """
        Initialize the lock window.

        Args:
            timezone: IANA zone the weekday and times are expressed in
            lock_weekday: Weekday betting locks (Monday=0)
            lock_time: Local time betting locks on lock_weekday
            reopen_weekday: Weekday betting reopens at 00:00
        """
        if lock_weekday == reopen_weekday:
            raise ValueError("Lock and reopen weekday must differ")

        self.tz = ZoneInfo(timezone)
        self.lock_weekday = lock_weekday
        self.lock_time = lock_time
        self.reopen_weekday = reopen_weekday

    @classmethod
    def from_settings(cls, settings: BettingSettings) -> "LockWindow":
        return cls(
            timezone=settings.timezone,
            lock_weekday=settings.lock_weekday,
            lock_time=settings.lock_time,
            reopen_weekday=settings.reopen_weekday,
        )

    def localize(self, now: Optional[datetime] = None) -> datetime:
        """Express an instant in the reference zone; naive values are taken as local."""
        if now is None:
            return datetime.now(self.tz)
        if now.tzinfo is None:
            return now.replace(tzinfo=self.tz)
        return now.astimezone(self.tz)

    def _week_offset(self, local: datetime) -> timedelta:
        """Time elapsed since the most recent reopen (Monday 00:00 by default)."""
        days = (local.weekday() - self.reopen_weekday) % 7
        return timedelta(
            days=days,
            hours=local.hour,
            minutes=local.minute,
            seconds=local.second,
            microseconds=local.microsecond,
        )

    @property
    def _lock_offset(self) -> timedelta:
        days = (self.lock_weekday - self.reopen_weekday) % 7
        return timedelta(
            days=days,
            hours=self.lock_time.hour,
            minutes=self.lock_time.minute,
            seconds=self.lock_time.second,
        )

    def is_locked(self, now: Optional[datetime] = None) -> bool:
        """
        Check whether wagers are rejected at an instant.

        Args:
            now: Instant to evaluate (defaults to the current time)

        Returns:
            True between the weekly lock and the next reopen
        """
        local = self.localize(now)
        return self._week_offset(local) >= self._lock_offset

    def next_change(self, now: Optional[datetime] = None) -> datetime:
        """
        When the window next flips state.

        Returns the upcoming lock time while open, or the upcoming reopen
        while locked, in the reference zone.
        """
        local = self.localize(now)
        offset = self._week_offset(local)
        week_start = (local - offset).replace(tzinfo=None)

        if offset >= self._lock_offset:
            target = week_start + timedelta(days=7)
        else:
            target = week_start + self._lock_offset

        return target.replace(tzinfo=self.tz)

    def status(self, now: Optional[datetime] = None) -> dict:
        """Serializable summary for API responses."""
        locked = self.is_locked(now)
        return {
            "locked": locked,
            "timezone": str(self.tz),
            "reopens_at" if locked else "locks_at": self.next_change(now).isoformat(),
        }


def is_locked(now: Optional[datetime] = None, timezone: str = "America/New_York") -> bool:
    """Check the default Thursday-night lock window."""
    return LockWindow(timezone).is_locked(now)
