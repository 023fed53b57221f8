"""Tests for the weekly betting lock window."""

from datetime import datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest

from tavern.betting.lock_window import LockWindow, is_locked

EASTERN = ZoneInfo("America/New_York")


@pytest.mark.parametrize(
    "instant, locked",
    [
        (datetime(2025, 11, 11, 12, 0), False),  # Tuesday
        (datetime(2025, 11, 13, 20, 19), False),  # Thursday before kickoff
        (datetime(2025, 11, 13, 20, 20), True),  # Thursday at kickoff
        (datetime(2025, 11, 13, 20, 21), True),
        (datetime(2025, 11, 14, 9, 0), True),  # Friday
        (datetime(2025, 11, 16, 23, 59), True),  # Sunday night
        (datetime(2025, 11, 17, 0, 0), False),  # Monday reopen
    ],
)
def test_is_locked(instant, locked):
    assert LockWindow().is_locked(instant) is locked


def test_aware_instants_are_converted():
    # 01:21 UTC Friday is 20:21 Thursday Eastern
    assert LockWindow().is_locked(datetime(2025, 11, 14, 1, 21, tzinfo=timezone.utc))
    assert not LockWindow().is_locked(datetime(2025, 11, 14, 1, 19, tzinfo=timezone.utc))


def test_next_change_while_open_is_the_lock():
    change = LockWindow().next_change(datetime(2025, 11, 11, 12, 0))
    assert change == datetime(2025, 11, 13, 20, 20, tzinfo=EASTERN)


def test_next_change_while_locked_is_monday():
    change = LockWindow().next_change(datetime(2025, 11, 15, 12, 0))
    assert change == datetime(2025, 11, 17, 0, 0, tzinfo=EASTERN)


def test_status_names_the_next_change():
    window = LockWindow()
    assert "locks_at" in window.status(datetime(2025, 11, 11, 12, 0))
    locked = window.status(datetime(2025, 11, 15, 12, 0))
    assert locked["locked"] is True
    assert locked["reopens_at"].startswith("2025-11-17T00:00:00")


def test_custom_window():
    window = LockWindow(timezone="America/Chicago", lock_weekday=6, lock_time=time(12, 0))
    assert not window.is_locked(datetime(2025, 11, 14, 21, 0))
    assert window.is_locked(datetime(2025, 11, 16, 12, 0))


def test_same_lock_and_reopen_day_rejected():
    with pytest.raises(ValueError):
        LockWindow(lock_weekday=0, reopen_weekday=0)


def test_module_helper():
    assert is_locked(datetime(2025, 11, 14, 9, 0))
