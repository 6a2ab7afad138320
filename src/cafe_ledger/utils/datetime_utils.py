"""Datetime utilities: UTC timestamps and the injectable ledger clock.

Batch ages and default dates depend on "today". Services never call
date.today() directly; they ask the active Clock, which tests can freeze.

Usage:
    from cafe_ledger.utils.datetime_utils import get_clock, set_clock, FixedClock

    today = get_clock().today()

    # In tests
    set_clock(FixedClock(date(2025, 3, 10)))
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime.

    Used for SQLAlchemy Column defaults (created_at/updated_at).
    """
    return datetime.now(timezone.utc)


class Clock:
    """Source of the current date and time for ledger operations."""

    def now(self) -> datetime:
        raise NotImplementedError

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall clock in local time (batch dates follow the cafe's calendar day)."""

    def now(self) -> datetime:
        return datetime.now()


class FixedClock(Clock):
    """A clock frozen at a given instant.

    Args:
        moment: A date (interpreted as 09:00 that day) or a datetime
    """

    def __init__(self, moment):
        if isinstance(moment, datetime):
            self._now = moment
        else:
            self._now = datetime.combine(moment, time(hour=9))

    def now(self) -> datetime:
        return self._now

    def advance(self, days: int = 0, **kwargs) -> None:
        """Move the frozen instant forward (negative values move it back)."""
        self._now = self._now + timedelta(days=days, **kwargs)

    def __repr__(self) -> str:
        return f"FixedClock({self._now.isoformat()})"


_clock: Optional[Clock] = None


def get_clock() -> Clock:
    """Return the active clock (SystemClock unless one was installed)."""
    global _clock
    if _clock is None:
        _clock = SystemClock()
    return _clock


def set_clock(clock: Clock) -> None:
    """Install a clock for all subsequent ledger operations."""
    global _clock
    _clock = clock


def reset_clock() -> None:
    """Restore the system clock. Useful for testing."""
    global _clock
    _clock = None
