"""
core/clock.py -- Injectable time source.

Lockout expiry, token issue/expiry and password-change stamps all read the
current time through a Clock so tests can pin it to an exact instant and step
across the boundaries (locked_until - 1s, locked_until + 1s, exp + 1s).

All datetimes are timezone-aware UTC.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """A clock that only moves when told to.

    Usage:
        clock = FixedClock(datetime(2026, 1, 1, tzinfo=timezone.utc))
        clock.advance(seconds=30)
    """

    def __init__(self, start: datetime | None = None) -> None:
        start = start or datetime.now(timezone.utc)
        if start.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self._now = start

    def now(self) -> datetime:
        return self._now

    def set(self, when: datetime) -> None:
        self._now = when

    def advance(self, **delta: float) -> datetime:
        """Move forward by a timedelta expressed as keyword args (seconds=, hours=, ...)."""
        self._now = self._now + timedelta(**delta)
        return self._now
