"""
Injectable time source.

The executor stamps ``stage_entered_at`` and the SLA sweep measures time in
stage; both take a ``Clock`` instead of calling ``datetime.now()`` so that
tests can move time by hand.  ``SystemClock`` is the only place the
engine reads the real time.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """A clock that only moves when told to.

    Naive start times are taken as UTC.
    """

    def __init__(self, start: datetime | None = None):
        self._now = _aware(start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self._now

    def set_time(self, when: datetime) -> None:
        self._now = _aware(when)

    def advance(self, seconds: float = 0, *, hours: float = 0) -> datetime:
        """Move forward and return the new time."""
        self._now += timedelta(seconds=seconds, hours=hours)
        return self._now


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
