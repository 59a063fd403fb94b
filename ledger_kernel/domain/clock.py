"""
Injectable time source.

Services take a Clock instead of calling ``datetime.now()``: posting and
cancellation timestamps, audit timestamps and the "has this financial year
ended?" check during activation all go through it.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta, timezone


class Clock(ABC):
    """``now()`` is timezone-aware UTC; ``today()`` is its UTC date."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().astimezone(timezone.utc).date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    A clock that only moves when told to.

    Starts at 2024-01-01 12:00 UTC unless given a start instant.
    """

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2024, 1, 1, 12, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def set_time(self, instant: datetime) -> None:
        self._now = instant

    def set_date(self, day: date) -> None:
        """Noon UTC on ``day``, so today() is ``day`` in every test."""
        self._now = datetime.combine(day, time(12), tzinfo=timezone.utc)

    def advance(self, seconds: float = 1) -> None:
        self._now += timedelta(seconds=seconds)
