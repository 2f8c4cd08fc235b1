"""
Clock -- injectable source of "now" and "today".

Services never call ``datetime.now()`` or ``date.today()``.  The
auto-approval sweep decides which drafts are due from ``Clock.today()``,
and approved_at, completed_at and updated_at stamps come from
``Clock.now()``, so tests can pin both.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta, timezone

_NOON = time(12, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """``now()`` is timezone-aware UTC; ``today()`` is its calendar date."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Starts at 2024-01-01 12:00 UTC unless given another instant.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._now = fixed_time or datetime.combine(date(2024, 1, 1), _NOON)

    def now(self) -> datetime:
        return self._now

    def set_time(self, instant: datetime) -> None:
        self._now = instant

    def set_date(self, day: date) -> None:
        """Jump to noon UTC on ``day``."""
        self._now = datetime.combine(day, _NOON)

    def advance(self, seconds: int = 1) -> None:
        self._now += timedelta(seconds=seconds)
