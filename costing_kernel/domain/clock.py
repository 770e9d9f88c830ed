"""
Injectable time source.

Services stamp ledger entries, sale dates and production dates from a
Clock rather than the system time, so tests can pin them.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

DEFAULT_TEST_EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """``now()`` is timezone-aware UTC; ``today()`` is its calendar date."""

    @abstractmethod
    def now(self) -> datetime: ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Repeated ``now()`` calls return the same instant, so several ledger
    entries written in one transaction share a timestamp unless the test
    calls ``tick()`` between them.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or DEFAULT_TEST_EPOCH

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: float | timedelta = 1) -> None:
        if not isinstance(seconds, timedelta):
            seconds = timedelta(seconds=seconds)
        self._current += seconds

    def tick(self) -> datetime:
        """Move forward one second and return the new instant."""
        self.advance(1)
        return self._current
