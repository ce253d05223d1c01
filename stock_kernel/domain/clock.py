"""
Injectable time source for stock changes.

Responsibility:
    Supplies ``created_at`` for ledger rows and ``updated_at`` for menu
    items.  Service and store code take a Clock in their constructor and
    never read the wall clock themselves.

Audit relevance:
    Stock history is ordered by ``created_at``.  With a deterministic clock
    that order is reproducible in tests.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

_DEFAULT_START = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware UTC timestamps."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Manually driven clock for tests.

    Guarantees:
        - ``now()`` is stable until ``advance()``, ``tick()`` or
          ``set_time()`` moves it.
        - ``tick()`` moves exactly one second forward and returns the new time.
    """

    def __init__(self, start: datetime | None = None):
        self._current = start or _DEFAULT_START

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        self.advance(1)
        return self._current


class TickingClock(DeterministicClock):
    """Deterministic clock that moves one second forward after every read.

    Each ledger row written in a test gets a distinct created_at without
    tick() calls between operations.
    """

    def now(self) -> datetime:
        current = self._current
        self.advance(1)
        return current
