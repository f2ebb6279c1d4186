"""
Clock -- injectable time source.

Every timestamp the pipeline records comes from a Clock: task start and
completion times, retry deadlines, attempt timeouts, ETA, the
``processed_at`` of a conversion and the ``<lastmod>`` date of a sitemap
index.  Nothing else calls ``datetime.now()`` or ``date.today()``.

SystemClock is the only implementation that reads the real time.  Tests
use DeterministicClock, which the scheduler's worker threads may read while
the test thread advances it.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

_DEFAULT_START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """
    Abstract clock.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime``.
        - ``today()`` is the UTC calendar date of ``now()``.
    """

    @abstractmethod
    def now(self) -> datetime: ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)

    def today(self) -> date:
        return self.now_utc().date()


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock that only moves when told to.

    ``advance()`` and ``set_time()`` are safe to call from a test thread
    while scheduler threads call ``now()``.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or _DEFAULT_START
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._current

    def set_time(self, time: datetime) -> None:
        with self._lock:
            self._current = time

    def advance(self, seconds: float = 1) -> None:
        """Move the clock forward by ``seconds``."""
        with self._lock:
            self._current = self._current + timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Advance by one second and return the new time."""
        self.advance(1)
        return self.now()


class SequentialClock(Clock):
    """
    Clock that moves forward a fixed step on every read.

    The first call returns ``start``; each later call returns the previous
    value plus ``step``.  Useful where every recorded timestamp must differ,
    for example per-task durations in progress and ETA calculations.
    """

    def __init__(self, start: datetime | None = None, step: timedelta | float = 1.0):
        if not isinstance(step, timedelta):
            step = timedelta(seconds=step)
        if step <= timedelta(0):
            raise ValueError("SequentialClock step must be positive")
        self._next = start or _DEFAULT_START
        self._step = step
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            current = self._next
            self._next = current + self._step
            return current
