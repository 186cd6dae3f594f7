"""
Clock -- Injectable time abstraction.

Responsibility:
    Stats stores and the orchestrator stamp ``last_run`` and compute record
    expiry from an injected clock, never from ``datetime.now()`` directly.

Architecture position:
    Kernel > Domain -- zero I/O except SystemClock.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        - ``now()`` returns a timezone-aware UTC ``datetime``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    def expires_at(self, ttl: timedelta) -> datetime:
        """Moment a record written now stops being valid."""
        return self.now() + ttl

    def has_passed(self, moment: datetime) -> bool:
        """True once ``moment`` is now or in the past."""
        return self.now() >= moment


class SystemClock(Clock):
    """Production clock that returns actual system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value until ``advance()`` or ``set_time()``
    moves it, so expiry and ``last_run`` can be asserted exactly.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._now = fixed_time or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def set_time(self, time: datetime) -> None:
        self._now = time

    def advance(self, seconds: int = 0, *, days: int = 0) -> datetime:
        """Move forward and return the new time."""
        self._now += timedelta(days=days, seconds=seconds)
        return self._now
