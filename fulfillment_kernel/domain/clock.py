"""
Clock -- injectable time source.

Responsibility:
    Services stamp assignment, response and item-update times through a
    Clock so that tests can pin and advance time instead of sleeping.

Architecture position:
    Kernel > Domain.  SystemClock is the only class here that touches the
    real wall clock.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        ``now()`` returns a timezone-aware UTC ``datetime``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...


class SystemClock(Clock):
    """Production clock that returns actual system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value on repeated calls until ``advance()``
    moves it.  Safe to share between threads for reads; tests advance it
    from the main thread only.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._advance_seconds = 0

    def now(self) -> datetime:
        return self._fixed_time + timedelta(seconds=self._advance_seconds)

    def advance(self, seconds: int = 1) -> None:
        self._advance_seconds += seconds
