"""
Clock -- injectable time source for the workflow kernel.

Responsibility:
    Gives the approval engine and compliance monitor a single place to ask
    "what time is it".  Services receive a Clock through their constructor;
    no domain or service code calls ``datetime.now()`` or ``date.today()``.

Architecture position:
    Kernel > Domain -- pure functional core.  ``SystemClock`` is the one
    sanctioned I/O boundary for time.

Failure modes:
    - ``DeterministicClock`` rejects naive datetimes (ValueError) so that
      deadline comparisons never mix naive and aware values.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        - ``now()`` returns a timezone-aware UTC ``datetime``.
        - ``today()`` is the UTC calendar date of ``now()``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    def today(self) -> date:
        """Get the current UTC calendar date."""
        return self.now().astimezone(timezone.utc).date()


class SystemClock(Clock):
    """Production clock backed by the wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until
          ``advance()``, ``tick()`` or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        """
        Args:
            fixed_time: Starting instant.  Defaults to 2024-01-01T00:00:00Z.
        """
        self._fixed_time = _require_aware(
            fixed_time or datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
        )
        self._offset = timedelta(0)

    def now(self) -> datetime:
        return self._fixed_time + self._offset

    def set_time(self, time: datetime) -> None:
        """Jump the clock to a specific instant."""
        self._fixed_time = _require_aware(time)
        self._offset = timedelta(0)

    def advance(self, seconds: float = 0, **delta: float) -> None:
        """Move the clock forward by ``seconds`` plus any timedelta kwargs.

        ``clock.advance(hours=25)`` and ``clock.advance(90)`` both work.
        """
        self._offset += timedelta(seconds=seconds, **delta)

    def tick(self) -> datetime:
        """Advance by 1 second and return the new time."""
        self.advance(1)
        return self.now()


def _require_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise ValueError("DeterministicClock requires a timezone-aware datetime")
    return value.astimezone(timezone.utc)
