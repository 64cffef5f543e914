"""Time sources injected into review sessions."""

from datetime import datetime, timedelta
from typing import Protocol

from recallkit.core.models import as_utc, utcnow


class Clock(Protocol):
    """Anything that can tell the current time."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return utcnow()


class FixedClock:
    """A clock that only moves when told to.

    Used by tests and simulations to control time deterministically.
    """

    def __init__(self, start: datetime):
        self._now = as_utc(start)

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = as_utc(value)

    def advance(self, **kwargs: float) -> datetime:
        """Move forward by a ``timedelta(**kwargs)`` and return the new time."""
        delta = timedelta(**kwargs)
        if delta < timedelta(0):
            raise ValueError("FixedClock cannot move backwards")
        self._now = self._now + delta
        return self._now
