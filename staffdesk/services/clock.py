from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Source of the current time for date-sensitive guards."""

    def now(self) -> datetime:
        """Return the current aware UTC datetime."""
        ...

    def today(self) -> date:
        """Return the current calendar date."""
        ...


class SystemClock:
    """Wall-clock implementation."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """Clock pinned to a given instant, for tests and backfills."""

    def __init__(self, instant: datetime) -> None:
        self._instant = instant if instant.tzinfo is not None else instant.replace(tzinfo=UTC)

    def now(self) -> datetime:
        return self._instant

    def today(self) -> date:
        return self._instant.date()

    def advance(self, **kwargs: float) -> None:
        """Move the clock forward by a ``timedelta(**kwargs)``."""
        self._instant += timedelta(**kwargs)


_clock: Clock = SystemClock()


def get_clock() -> Clock:
    """FastAPI dependency for the clock."""
    return _clock
