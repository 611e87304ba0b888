"""Current-time providers injected into evaluation and scoring code."""

from datetime import datetime, timedelta, timezone
from typing import Protocol, runtime_checkable

from attrs import define, field
from beartype import beartype


@runtime_checkable
class Clock(Protocol):
    """Anything that can tell the current UTC time."""

    def now(self) -> datetime:
        """Return the current timezone-aware time."""
        ...


@define(frozen=True, slots=True)
class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


@define(slots=True)
class FixedClock:
    """Settable clock for deterministic evaluation and tests."""

    current: datetime = field()

    @current.validator
    def _check_aware(self, attribute: object, value: datetime) -> None:
        if value.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")

    def now(self) -> datetime:
        return self.current

    @beartype
    def set(self, value: datetime) -> None:
        """Move the clock to an absolute time."""
        if value.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self.current = value

    @beartype
    def advance(self, delta: timedelta) -> None:
        """Move the clock forward by ``delta``."""
        self.current = self.current + delta
