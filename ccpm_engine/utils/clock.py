import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone


class Clock(ABC):
    @abstractmethod
    def now_ms(self) -> int:
        """Current time in epoch milliseconds"""
        pass


class SystemClock(Clock):
    def now_ms(self) -> int:
        return int(time.time() * 1000)


class FixedClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, now_ms: int = 0):
        self._now_ms = int(now_ms)

    def now_ms(self) -> int:
        return self._now_ms

    def set(self, now_ms: int) -> "FixedClock":
        self._now_ms = int(now_ms)
        return self

    def advance(self, milliseconds: int) -> "FixedClock":
        self._now_ms += int(milliseconds)
        return self


def to_epoch_ms(value) -> int:
    """Accept epoch milliseconds or a datetime (naive datetimes are UTC)."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(round(value.timestamp() * 1000))
    return int(value)
