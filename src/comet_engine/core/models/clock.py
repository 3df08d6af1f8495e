"""Time sources for accrual."""

from abc import ABC, abstractmethod


class Clock(ABC):
    """Supplies the current timestamp in whole seconds."""

    @abstractmethod
    def now(self) -> int:
        pass


class ManualClock(Clock):
    """Clock advanced explicitly by the caller. Never moves backwards."""

    def __init__(self, start: int = 1_700_000_000):
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError(f"Cannot move clock backwards by {seconds}s")
        self._now += seconds
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValueError(f"Timestamp {timestamp} is before current time {self._now}")
        self._now = timestamp
