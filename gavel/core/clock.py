"""
Clocks - externally supplied time source for auction deadlines.

Handlers never read wall-clock time directly; they ask the clock the
auction was constructed with. Timestamps are integer seconds.
"""

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Anything that can report the current timestamp."""

    def now(self) -> int:
        ...


class SystemClock:
    """Wall-clock time in whole seconds."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """
    Clock that only moves when told to.

    Used by tests and the demo to step across an auction deadline.
    Time never moves backwards.
    """

    def __init__(self, start: int = 0):
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        """Move forward by `seconds` and return the new time."""
        if seconds < 0:
            raise ValueError(f"Cannot move clock backwards by {seconds}s")
        self._now += seconds
        return self._now

    def set(self, timestamp: int) -> None:
        """Jump to an absolute timestamp (not earlier than the current one)."""
        if timestamp < self._now:
            raise ValueError(f"Cannot rewind clock from {self._now} to {timestamp}")
        self._now = timestamp

    def __repr__(self) -> str:
        return f"ManualClock(now={self._now})"
