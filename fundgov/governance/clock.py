"""
Logical time sources for deadline comparisons.

All deadline checks read ``clock.now()``; the state machine never calls
``time.time()`` directly so a scenario can be replayed deterministically.
"""

import time
from abc import ABC, abstractmethod
from typing import Union

Timestamp = Union[int, float]


class Clock(ABC):
    """Source of the current logical time."""

    @abstractmethod
    def now(self) -> Timestamp:
        ...


class LogicalClock(Clock):
    """
    Manually driven, monotonic clock.

    Starts at *start* and only moves when ``advance`` or ``set`` is called.
    """

    def __init__(self, start: Timestamp = 0):
        self._now = start

    def now(self) -> Timestamp:
        return self._now

    def advance(self, delta: Timestamp) -> Timestamp:
        if delta < 0:
            raise ValueError(f"Cannot move clock backwards (delta={delta})")
        self._now += delta
        return self._now

    def set(self, timestamp: Timestamp) -> Timestamp:
        if timestamp < self._now:
            raise ValueError(
                f"Cannot move clock backwards ({self._now} → {timestamp})"
            )
        self._now = timestamp
        return self._now

    def __repr__(self) -> str:
        return f"<LogicalClock now={self._now}>"


class SystemClock(Clock):
    """Wall-clock time in seconds since the epoch."""

    def now(self) -> float:
        return time.time()

    def __repr__(self) -> str:
        return "<SystemClock>"
