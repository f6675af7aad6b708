"""Network clock sources consumed by match coordinators."""

from __future__ import annotations

from time import monotonic
from typing import Protocol


class NetworkClock(Protocol):
    """Shared clock value, non-decreasing and roughly consistent across peers."""

    def now(self) -> float:
        ...


class MonotonicClock:
    """Process-local monotonic clock with an optional offset in seconds."""

    def __init__(self, offset: float = 0.0):
        self.offset = offset

    def now(self) -> float:
        return monotonic() + self.offset


class ManualClock:
    """Clock advanced explicitly; used by simulations and tests."""

    def __init__(self, start: float = 0.0):
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        """Move time forward and return the new value."""
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards.")
        self._now += seconds
        return self._now

    def set(self, value: float) -> None:
        if value < self._now:
            raise ValueError("ManualClock cannot move backwards.")
        self._now = float(value)


class SkewedClock:
    """View of another clock shifted by a fixed skew, modelling peer drift."""

    def __init__(self, base: NetworkClock, skew: float):
        self.base = base
        self.skew = skew

    def now(self) -> float:
        return self.base.now() + self.skew
