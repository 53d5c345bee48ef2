"""Millisecond clocks injected into the services."""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    def now_ms(self) -> int: ...


class SystemClock:
    """Wall clock in integer milliseconds since the epoch."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


class ManualClock:
    """Clock that only moves when told to. Used for deterministic runs and tests."""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self._now = int(start_ms)

    def now_ms(self) -> int:
        return self._now

    def advance(self, ms: int) -> int:
        if ms < 0:
            raise ValueError("ManualClock cannot go backwards")
        self._now += int(ms)
        return self._now

    def set(self, now_ms: int) -> None:
        self._now = int(now_ms)
