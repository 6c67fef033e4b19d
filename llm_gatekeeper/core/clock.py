"""
Time sources for throttling, caching and backoff.

Everything that reads the time or waits goes through a Clock so tests can
drive the rate window, cache TTL and retry delays without real waiting.
"""

import asyncio
import time
from typing import List, Protocol


class Clock(Protocol):
    """Injectable time source."""

    def now(self) -> float:
        """Current time in epoch seconds."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Wait for the given number of seconds."""
        ...


class SystemClock:
    """Wall-clock time backed by the running event loop."""

    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class ManualClock:
    """Simulated clock that only moves when told to.

    ``sleep`` records the requested delay and advances simulated time by
    the same amount, so backoff sequences complete instantly while the
    delays stay observable through ``sleeps``.
    """

    def __init__(self, start: float = 1_700_000_000.0):
        self._now = start
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        """Move simulated time forward."""
        if seconds < 0:
            raise ValueError("cannot move the clock backwards")
        self._now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)
        await asyncio.sleep(0)
