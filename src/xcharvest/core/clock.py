"""Clock abstraction used by every polling loop."""

from __future__ import annotations

import asyncio
import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Source of time and sleeps for the polling loops.

    time() is wall-clock epoch seconds, comparable with file
    modification times. monotonic() is used for deadlines.
    """

    def time(self) -> float:
        ...

    def monotonic(self) -> float:
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Clock backed by the real time and asyncio.sleep()."""

    def time(self) -> float:
        return time.time()

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class Deadline:
    """Fixed point in monotonic time measured against a clock."""

    def __init__(self, clock: Clock, seconds: float):
        self.clock = clock
        self.seconds = seconds
        self.expires_at = clock.monotonic() + seconds

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self.clock.monotonic())

    def expired(self) -> bool:
        return self.clock.monotonic() >= self.expires_at


__all__ = ["Clock", "SystemClock", "Deadline"]
