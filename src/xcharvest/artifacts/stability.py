"""Detect when an artifact has stopped changing."""

from __future__ import annotations

from collections.abc import Hashable

from pydantic import BaseModel

from xcharvest.artifacts.models import ArtifactHandle
from xcharvest.core.clock import Clock, Deadline, SystemClock
from xcharvest.core.config import StabilityConfig
from xcharvest.core.log import logger


class StabilityCounter:
    """Counts consecutive identical observations.

    The first observation is the baseline; each later observation
    equal to the previous one increments the count, anything else
    resets it to zero.
    """

    _UNSET = object()

    def __init__(self, required: int):
        self.required = required
        self.count = 0
        self._last = self._UNSET

    def observe(self, sample: Hashable) -> bool:
        """Record a sample; return True once enough have matched."""
        if self._last is not self._UNSET and sample == self._last:
            self.count += 1
        else:
            self.count = 0
        self._last = sample
        return self.stable

    def reset(self) -> None:
        """Forget the baseline; the next sample starts a new run."""
        self.count = 0
        self._last = self._UNSET

    @property
    def has_baseline(self) -> bool:
        return self._last is not self._UNSET

    @property
    def stable(self) -> bool:
        return self.count >= self.required


class StabilityResult(BaseModel):
    """Outcome of waiting for an artifact to settle."""

    handle: ArtifactHandle
    stable: bool
    polls: int


class StabilityDetector:
    """Polls a file until its mtime and size stop changing."""

    def __init__(
        self,
        config: StabilityConfig | None = None,
        clock: Clock | None = None,
    ):
        self.config = config or StabilityConfig()
        self.clock = clock or SystemClock()

    async def wait_until_stable(self, handle: ArtifactHandle) -> StabilityResult:
        """Wait for handle to settle, or give up at the timeout.

        A timeout is not an error: the caller decodes anyway and flags
        the result as possibly incomplete.
        """
        counter = StabilityCounter(self.config.required_polls)
        deadline = Deadline(self.clock, self.config.timeout)
        current = handle
        polls = 0

        while True:
            polls += 1
            try:
                stat = handle.path.stat()
                sample = (stat.st_mtime, stat.st_size)
                current = ArtifactHandle(
                    path=handle.path, modification_time=stat.st_mtime
                )
            except OSError as e:
                # Being replaced by the writer; counts as a change
                logger.debug(
                    "Artifact unavailable", path=str(handle.path), error=str(e)
                )
                sample = None
                counter.reset()

            if sample is not None and counter.observe(sample):
                logger.debug(
                    "Artifact is stable",
                    path=str(handle.path),
                    polls=polls,
                )
                return StabilityResult(handle=current, stable=True, polls=polls)

            if deadline.expired():
                logger.warning(
                    "Artifact still changing at stability timeout; "
                    "continuing best-effort",
                    path=str(handle.path),
                    timeout=self.config.timeout,
                )
                return StabilityResult(handle=current, stable=False, polls=polls)

            await self.clock.sleep(
                min(self.config.interval, deadline.remaining())
            )
