"""Wait for an artifact that is provably newer than a trigger."""

from __future__ import annotations

from pathlib import Path

from xcharvest.artifacts.locator import latest_artifact
from xcharvest.artifacts.models import ArtifactHandle
from xcharvest.core.clock import Clock, Deadline, SystemClock
from xcharvest.core.config import BuildLogConfig
from xcharvest.core.errors import StaleArtifactError
from xcharvest.core.log import logger


class BuildLogWatcher:
    """Polls a directory until its newest artifact postdates a trigger.

    The freshness rule is modification time > trigger time and
    nothing else. The previous operation's artifact (for example the
    log of a clean that ran just before this build) is never returned.
    """

    def __init__(
        self,
        config: BuildLogConfig | None = None,
        clock: Clock | None = None,
    ):
        self.config = config or BuildLogConfig()
        self.clock = clock or SystemClock()

    async def wait_for_fresh_log(
        self, logs_dir: Path, trigger_time: float
    ) -> ArtifactHandle:
        """Wait for a build log written after trigger_time."""
        return await self.wait_for_fresh(
            logs_dir, self.config.suffix, trigger_time
        )

    async def wait_for_fresh(
        self,
        directory: Path,
        suffix: str,
        trigger_time: float,
        timeout: float | None = None,
        poll_interval: float | None = None,
    ) -> ArtifactHandle:
        """Wait for the newest entry ending in suffix to become fresh.

        Args:
            directory: Directory to poll
            suffix: Artifact name suffix (.xcactivitylog, .xcresult)
            trigger_time: Epoch seconds at which the operation started
            timeout: Overrides the configured timeout
            poll_interval: Overrides the configured poll interval

        Returns:
            Handle with modification_time > trigger_time

        Raises:
            StaleArtifactError: If nothing fresh appeared in time
        """
        timeout = self.config.timeout if timeout is None else timeout
        interval = (
            self.config.poll_interval if poll_interval is None
            else poll_interval
        )
        deadline = Deadline(self.clock, timeout)
        stale: ArtifactHandle | None = None
        polls = 0

        while True:
            polls += 1
            newest = latest_artifact(directory, suffix)
            if newest is not None:
                if newest.is_fresh(trigger_time):
                    logger.info(
                        "Found fresh artifact",
                        path=str(newest.path),
                        age_after_trigger=round(
                            newest.modification_time - trigger_time, 3
                        ),
                        polls=polls,
                    )
                    return newest
                stale = newest

            if deadline.expired():
                break
            await self.clock.sleep(min(interval, deadline.remaining()))

        if stale is not None:
            logger.warning(
                "Ignoring artifact older than the trigger",
                path=str(stale.path),
                modification_time=stale.modification_time,
                trigger_time=trigger_time,
            )
        raise StaleArtifactError(
            f"Operation triggered but no new {suffix} artifact appeared "
            f"in {directory} within {timeout:g} seconds",
            stale_candidate=stale,
            attempts=polls,
            guidance=[
                "Check that the build or test actually started in the IDE",
                "Check that the IDE can write to its DerivedData folder",
                "Do not start a clean and a build against the same "
                "project at the same time",
            ],
        )
