"""Readiness protocol for test-result bundles."""

from __future__ import annotations

from pathlib import Path

from pydantic_graph import Graph

from xcharvest.core.clock import Clock, Deadline, SystemClock
from xcharvest.core.config import ReadinessConfig
from xcharvest.core.errors import ReadinessTimedOutError
from xcharvest.core.log import logger
from xcharvest.decode.xcresulttool import ResultBundleTool, XCResultTool
from xcharvest.readiness.state import (
    ReadinessDeps,
    ReadinessOutcome,
    ReadinessPhase,
    ReadinessState,
)


def create_readiness_graph() -> Graph:
    """Build the readiness graph.

    Staging → FilesAppearing → SizeStabilizing ⟲ → ReadyToRead → End

    Returns:
        Graph with ReadinessState as state_type
    """
    from xcharvest.readiness.nodes import (
        FilesAppearing,
        ReadyToRead,
        SizeStabilizing,
        Staging,
    )

    return Graph(
        nodes=(Staging, FilesAppearing, SizeStabilizing, ReadyToRead),
        state_type=ReadinessState,
    )


class ReadinessProtocol:
    """Waits until a test-result bundle can be read in full.

    The IDE writes a bundle in stages: a staging marker while tests
    run, then the metadata file, database and payload, which keep
    growing for a while. Reading too early yields a valid-looking but
    incomplete summary, so every phase has to pass in order.
    """

    def __init__(
        self,
        config: ReadinessConfig | None = None,
        clock: Clock | None = None,
        tool: ResultBundleTool | None = None,
    ):
        self.config = config or ReadinessConfig()
        self.clock = clock or SystemClock()
        self.tool = tool or XCResultTool()
        self.graph = create_readiness_graph()

    def new_state(
        self, bundle: Path, expected_duration: float | None = None
    ) -> ReadinessState:
        return ReadinessState(bundle=bundle, expected_duration=expected_duration)

    async def wait_until_ready(
        self,
        bundle: Path,
        expected_duration: float | None = None,
        state: ReadinessState | None = None,
    ) -> ReadinessOutcome:
        """Drive bundle through every phase until it validates.

        Args:
            bundle: Path of the .xcresult bundle
            expected_duration: Expected test run time in seconds, which
                stretches the staging wait
            state: State to record progress in; a fresh one by default

        Returns:
            The validated summary with the recorded transitions

        Raises:
            ReadinessTimedOutError: A bounded wait expired
            FatalDecodeError: xcresulttool is not installed
        """
        if state is None:
            state = self.new_state(bundle, expected_duration)
        state.deadline = Deadline(self.clock, self.config.overall_timeout)
        state.started = self.clock.monotonic()

        deps = ReadinessDeps(config=self.config, clock=self.clock, tool=self.tool)

        from xcharvest.readiness.nodes import Staging

        with logger.span("readiness", bundle=str(bundle)):
            try:
                async with self.graph.iter(
                    Staging(), state=state, deps=deps
                ) as run:
                    async for _node in run:
                        pass
            except ReadinessTimedOutError as e:
                state.enter(ReadinessPhase.TIMED_OUT, self.clock)
                logger.error(
                    "Test results never became readable",
                    bundle=str(bundle),
                    phase=e.phase,
                )
                raise

        return ReadinessOutcome(
            summary=run.result.output,
            transitions=state.transitions,
            warnings=state.warnings,
            total_bytes=state.total_bytes,
            validation_attempts=state.validation_attempts,
        )


__all__ = ["create_readiness_graph", "ReadinessProtocol"]
