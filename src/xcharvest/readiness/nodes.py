"""Readiness graph nodes, one per phase.

Staging -> FilesAppearing -> SizeStabilizing -> ReadyToRead -> End

SizeStabilizing loops back to itself whenever the bundle grows.
Every node checks the overall deadline held in the state and raises
ReadinessTimedOutError once it has passed.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pydantic_graph import BaseNode, End, GraphRunContext

from xcharvest.artifacts.stability import StabilityCounter
from xcharvest.core.errors import (
    FatalDecodeError,
    ReadinessTimedOutError,
    ToolNotInstalledError,
)
from xcharvest.core.log import logger
from xcharvest.decode.xcresulttool import (
    INSTALL_GUIDANCE,
    XCResultSummary,
    validate_summary,
)
from xcharvest.readiness.state import (
    ReadinessDeps,
    ReadinessPhase,
    ReadinessState,
)

Context = GraphRunContext[ReadinessState, ReadinessDeps]


def _exists(path: Path) -> bool:
    try:
        return path.exists()
    except OSError as e:
        logger.debug("Cannot stat bundle member", path=str(path), error=str(e))
        return False


def member_size(path: Path) -> int:
    """Size of a file, or the recursive size of a directory.

    Raises:
        OSError: If path itself cannot be stat'ed
    """
    if not path.is_dir():
        return path.stat().st_size

    total = 0
    for entry in path.rglob("*"):
        try:
            if entry.is_file():
                total += entry.stat().st_size
        except OSError as e:
            logger.debug(
                "Bundle entry removed while sizing", path=str(entry),
                error=str(e),
            )
            continue
    return total


def _timed_out(ctx: Context, phase: ReadinessPhase, detail: str):
    config = ctx.deps.config
    return ReadinessTimedOutError(
        f"Test results at {ctx.state.bundle} were not readable within "
        f"{config.overall_timeout:g} seconds ({detail})",
        phase=phase.value,
        attempts=ctx.state.validation_attempts,
        diagnostics=ctx.state.last_diagnostics,
        guidance=[
            "Check whether the test run is still going in the IDE",
            "Very large test suites may need a longer "
            "readiness.overall_timeout",
        ],
    )


async def _pause(ctx: Context, seconds: float) -> None:
    """Sleep, but never past the overall deadline."""
    await ctx.deps.clock.sleep(min(seconds, ctx.state.deadline.remaining()))


@dataclass
class Staging(BaseNode[ReadinessState, ReadinessDeps, XCResultSummary]):
    """Wait for the IDE to remove the bundle's staging marker."""

    async def run(self, ctx: Context) -> FilesAppearing:
        state, deps = ctx.state, ctx.deps
        config, clock = deps.config, deps.clock
        state.enter(ReadinessPhase.STAGING, clock)

        marker = state.bundle / config.staging_marker
        bound = min(
            config.staging_bound(state.expected_duration),
            state.deadline.remaining(),
        )
        started = clock.monotonic()

        while True:
            if not _exists(marker):
                return FilesAppearing()

            if state.deadline.expired():
                raise _timed_out(
                    ctx, ReadinessPhase.STAGING, "staging marker never cleared"
                )

            waited = clock.monotonic() - started
            if waited >= bound:
                message = (
                    f"Staging marker still present after {waited:g} seconds; "
                    "continuing"
                )
                logger.warning(message, bundle=str(state.bundle))
                state.warnings.append(message)
                return FilesAppearing()

            await _pause(
                ctx, min(config.staging_poll_interval, bound - waited)
            )


@dataclass
class FilesAppearing(BaseNode[ReadinessState, ReadinessDeps, XCResultSummary]):
    """Wait until the metadata file, database and payload exist."""

    async def run(self, ctx: Context) -> SizeStabilizing:
        state, config = ctx.state, ctx.deps.config
        state.enter(ReadinessPhase.FILES_APPEARING, ctx.deps.clock)

        members = [
            state.bundle / config.metadata_file,
            state.bundle / config.database_file,
            state.bundle / config.payload_dir,
        ]
        while True:
            missing = [m.name for m in members if not _exists(m)]
            if not missing:
                return SizeStabilizing()

            if state.deadline.expired():
                raise _timed_out(
                    ctx,
                    ReadinessPhase.FILES_APPEARING,
                    f"still missing {', '.join(missing)}",
                )
            await _pause(ctx, config.files_poll_interval)


@dataclass
class SizeStabilizing(BaseNode[ReadinessState, ReadinessDeps, XCResultSummary]):
    """Sample member sizes until they hold still long enough.

    How long "long enough" is depends on the bundle's total size. A
    size change sends the graph back into this node with the new
    sizes as baseline.
    """

    baseline: tuple[int, ...] | None = None

    async def run(self, ctx: Context) -> SizeStabilizing | ReadyToRead:
        state, config = ctx.state, ctx.deps.config
        state.enter(ReadinessPhase.SIZE_STABILIZING, ctx.deps.clock)

        members = [
            state.bundle / config.metadata_file,
            state.bundle / config.database_file,
            state.bundle / config.payload_dir,
        ]
        counter = StabilityCounter(1)
        if self.baseline is not None:
            counter.observe(self.baseline)
            await self._next_sample(ctx)

        while True:
            try:
                sizes = tuple(member_size(m) for m in members)
            except OSError as e:
                logger.debug(
                    "Bundle member unavailable", bundle=str(state.bundle),
                    error=str(e),
                )
                counter.reset()
            else:
                total = sum(sizes)
                state.total_bytes = total
                counter.required = config.required_stable_samples(total)
                had_baseline = counter.has_baseline
                if counter.observe(sizes):
                    logger.info(
                        "Test results bundle is stable",
                        bundle=str(state.bundle),
                        total_bytes=total,
                        samples=counter.count,
                    )
                    return ReadyToRead()
                if had_baseline and counter.count == 0:
                    return SizeStabilizing(baseline=sizes)

            await self._next_sample(ctx)

    @staticmethod
    async def _next_sample(ctx: Context) -> None:
        if ctx.state.deadline.expired():
            raise _timed_out(
                ctx, ReadinessPhase.SIZE_STABILIZING, "bundle kept changing"
            )
        await _pause(ctx, ctx.deps.config.size_sample_interval)


@dataclass
class ReadyToRead(BaseNode[ReadinessState, ReadinessDeps, XCResultSummary]):
    """Confirm readability with the fast summary query."""

    async def run(self, ctx: Context) -> End[XCResultSummary]:
        state, deps = ctx.state, ctx.deps
        config = deps.config
        state.enter(ReadinessPhase.READY_TO_READ, deps.clock)

        await _pause(ctx, config.tier(config.safety_delay, state.total_bytes))
        retry_delay = config.tier(
            config.validation_retry_delay, state.total_bytes
        )

        for attempt in range(1, config.validation_attempts + 1):
            if state.deadline.expired():
                raise _timed_out(
                    ctx, ReadinessPhase.READY_TO_READ, "validation never passed"
                )
            state.validation_attempts = attempt
            try:
                run = deps.tool.summary(
                    state.bundle, timeout=config.validation_timeout
                )
            except ToolNotInstalledError as e:
                raise FatalDecodeError(
                    f"{e} (needed to read test results)",
                    reason="tool_not_installed",
                    attempts=attempt,
                    diagnostics=e.detail,
                    guidance=INSTALL_GUIDANCE,
                ) from e

            summary = validate_summary(run)
            if summary is not None:
                logger.info(
                    "Test results validated",
                    bundle=str(state.bundle),
                    attempts=attempt,
                    total=summary.total,
                )
                return End(summary)

            state.last_diagnostics = run.diagnostics
            logger.debug(
                "Test results not readable yet",
                bundle=str(state.bundle),
                attempt=attempt,
                exit_code=run.exit_code,
                timed_out=run.timed_out,
            )
            if attempt < config.validation_attempts:
                await _pause(ctx, retry_delay)

        raise ReadinessTimedOutError(
            f"Test results at {state.bundle} failed validation "
            f"{config.validation_attempts} times",
            phase=ReadinessPhase.READY_TO_READ.value,
            attempts=config.validation_attempts,
            diagnostics=state.last_diagnostics,
            guidance=[
                "The bundle may be corrupt; rerun the tests",
                "Try `xcrun xcresulttool get test-results summary --path "
                f"{state.bundle}` manually",
            ],
        )


__all__ = [
    "Staging",
    "FilesAppearing",
    "SizeStabilizing",
    "ReadyToRead",
    "member_size",
]
