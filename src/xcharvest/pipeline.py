"""Build-log and test-result harvesting pipelines.

Each entry point takes an explicit HarvestSession, a project path and
the time at which the caller triggered the build or test run. It
returns a report; classified failures end up in the report's failure
field instead of being raised.
"""

from __future__ import annotations

from pathlib import Path

from xcharvest.artifacts.locator import ArtifactLocator
from xcharvest.artifacts.models import ArtifactHandle, ProjectArtifactLocation
from xcharvest.artifacts.stability import StabilityDetector
from xcharvest.artifacts.watcher import BuildLogWatcher
from xcharvest.core.clock import Clock, SystemClock
from xcharvest.core.config import Settings
from xcharvest.core.errors import (
    ArtifactNotFoundError,
    FatalDecodeError,
    HarvestError,
)
from xcharvest.core.log import logger
from xcharvest.core.runner import Runner
from xcharvest.decode import xclogparser, xcresulttool
from xcharvest.decode.retrier import DecodeRetrier
from xcharvest.readiness.graph import ReadinessProtocol
from xcharvest.readiness.state import ReadinessState
from xcharvest.results.extractor import (
    extract_build_result,
    extract_test_summary,
)
from xcharvest.results.models import (
    BuildHarvest,
    DecodedBuildResult,
    HarvestFailure,
    TestHarvest,
    TestResultSummary,
)

POSSIBLY_INCOMPLETE = (
    "Build log was still changing when the stability wait ended; "
    "results may be incomplete"
)


class HarvestSession:
    """Everything one harvest needs: settings, clock and decoders.

    Created by the caller per operation and passed explicitly; nothing
    here is shared between sessions.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        clock: Clock | None = None,
        runner: Runner | None = None,
        log_decoder: xclogparser.LogDecoder | None = None,
        bundle_tool: xcresulttool.ResultBundleTool | None = None,
    ):
        self.settings = settings or Settings()
        self.clock = clock or SystemClock()
        self.runner = runner or Runner()
        self.log_decoder = log_decoder or xclogparser.XCLogParser(
            self.settings.decoder, self.runner
        )
        self.bundle_tool = bundle_tool or xcresulttool.XCResultTool(
            self.settings.decoder, self.runner
        )

    def locator(self) -> ArtifactLocator:
        return ArtifactLocator(self.settings.derived_data, self.runner)

    def watcher(self) -> BuildLogWatcher:
        return BuildLogWatcher(self.settings.build_log, self.clock)

    def stability(self) -> StabilityDetector:
        return StabilityDetector(self.settings.stability, self.clock)

    def retrier(self) -> DecodeRetrier:
        return DecodeRetrier(self.settings.decoder, self.clock)

    def readiness(self) -> ReadinessProtocol:
        return ReadinessProtocol(
            self.settings.readiness, self.clock, self.bundle_tool
        )


def locate_output(
    session: HarvestSession, project_path: Path | str
) -> ProjectArtifactLocation:
    """Find a project's output directory.

    Raises:
        ArtifactNotFoundError: If no output directory belongs to it
    """
    location = session.locator().locate(project_path)
    if location is None:
        raise ArtifactNotFoundError(
            f"No build output directory found for {project_path}",
            guidance=[
                "Build the project in the IDE at least once",
                "Check derived_data.root if DerivedData was moved",
            ],
        )
    return location


async def read_build_log(
    session: HarvestSession, log_path: Path
) -> DecodedBuildResult:
    """Decode one build log with retries.

    Raises:
        FatalDecodeError: Decoder missing, failed, or retries ran out
    """
    report = await session.retrier().run(
        lambda: session.log_decoder.decode(log_path),
        xclogparser.parse_issues_report,
        what=f"build log {log_path.name}",
        guidance=xclogparser.INSTALL_GUIDANCE,
    )
    result = extract_build_result(report)
    logger.info(
        "Decoded build log",
        path=str(log_path),
        errors=len(result.errors),
        warnings=len(result.warnings),
    )
    return result


async def harvest_build_log(
    session: HarvestSession,
    project_path: Path | str,
    trigger_time: float,
) -> BuildHarvest:
    """Wait for the build log of a build triggered at trigger_time and
    decode it."""
    artifact: ArtifactHandle | None = None
    warnings: list[str] = []

    with logger.span("harvest build log", project=str(project_path)):
        try:
            location = locate_output(session, project_path)
            artifact = await session.watcher().wait_for_fresh_log(
                location.build_logs_dir, trigger_time
            )

            stability = await session.stability().wait_until_stable(artifact)
            artifact = stability.handle
            if not stability.stable:
                warnings.append(POSSIBLY_INCOMPLETE)

            result = await read_build_log(session, artifact.path)
        except HarvestError as e:
            logger.error(
                "Build log harvest failed",
                project=str(project_path),
                kind=e.kind.value,
                error=e.message,
            )
            return BuildHarvest(
                artifact=artifact,
                warnings=warnings,
                failure=HarvestFailure.from_error(e),
            )

    return BuildHarvest(artifact=artifact, result=result, warnings=warnings)


async def read_test_bundle(
    session: HarvestSession,
    bundle: Path,
    expected_duration: float | None = None,
    state: ReadinessState | None = None,
) -> TestResultSummary:
    """Wait for a bundle to become readable and extract its results.

    The detailed per-test query is best-effort: if it fails the
    summary's own failure list is used.

    Raises:
        ReadinessTimedOutError: The bundle never became readable
        FatalDecodeError: xcresulttool is not installed
    """
    outcome = await session.readiness().wait_until_ready(
        bundle, expected_duration, state
    )

    tests = None
    try:
        tests = await session.retrier().run(
            lambda: session.bundle_tool.tests(bundle),
            xcresulttool.parse_tests,
            what=f"test details of {bundle.name}",
            guidance=xcresulttool.INSTALL_GUIDANCE,
        )
    except FatalDecodeError as e:
        logger.warning(
            "Detailed test results unavailable; using summary failures",
            bundle=str(bundle),
            reason=e.reason,
            error=e.message,
        )

    result = extract_test_summary(outcome.summary, tests)
    logger.info(
        "Extracted test results",
        bundle=str(bundle),
        total=result.total,
        passed=result.passed,
        failed=result.failed,
    )
    return result


async def harvest_test_results(
    session: HarvestSession,
    project_path: Path | str,
    trigger_time: float,
    expected_duration: float | None = None,
) -> TestHarvest:
    """Wait for the result bundle of a test run triggered at
    trigger_time, then read it once it is complete."""
    config = session.settings.readiness
    artifact: ArtifactHandle | None = None
    state: ReadinessState | None = None

    with logger.span("harvest test results", project=str(project_path)):
        try:
            location = locate_output(session, project_path)
            artifact = await session.watcher().wait_for_fresh(
                location.test_logs_dir,
                config.bundle_suffix,
                trigger_time,
                timeout=config.locate_timeout,
                poll_interval=config.locate_poll_interval,
            )
            state = ReadinessState(
                bundle=artifact.path, expected_duration=expected_duration
            )
            result = await read_test_bundle(
                session, artifact.path, expected_duration, state
            )
        except HarvestError as e:
            logger.error(
                "Test result harvest failed",
                project=str(project_path),
                kind=e.kind.value,
                error=e.message,
            )
            return TestHarvest(
                artifact=artifact,
                warnings=state.warnings if state else [],
                phases=_phase_names(state),
                failure=HarvestFailure.from_error(e),
            )

    return TestHarvest(
        artifact=artifact,
        result=result,
        warnings=state.warnings,
        phases=_phase_names(state),
    )


def _phase_names(state: ReadinessState | None) -> list[str]:
    if state is None:
        return []
    return [phase.value for phase in state.phases]


__all__ = [
    "HarvestSession",
    "POSSIBLY_INCOMPLETE",
    "locate_output",
    "read_build_log",
    "harvest_build_log",
    "read_test_bundle",
    "harvest_test_results",
]
