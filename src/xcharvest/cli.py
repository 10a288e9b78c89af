#!/usr/bin/env python3
"""xcharvest CLI - read build logs and test results the IDE produced."""

from __future__ import annotations

import asyncio
import sys
import time
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import CliApp, CliSubCommand, get_subcommand

from xcharvest.core.config import Settings
from xcharvest.core.log import logger
from xcharvest.pipeline import (
    HarvestSession,
    harvest_build_log,
    harvest_test_results,
)
from xcharvest.results.format import format_build_harvest, format_test_harvest


def _session_name(command: str) -> str:
    return f"{command}-{datetime.now().strftime('%Y%m%d-%H%M%S')}"


class BuildCommand(BaseModel):
    """Harvest errors and warnings from the build log of a build that
    was started at --since."""

    project: Path = Field(
        description="Path to the .xcodeproj/.xcworkspace or its folder"
    )
    since: float = Field(
        default_factory=time.time,
        description="Epoch seconds at which the build was triggered",
    )

    async def run_workflow(self, settings: Settings) -> int:
        """Run the build-log pipeline and print the report.

        Returns:
            Exit code (0=success, 1=failure or build errors)
        """
        session = HarvestSession(settings)
        harvest = await harvest_build_log(session, self.project, self.since)
        print(format_build_harvest(harvest, settings.results.display_limit))
        return 0 if harvest.ok and harvest.result.succeeded else 1


class TestsCommand(BaseModel):
    """Harvest test results from the bundle of a test run that was
    started at --since."""

    project: Path = Field(
        description="Path to the .xcodeproj/.xcworkspace or its folder"
    )
    since: float = Field(
        default_factory=time.time,
        description="Epoch seconds at which the test run was triggered",
    )
    expected_duration: float | None = Field(
        default=None,
        description="Expected test run time in seconds",
    )

    async def run_workflow(self, settings: Settings) -> int:
        """Run the test-result pipeline and print the report.

        Returns:
            Exit code (0=all tests passed, 1=otherwise)
        """
        session = HarvestSession(settings)
        harvest = await harvest_test_results(
            session, self.project, self.since, self.expected_duration
        )
        print(format_test_harvest(harvest, settings.results.display_limit))
        return 0 if harvest.ok and harvest.result.failed == 0 else 1


class CliSettings(Settings):
    """Read build logs and test results produced by the IDE.

    Run after triggering a build or test run; xcharvest waits until
    the matching artifact is complete, decodes it, and prints the
    errors, warnings or test outcomes.

    Configuration sources (in priority order):
    1. Command-line arguments (--build_log.timeout 60)
    2. Environment variables (XCHARVEST_BUILD_LOG__TIMEOUT=60)
    3. .env file
    4. xcharvest.yaml in the current directory (plus --include files)
    """

    build: CliSubCommand[BuildCommand]
    tests: CliSubCommand[TestsCommand]

    def cli_cmd(self):
        """Dispatch to the active subcommand, or show help."""
        subcommand = get_subcommand(self, is_required=False)

        if subcommand is None:
            CliApp.run(CliSettings, cli_args=["--help"])
            sys.exit(1)

        command = "build" if isinstance(subcommand, BuildCommand) else "tests"
        self.setup_logging(_session_name(command))

        with logger:
            exit_code = asyncio.run(subcommand.run_workflow(self))
        raise SystemExit(exit_code)


def main():
    """Main entry point for CLI."""
    CliApp.run(CliSettings)


if __name__ == "__main__":
    main()
