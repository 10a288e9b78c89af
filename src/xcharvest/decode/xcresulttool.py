"""xcresulttool wrapper and the schema of its JSON output."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
)

from xcharvest.core.config import DecoderConfig
from xcharvest.core.errors import ToolNotInstalledError
from xcharvest.core.result import CommandResult
from xcharvest.core.runner import Runner

INSTALL_GUIDANCE = [
    "xcresulttool ships with Xcode; install Xcode and its command line tools",
    "Select the active developer directory: sudo xcode-select -s "
    "/Applications/Xcode.app",
]


def _unwrap_value(value):
    """Accept both 12.5 and {"value": 12.5} for numeric fields."""
    if isinstance(value, dict):
        return value.get("value")
    return value


def _default_if_null(cls, value, info: ValidationInfo):
    """Replace an explicit null with the field's default."""
    if value is None:
        return cls.model_fields[info.field_name].default
    return value


class XCResultFailure(BaseModel):
    """A failed test as listed in the summary."""

    model_config = ConfigDict(extra="ignore")

    test_name: str = Field(
        default="Unknown test",
        validation_alias=AliasChoices("testName", "test_name", "name"),
    )
    target_name: str | None = Field(
        default=None, validation_alias=AliasChoices("targetName", "target_name")
    )
    failure_text: str = Field(
        default="",
        validation_alias=AliasChoices("failureText", "failure_text", "message"),
    )
    test_identifier: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "testIdentifierString", "test_identifier"
        ),
    )

    _null_strings = field_validator(
        "test_name", "failure_text", mode="before"
    )(classmethod(_default_if_null))


class XCResultSummary(BaseModel):
    """`xcresulttool get test-results summary` output.

    total stays None when absent: that is the signal that the bundle
    was read before it was complete.
    """

    model_config = ConfigDict(extra="ignore")

    total: int | None = Field(
        default=None,
        validation_alias=AliasChoices("totalTestCount", "totalTests", "total"),
    )
    passed: int = Field(
        default=0, validation_alias=AliasChoices("passedTests", "passed")
    )
    failed: int = Field(
        default=0, validation_alias=AliasChoices("failedTests", "failed")
    )
    skipped: int = Field(
        default=0, validation_alias=AliasChoices("skippedTests", "skipped")
    )
    expected_failures: int = Field(
        default=0,
        validation_alias=AliasChoices("expectedFailures", "expected_failures"),
    )
    result: str = Field(default="unknown")
    title: str | None = None
    start_time: float | None = Field(
        default=None, validation_alias=AliasChoices("startTime", "start_time")
    )
    finish_time: float | None = Field(
        default=None, validation_alias=AliasChoices("finishTime", "finish_time")
    )
    test_failures: list[XCResultFailure] = Field(
        default_factory=list,
        validation_alias=AliasChoices("testFailures", "test_failures"),
    )

    @field_validator("start_time", "finish_time", mode="before")
    @classmethod
    def _unwrap_times(cls, value):
        return _unwrap_value(value)

    @field_validator("passed", "failed", "skipped", "expected_failures",
                     mode="before")
    @classmethod
    def _null_count(cls, value):
        return 0 if value is None else value

    _null_result = field_validator("result", mode="before")(
        classmethod(_default_if_null)
    )

    @field_validator("test_failures", mode="before")
    @classmethod
    def _null_failures(cls, value):
        return [] if value is None else value


class XCResultTestNode(BaseModel):
    """One node of the `get test-results tests` hierarchy."""

    model_config = ConfigDict(extra="ignore")

    name: str = ""
    node_type: str = Field(
        default="", validation_alias=AliasChoices("nodeType", "node_type")
    )
    result: str = ""
    node_identifier: str | None = Field(
        default=None,
        validation_alias=AliasChoices("nodeIdentifier", "node_identifier"),
    )
    duration: str | None = None
    duration_seconds: float | None = Field(
        default=None,
        validation_alias=AliasChoices("durationInSeconds", "duration_seconds"),
    )
    children: list[XCResultTestNode] = Field(default_factory=list)

    _null_strings = field_validator(
        "name", "node_type", "result", mode="before"
    )(classmethod(_default_if_null))

    @field_validator("duration_seconds", mode="before")
    @classmethod
    def _unwrap_duration(cls, value):
        return _unwrap_value(value)

    @field_validator("children", mode="before")
    @classmethod
    def _null_children(cls, value):
        return [] if value is None else value


class XCResultTests(BaseModel):
    """`xcresulttool get test-results tests` output."""

    model_config = ConfigDict(extra="ignore")

    test_nodes: list[XCResultTestNode] = Field(
        default_factory=list,
        validation_alias=AliasChoices("testNodes", "test_nodes"),
    )


def parse_summary(run: CommandResult) -> XCResultSummary:
    """Validate summary output.

    Raises:
        ValueError: On empty or malformed output
    """
    if not run.stdout.strip():
        raise ValueError("xcresulttool produced no output")
    return XCResultSummary.model_validate_json(run.stdout)


def parse_tests(run: CommandResult) -> XCResultTests:
    """Validate detailed test output.

    Raises:
        ValueError: On empty or malformed output
    """
    if not run.stdout.strip():
        raise ValueError("xcresulttool produced no output")
    return XCResultTests.model_validate_json(run.stdout)


class ResultBundleTool(Protocol):
    """Queries against a test-result bundle."""

    def summary(self, bundle: Path, timeout: float | None = None) -> CommandResult:
        ...

    def tests(self, bundle: Path, timeout: float | None = None) -> CommandResult:
        ...


class XCResultTool:
    """Runs `xcrun xcresulttool get test-results ...`."""

    def __init__(
        self,
        config: DecoderConfig | None = None,
        runner: Runner | None = None,
    ):
        self.config = config or DecoderConfig()
        self.runner = runner or Runner()

    def summary(self, bundle: Path, timeout: float | None = None) -> CommandResult:
        """Fast counts-only query."""
        return self._query("summary", bundle, timeout)

    def tests(self, bundle: Path, timeout: float | None = None) -> CommandResult:
        """Full test-node hierarchy."""
        return self._query("tests", bundle, timeout)

    def _query(
        self, shape: str, bundle: Path, timeout: float | None
    ) -> CommandResult:
        argv = [
            *self.config.xcresulttool,
            "get",
            "test-results",
            shape,
            "--path",
            str(bundle),
            "--format",
            "json",
        ]
        result = self.runner.execute(
            argv, timeout=timeout or self.config.timeout
        )
        # xcrun reports a missing utility as "unable to find utility"
        if result.exit_code == 127 or (
            not result.success
            and "unable to find utility" in result.stderr.lower()
        ):
            raise ToolNotInstalledError(
                " ".join(self.config.xcresulttool), result.stderr
            )
        return result


def validate_summary(run: CommandResult) -> XCResultSummary | None:
    """Return the summary if run shows a readable bundle, else None.

    Readable means a clean exit and a JSON object whose total test
    count is present. An empty, malformed or timed-out read means the
    bundle is not ready yet.
    """
    if run.timed_out or not run.success:
        return None
    try:
        summary = parse_summary(run)
    except ValueError:
        return None
    if summary.total is None:
        return None
    return summary
