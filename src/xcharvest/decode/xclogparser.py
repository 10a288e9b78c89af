"""xclogparser wrapper and its issues-report schema."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from xcharvest.core.config import DecoderConfig
from xcharvest.core.errors import ToolNotInstalledError
from xcharvest.core.result import CommandResult
from xcharvest.core.runner import Runner

INSTALL_GUIDANCE = [
    "XCLogParser is required to parse Xcode build logs but is not installed.",
    "Homebrew: brew install xclogparser",
    "From source: https://github.com/MobileNativeFoundation/XCLogParser",
]


class LogDecoder(Protocol):
    """Anything that can turn a build log into an issues report run."""

    def decode(self, log_path: Path) -> CommandResult:
        ...


class XCLogParserIssue(BaseModel):
    """One error or warning. Every field may be missing."""

    model_config = ConfigDict(extra="ignore")

    document_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("documentURL", "document_url", "file"),
    )
    line: int | None = Field(
        default=None,
        validation_alias=AliasChoices("startingLineNumber", "line"),
    )
    column: int | None = Field(
        default=None,
        validation_alias=AliasChoices("startingColumnNumber", "column"),
    )
    title: str = Field(
        default="",
        validation_alias=AliasChoices("title", "detail", "message"),
    )

    @field_validator("title", mode="before")
    @classmethod
    def _null_title(cls, value):
        return "" if value is None else value


class XCLogParserReport(BaseModel):
    """Output of `xclogparser parse --reporter issues`."""

    model_config = ConfigDict(extra="ignore")

    errors: list[XCLogParserIssue] = Field(default_factory=list)
    warnings: list[XCLogParserIssue] = Field(default_factory=list)
    build_status: str | None = Field(
        default=None,
        validation_alias=AliasChoices("buildStatus", "build_status"),
    )

    @field_validator("errors", "warnings", mode="before")
    @classmethod
    def _null_is_empty(cls, value):
        return [] if value is None else value


def parse_issues_report(run: CommandResult) -> XCLogParserReport:
    """Validate xclogparser stdout.

    Raises:
        ValueError: If stdout is empty or not a report object
    """
    if not run.stdout.strip():
        raise ValueError("xclogparser produced no output")
    return XCLogParserReport.model_validate_json(run.stdout)


class XCLogParser:
    """Runs xclogparser against one build log."""

    def __init__(
        self,
        config: DecoderConfig | None = None,
        runner: Runner | None = None,
    ):
        self.config = config or DecoderConfig()
        self.runner = runner or Runner()

    def decode(self, log_path: Path) -> CommandResult:
        argv = [
            *self.config.xclogparser,
            "parse",
            "--file",
            str(log_path),
            "--reporter",
            "issues",
        ]
        result = self.runner.execute(argv, timeout=self.config.timeout)
        if result.exit_code == 127:
            raise ToolNotInstalledError(argv[0], result.stderr)
        return result
