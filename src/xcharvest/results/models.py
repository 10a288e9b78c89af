"""Decoded results and the reports handed back to callers."""

from __future__ import annotations

from pydantic import BaseModel, Field

from xcharvest.artifacts.models import ArtifactHandle
from xcharvest.core.errors import FailureKind, HarvestError


class DecodedBuildResult(BaseModel):
    """Errors and warnings from one build log.

    Entries are "<location>: <message>" strings, de-duplicated in
    first-seen order.
    """

    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    build_status: str | None = None

    @property
    def succeeded(self) -> bool:
        return not self.errors


class TestFailure(BaseModel):
    """A failing test and its message."""

    test: str
    message: str = ""


class TestCaseOutcome(BaseModel):
    """One leaf test case from the detailed results."""

    name: str
    identifier: str | None = None
    result: str
    duration: float | None = None


class TestResultSummary(BaseModel):
    """Counts and failures from a test-result bundle."""

    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    expected_failures: int = 0
    result: str = "unknown"
    duration_seconds: float | None = None
    failures: list[TestFailure] = Field(default_factory=list)
    passed_tests: list[TestCaseOutcome] = Field(default_factory=list)
    failed_tests: list[TestCaseOutcome] = Field(default_factory=list)
    skipped_tests: list[TestCaseOutcome] = Field(default_factory=list)

    @property
    def pass_rate(self) -> float:
        """Passed over total, as a percentage; 0 when nothing ran."""
        if self.total <= 0:
            return 0.0
        return self.passed / self.total * 100.0


class HarvestFailure(BaseModel):
    """Why a harvest produced no result."""

    kind: FailureKind
    message: str
    reason: str | None = None
    attempts: int = 0
    diagnostics: str = ""
    guidance: list[str] = Field(default_factory=list)
    stale_candidate: ArtifactHandle | None = None

    @classmethod
    def from_error(cls, error: HarvestError) -> HarvestFailure:
        return cls(
            kind=error.kind,
            message=error.message,
            reason=getattr(error, "reason", None),
            attempts=error.attempts,
            diagnostics=error.diagnostics,
            guidance=list(error.guidance),
            stale_candidate=getattr(error, "stale_candidate", None),
        )


class BuildHarvest(BaseModel):
    """Result of harvesting a build log."""

    artifact: ArtifactHandle | None = None
    result: DecodedBuildResult | None = None
    warnings: list[str] = Field(default_factory=list)
    failure: HarvestFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None and self.result is not None


class TestHarvest(BaseModel):
    """Result of harvesting a test-result bundle."""

    artifact: ArtifactHandle | None = None
    result: TestResultSummary | None = None
    warnings: list[str] = Field(default_factory=list)
    failure: HarvestFailure | None = None
    phases: list[str] = Field(
        default_factory=list,
        description="Readiness phases entered, in order",
    )

    @property
    def ok(self) -> bool:
        return self.failure is None and self.result is not None


__all__ = [
    "DecodedBuildResult",
    "TestFailure",
    "TestCaseOutcome",
    "TestResultSummary",
    "HarvestFailure",
    "BuildHarvest",
    "TestHarvest",
]
