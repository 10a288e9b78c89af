"""Human-readable rendering of harvest reports."""

from __future__ import annotations

from xcharvest.results.models import (
    BuildHarvest,
    DecodedBuildResult,
    HarvestFailure,
    TestHarvest,
    TestResultSummary,
)

DEFAULT_LIMIT = 50


def format_duration(seconds: float | None) -> str:
    """Render seconds as "Xm Ys" or "Ys"."""
    if seconds is None:
        return "unknown"
    minutes, remainder = divmod(int(seconds), 60)
    if minutes > 0:
        return f"{minutes}m {remainder}s"
    return f"{remainder}s"


def capped_lines(entries: list[str], limit: int = DEFAULT_LIMIT) -> list[str]:
    """Bulleted lines for entries, truncated after limit."""
    lines = [f"  - {entry}" for entry in entries[:limit]]
    if len(entries) > limit:
        lines.append(f"  ... and {len(entries) - limit} more")
    return lines


def format_build_result(
    result: DecodedBuildResult, limit: int = DEFAULT_LIMIT
) -> str:
    if result.errors:
        lines = [f"BUILD FAILED ({len(result.errors)} errors)", "", "ERRORS:"]
        lines += capped_lines(result.errors, limit)
        if result.warnings:
            lines += ["", f"WARNINGS ({len(result.warnings)}):"]
            lines += capped_lines(result.warnings, limit)
    elif result.warnings:
        lines = [
            f"BUILD COMPLETED WITH WARNINGS ({len(result.warnings)} warnings)",
            "",
            "WARNINGS:",
        ]
        lines += capped_lines(result.warnings, limit)
    else:
        lines = ["BUILD SUCCESSFUL"]
    return "\n".join(lines)


def format_test_summary(
    summary: TestResultSummary, limit: int = DEFAULT_LIMIT
) -> str:
    lines = [
        "Test Results Summary:",
        f"Result: {summary.result}",
        f"Total: {summary.total} | Passed: {summary.passed} | "
        f"Failed: {summary.failed} | Skipped: {summary.skipped}",
        f"Pass Rate: {summary.pass_rate:.1f}%",
        f"Duration: {format_duration(summary.duration_seconds)}",
    ]

    if summary.failures:
        lines += ["", f"Failed Tests ({len(summary.failures)}):"]
        lines += capped_lines(
            [
                f"{f.test}: {f.message}" if f.message else f.test
                for f in summary.failures
            ],
            limit,
        )

    if summary.skipped_tests:
        lines += ["", f"Skipped Tests ({len(summary.skipped_tests)}):"]
        lines += capped_lines([t.name for t in summary.skipped_tests], limit)

    return "\n".join(lines)


def format_failure(failure: HarvestFailure) -> str:
    lines = [f"FAILED ({failure.kind.value}): {failure.message}"]
    if failure.attempts:
        lines.append(f"Attempts: {failure.attempts}")
    if failure.stale_candidate is not None:
        lines.append(
            f"Newest artifact predates the trigger: {failure.stale_candidate.path}"
        )
    if failure.diagnostics:
        lines += ["", "Diagnostics:", failure.diagnostics]
    if failure.guidance:
        lines += ["", "Suggestions:"]
        lines += [f"  - {hint}" for hint in failure.guidance]
    return "\n".join(lines)


def _with_warnings(text: str, warnings: list[str]) -> str:
    if not warnings:
        return text
    return "\n".join([*(f"WARNING: {w}" for w in warnings), "", text])


def format_build_harvest(
    harvest: BuildHarvest, limit: int = DEFAULT_LIMIT
) -> str:
    if harvest.failure is not None:
        return _with_warnings(format_failure(harvest.failure), harvest.warnings)
    return _with_warnings(
        format_build_result(harvest.result, limit), harvest.warnings
    )


def format_test_harvest(
    harvest: TestHarvest, limit: int = DEFAULT_LIMIT
) -> str:
    if harvest.failure is not None:
        return _with_warnings(format_failure(harvest.failure), harvest.warnings)
    return _with_warnings(
        format_test_summary(harvest.result, limit), harvest.warnings
    )


__all__ = [
    "format_duration",
    "capped_lines",
    "format_build_result",
    "format_test_summary",
    "format_failure",
    "format_build_harvest",
    "format_test_harvest",
]
