"""Turn validated decoder output into result models."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from xcharvest.decode.xclogparser import XCLogParserIssue, XCLogParserReport
from xcharvest.decode.xcresulttool import (
    XCResultSummary,
    XCResultTestNode,
    XCResultTests,
)
from xcharvest.results.models import (
    DecodedBuildResult,
    TestCaseOutcome,
    TestFailure,
    TestResultSummary,
)

FILE_URL_PREFIX = "file://"
UNKNOWN_LOCATION = "Unknown file"
TEST_CASE_NODE = "Test Case"
FAILURE_MESSAGE_NODE = "Failure Message"


def issue_location(issue: XCLogParserIssue) -> str:
    """Render "<file>[:<line>[:<col>]]" for an issue.

    Line and column are only shown when positive, and the column only
    together with a line.
    """
    path = issue.document_url or ""
    if path.startswith(FILE_URL_PREFIX):
        path = path[len(FILE_URL_PREFIX):]
    if not path:
        return UNKNOWN_LOCATION

    if issue.line and issue.line > 0:
        path = f"{path}:{issue.line}"
        if issue.column and issue.column > 0:
            path = f"{path}:{issue.column}"
    return path


def format_issue(issue: XCLogParserIssue) -> str:
    return f"{issue_location(issue)}: {issue.title}"


def dedupe(entries: Iterable[str]) -> list[str]:
    """Drop repeats, keeping first-seen order."""
    return list(dict.fromkeys(entries))


def extract_build_result(report: XCLogParserReport) -> DecodedBuildResult:
    """Build result from an xclogparser issues report.

    The same diagnostic is reported once per target that compiles the
    file, so identical location/message pairs collapse to one entry.
    """
    return DecodedBuildResult(
        errors=dedupe(format_issue(i) for i in report.errors),
        warnings=dedupe(format_issue(i) for i in report.warnings),
        build_status=report.build_status,
    )


def iter_test_cases(
    nodes: Iterable[XCResultTestNode],
) -> Iterator[XCResultTestNode]:
    """Depth-first walk yielding only leaf test-case nodes."""
    for node in nodes:
        if node.node_type == TEST_CASE_NODE and node.name and node.result:
            yield node
        yield from iter_test_cases(node.children)


def failure_messages(node: XCResultTestNode) -> list[str]:
    return [
        child.name
        for child in node.children
        if child.node_type == FAILURE_MESSAGE_NODE and child.name
    ]


def flatten_tests(
    tests: XCResultTests,
) -> tuple[list[TestCaseOutcome], list[TestCaseOutcome], list[TestCaseOutcome]]:
    """Split the test-node tree into passed, failed and skipped cases."""
    passed, failed, skipped = [], [], []
    buckets = {"passed": passed, "failed": failed, "skipped": skipped}

    for node in iter_test_cases(tests.test_nodes):
        bucket = buckets.get(node.result.lower())
        if bucket is None:
            continue
        bucket.append(
            TestCaseOutcome(
                name=node.name,
                identifier=node.node_identifier,
                result=node.result,
                duration=node.duration_seconds,
            )
        )
    return passed, failed, skipped


def _summary_failures(summary: XCResultSummary) -> list[TestFailure]:
    return [
        TestFailure(test=f.test_name, message=f.failure_text)
        for f in summary.test_failures
    ]


def _detailed_failures(
    summary: XCResultSummary, tests: XCResultTests
) -> list[TestFailure]:
    """Failures from the tree, filling gaps from the summary list."""
    by_identifier = {
        f.test_identifier: f.failure_text
        for f in summary.test_failures
        if f.test_identifier
    }
    failures = []
    for node in iter_test_cases(tests.test_nodes):
        if node.result.lower() != "failed":
            continue
        messages = failure_messages(node)
        if messages:
            message = "\n".join(messages)
        else:
            message = by_identifier.get(node.node_identifier, "")
        failures.append(TestFailure(test=node.name, message=message))
    return failures


def extract_test_summary(
    summary: XCResultSummary, tests: XCResultTests | None = None
) -> TestResultSummary:
    """Combine the fast summary with the detailed tree when available.

    Counts always come from the summary. Per-test lists and failure
    messages come from the tree; without it the summary's own
    testFailures list is used.
    """
    duration = None
    if summary.start_time is not None and summary.finish_time is not None:
        duration = max(0.0, summary.finish_time - summary.start_time)

    result = TestResultSummary(
        total=summary.total or 0,
        passed=summary.passed,
        failed=summary.failed,
        skipped=summary.skipped,
        expected_failures=summary.expected_failures,
        result=summary.result,
        duration_seconds=duration,
    )

    if tests is None:
        result.failures = _summary_failures(summary)
        return result

    passed, failed, skipped = flatten_tests(tests)
    result.passed_tests = passed
    result.failed_tests = failed
    result.skipped_tests = skipped
    result.failures = (
        _detailed_failures(summary, tests) or _summary_failures(summary)
    )
    return result


__all__ = [
    "issue_location",
    "format_issue",
    "dedupe",
    "extract_build_result",
    "iter_test_cases",
    "failure_messages",
    "flatten_tests",
    "extract_test_summary",
]
