"""Tests for turning decoder output into result models."""

import pytest

from xcharvest.decode.xclogparser import XCLogParserIssue, XCLogParserReport
from xcharvest.decode.xcresulttool import XCResultSummary, XCResultTests
from xcharvest.results.extractor import (
    extract_build_result,
    extract_test_summary,
    flatten_tests,
    format_issue,
)


@pytest.mark.parametrize(
    "fields, expected",
    [
        (
            {"documentURL": "file:///src/A.swift", "startingLineNumber": 3,
             "startingColumnNumber": 7, "title": "boom"},
            "/src/A.swift:3:7: boom",
        ),
        (
            {"documentURL": "/src/A.swift", "startingLineNumber": 3,
             "startingColumnNumber": 0, "title": "boom"},
            "/src/A.swift:3: boom",
        ),
        (
            {"documentURL": "/src/A.swift", "startingLineNumber": 0,
             "startingColumnNumber": 5, "title": "boom"},
            "/src/A.swift: boom",
        ),
        ({"title": "linker failed"}, "Unknown file: linker failed"),
        ({"documentURL": "", "title": "x"}, "Unknown file: x"),
    ],
)
def test_issue_formatting(fields, expected):
    assert format_issue(XCLogParserIssue.model_validate(fields)) == expected


def test_duplicates_collapse_in_first_seen_order():
    report = XCLogParserReport.model_validate({
        "errors": [
            {"documentURL": "/a.swift", "startingLineNumber": 1, "title": "e1"},
            {"documentURL": "/b.swift", "startingLineNumber": 2, "title": "e2"},
            {"documentURL": "/a.swift", "startingLineNumber": 1, "title": "e1"},
        ],
        "warnings": [
            {"title": "w"},
            {"title": "w"},
        ],
        "buildStatus": "failed",
    })

    result = extract_build_result(report)

    assert result.errors == ["/a.swift:1: e1", "/b.swift:2: e2"]
    assert result.warnings == ["Unknown file: w"]
    assert result.build_status == "failed"
    assert not result.succeeded


TREE = {
    "testNodes": [{
        "name": "AppTests",
        "nodeType": "Unit test bundle",
        "result": "Failed",
        "children": [{
            "name": "LoginTests",
            "nodeType": "Test Suite",
            "result": "Failed",
            "children": [
                {
                    "name": "testLogin()",
                    "nodeType": "Test Case",
                    "nodeIdentifier": "LoginTests/testLogin()",
                    "result": "Failed",
                    "durationInSeconds": 0.5,
                    "children": [{
                        "name": "LoginTests.swift:12: expected 1, got 2",
                        "nodeType": "Failure Message",
                        "result": "Failed",
                    }],
                },
                {
                    "name": "testLogout()",
                    "nodeType": "Test Case",
                    "nodeIdentifier": "LoginTests/testLogout()",
                    "result": "Passed",
                },
                {
                    "name": "testSlow()",
                    "nodeType": "Test Case",
                    "nodeIdentifier": "LoginTests/testSlow()",
                    "result": "Skipped",
                },
                {
                    "name": "testCrash()",
                    "nodeType": "Test Case",
                    "nodeIdentifier": "LoginTests/testCrash()",
                    "result": "Failed",
                },
            ],
        }],
    }],
}

SUMMARY = {
    "result": "Failed",
    "totalTestCount": 4,
    "passedTests": 1,
    "failedTests": 2,
    "skippedTests": 1,
    "startTime": 1000.0,
    "finishTime": 1075.0,
    "testFailures": [
        {"testName": "testCrash()", "failureText": "crashed",
         "testIdentifierString": "LoginTests/testCrash()"},
        {"testName": "testLogin()", "failureText": "summary text",
         "testIdentifierString": "LoginTests/testLogin()"},
    ],
}


def test_flatten_only_test_cases():
    passed, failed, skipped = flatten_tests(XCResultTests.model_validate(TREE))

    assert [t.name for t in passed] == ["testLogout()"]
    assert [t.name for t in failed] == ["testLogin()", "testCrash()"]
    assert [t.name for t in skipped] == ["testSlow()"]
    assert failed[0].identifier == "LoginTests/testLogin()"
    assert failed[0].duration == 0.5


def test_summary_with_tree():
    result = extract_test_summary(
        XCResultSummary.model_validate(SUMMARY),
        XCResultTests.model_validate(TREE),
    )

    assert (result.total, result.passed, result.failed, result.skipped) == (
        4, 1, 2, 1
    )
    assert result.duration_seconds == 75.0
    assert result.pass_rate == 25.0
    by_test = {f.test: f.message for f in result.failures}
    # Tree messages win; the summary fills in where the tree has none
    assert by_test["testLogin()"] == "LoginTests.swift:12: expected 1, got 2"
    assert by_test["testCrash()"] == "crashed"
    assert [t.name for t in result.skipped_tests] == ["testSlow()"]


def test_summary_without_tree_uses_summary_failures():
    result = extract_test_summary(XCResultSummary.model_validate(SUMMARY))

    assert [f.test for f in result.failures] == ["testCrash()", "testLogin()"]
    assert result.failed_tests == []


def test_missing_counts_default_to_zero():
    result = extract_test_summary(XCResultSummary.model_validate({}))

    assert result.total == 0
    assert result.pass_rate == 0.0
    assert result.duration_seconds is None
