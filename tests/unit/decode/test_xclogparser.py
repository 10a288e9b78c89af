"""Tests for the xclogparser wrapper and report schema."""

import json
from pathlib import Path
from unittest.mock import Mock

import pytest

from fakes import run
from xcharvest.core.config import DecoderConfig
from xcharvest.core.errors import ToolNotInstalledError
from xcharvest.decode.xclogparser import XCLogParser, parse_issues_report


def test_report_fields_and_aliases():
    report = parse_issues_report(run(stdout=json.dumps({
        "errors": [{
            "documentURL": "file:///src/App.swift",
            "startingLineNumber": 12,
            "startingColumnNumber": 4,
            "title": "Cannot find 'x' in scope",
            "severity": 2,
        }],
        "warnings": None,
        "buildStatus": "failed",
    })))

    assert report.build_status == "failed"
    assert report.warnings == []
    issue = report.errors[0]
    assert issue.document_url == "file:///src/App.swift"
    assert issue.line == 12
    assert issue.column == 4
    assert issue.title == "Cannot find 'x' in scope"


def test_missing_issue_fields_default():
    report = parse_issues_report(
        run(stdout='{"errors": [{"title": null}, {}]}')
    )

    assert [i.title for i in report.errors] == ["", ""]
    assert report.errors[0].document_url is None
    assert report.errors[1].line is None
    assert report.build_status is None


def test_empty_output_is_an_error():
    with pytest.raises(ValueError):
        parse_issues_report(run(stdout="  \n"))


def test_non_object_is_an_error():
    with pytest.raises(ValueError):
        parse_issues_report(run(stdout="[1, 2]"))


def test_decode_command_line():
    runner = Mock()
    runner.execute.return_value = run(stdout="{}")
    decoder = XCLogParser(DecoderConfig(timeout=42), runner)

    decoder.decode(Path("/logs/a.xcactivitylog"))

    argv = runner.execute.call_args[0][0]
    assert argv == [
        "xclogparser", "parse",
        "--file", "/logs/a.xcactivitylog",
        "--reporter", "issues",
    ]
    assert runner.execute.call_args[1]["timeout"] == 42


def test_exit_127_means_not_installed():
    runner = Mock()
    runner.execute.return_value = run(exit_code=127, stderr="not found")
    decoder = XCLogParser(DecoderConfig(), runner)

    with pytest.raises(ToolNotInstalledError):
        decoder.decode(Path("/logs/a.xcactivitylog"))
