"""Tests for the command line front end."""

import tempfile
from pathlib import Path

import pytest
from pydantic_settings import CliApp

from xcharvest import cli
from xcharvest.core.errors import FailureKind
from xcharvest.core.log import ConsoleSink, setup_logger
from xcharvest.results.models import (
    BuildHarvest,
    DecodedBuildResult,
    HarvestFailure,
    TestHarvest,
    TestResultSummary,
)


@pytest.fixture(autouse=True)
def cli_environment(tmp_path, monkeypatch, mock_argv):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("XCHARVEST_LOG_ROOT", str(tmp_path / "logs"))
    yield
    setup_logger(
        log_root=Path(tempfile.gettempdir()) / "xcharvest-tests",
        session_name="test",
        console=ConsoleSink(level="debug"),
    )


def _stub(monkeypatch, name, harvest, seen):
    async def fake(session, project, since, *args):
        seen.update(project=project, since=since, args=args)
        return harvest

    monkeypatch.setattr(cli, name, fake)


def test_build_success_exits_zero(monkeypatch, capsys, tmp_path):
    seen = {}
    _stub(
        monkeypatch, "harvest_build_log",
        BuildHarvest(result=DecodedBuildResult()), seen,
    )

    with pytest.raises(SystemExit) as exc_info:
        CliApp.run(
            cli.CliSettings,
            cli_args=["build", "--project", str(tmp_path), "--since", "100"],
        )

    assert exc_info.value.code == 0
    assert seen["since"] == 100
    assert seen["project"] == tmp_path
    assert "BUILD SUCCESSFUL" in capsys.readouterr().out


def test_build_errors_exit_one(monkeypatch, capsys, tmp_path):
    _stub(
        monkeypatch, "harvest_build_log",
        BuildHarvest(result=DecodedBuildResult(errors=["a.swift:1: e"])), {},
    )

    with pytest.raises(SystemExit) as exc_info:
        CliApp.run(
            cli.CliSettings, cli_args=["build", "--project", str(tmp_path)]
        )

    assert exc_info.value.code == 1
    assert "BUILD FAILED (1 errors)" in capsys.readouterr().out


def test_tests_passes_expected_duration(monkeypatch, capsys, tmp_path):
    seen = {}
    summary = TestResultSummary(total=2, passed=2, result="Passed")
    _stub(monkeypatch, "harvest_test_results", TestHarvest(result=summary), seen)

    with pytest.raises(SystemExit) as exc_info:
        CliApp.run(
            cli.CliSettings,
            cli_args=[
                "tests", "--project", str(tmp_path),
                "--expected_duration", "90",
            ],
        )

    assert exc_info.value.code == 0
    assert seen["args"] == (90.0,)
    assert "Pass Rate: 100.0%" in capsys.readouterr().out


def test_failed_harvest_exits_one(monkeypatch, capsys, tmp_path):
    failure = HarvestFailure(
        kind=FailureKind.TIMED_OUT, message="bundle never became readable"
    )
    _stub(monkeypatch, "harvest_test_results", TestHarvest(failure=failure), {})

    with pytest.raises(SystemExit) as exc_info:
        CliApp.run(
            cli.CliSettings, cli_args=["tests", "--project", str(tmp_path)]
        )

    assert exc_info.value.code == 1
    assert "FAILED (timed_out)" in capsys.readouterr().out
