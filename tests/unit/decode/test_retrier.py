"""Tests for decoder retry classification and backoff."""

import asyncio
import json

import pytest

from fakes import ScriptedLogDecoder, run
from xcharvest.core.config import DecoderConfig
from xcharvest.core.errors import (
    FailureKind,
    FatalDecodeError,
    ToolNotInstalledError,
)
from xcharvest.decode.retrier import DecodeRetrier
from xcharvest.decode.xclogparser import INSTALL_GUIDANCE, parse_issues_report

REPORT = json.dumps({"errors": [], "warnings": []})


@pytest.fixture
def retrier(clock):
    return DecodeRetrier(DecoderConfig(), clock)


def _decode(retrier, decoder, path="build.xcactivitylog"):
    return asyncio.run(
        retrier.run(
            lambda: decoder.decode(path),
            parse_issues_report,
            what="build log",
            guidance=INSTALL_GUIDANCE,
        )
    )


def test_recovers_after_transient_failures(retrier, clock):
    decoder = ScriptedLogDecoder(
        run(exit_code=1, stderr="error: log is corrupted"),
        run(exit_code=1, stderr="Incomplete file"),
        run(stdout=REPORT),
    )

    report = _decode(retrier, decoder)

    assert report.errors == []
    assert len(decoder.calls) == 3
    assert clock.sleeps == [1, 2]


def test_retries_are_bounded(retrier, clock):
    decoder = ScriptedLogDecoder(run(exit_code=1, stderr="Invalid log"))

    with pytest.raises(FatalDecodeError) as exc_info:
        _decode(retrier, decoder)

    error = exc_info.value
    assert error.kind == FailureKind.FATAL_DECODE_FAILURE
    assert error.reason == "retries_exhausted"
    assert error.attempts == 7
    assert len(decoder.calls) == 7
    assert clock.sleeps == [1, 2, 3, 5, 8, 13]
    assert "Invalid log" in error.diagnostics


def test_missing_tool_is_fatal_at_once(retrier, clock):
    decoder = ScriptedLogDecoder(ToolNotInstalledError("xclogparser"))

    with pytest.raises(FatalDecodeError) as exc_info:
        _decode(retrier, decoder)

    error = exc_info.value
    assert error.reason == "tool_not_installed"
    assert error.attempts == 1
    assert error.guidance == INSTALL_GUIDANCE
    assert any("brew install xclogparser" in g for g in error.guidance)
    assert clock.sleeps == []


def test_unknown_exit_is_fatal_at_once(retrier, clock):
    decoder = ScriptedLogDecoder(run(exit_code=2, stderr="segmentation fault"))

    with pytest.raises(FatalDecodeError) as exc_info:
        _decode(retrier, decoder)

    assert exc_info.value.reason == "unexpected_exit"
    assert exc_info.value.attempts == 1
    assert "segmentation fault" in exc_info.value.diagnostics
    assert clock.sleeps == []


def test_unparseable_output_is_transient(retrier, clock):
    decoder = ScriptedLogDecoder(
        run(stdout='{"errors": ['),
        run(stdout=""),
        run(stdout=REPORT),
    )

    _decode(retrier, decoder)

    assert len(decoder.calls) == 3
    assert clock.sleeps == [1, 2]


def test_timed_out_run_is_transient(retrier, clock):
    decoder = ScriptedLogDecoder(
        run(exit_code=-1, timed_out=True), run(stdout=REPORT)
    )

    _decode(retrier, decoder)

    assert clock.sleeps == [1]


def test_transient_markers_are_case_insensitive(retrier):
    assert retrier.is_transient("NOT A VALID SLF LOG")
    assert retrier.is_transient("Error while parsing section 3")
    assert not retrier.is_transient("permission denied")


def test_last_delay_repeats(clock):
    retrier = DecodeRetrier(
        DecoderConfig(retry_delays=[1, 2], max_retries=4), clock
    )
    decoder = ScriptedLogDecoder(run(exit_code=1, stderr="corrupted"))

    with pytest.raises(FatalDecodeError) as exc_info:
        _decode(retrier, decoder)

    assert exc_info.value.attempts == 5
    assert clock.sleeps == [1, 2, 2, 2]
