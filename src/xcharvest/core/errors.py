"""Failure taxonomy for the harvest pipelines.

Components raise these; the pipeline entry points catch HarvestError
and turn it into a HarvestFailure on the returned report.
"""

from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    """Classification of a harvest failure."""

    NOT_FOUND = "not_found"
    STALE = "stale"
    TRANSIENT_CORRUPTION = "transient_corruption"
    FATAL_DECODE_FAILURE = "fatal_decode_failure"
    TIMED_OUT = "timed_out"


class HarvestError(Exception):
    """Base class for classified harvest failures.

    Attributes:
        kind: Failure classification
        attempts: Number of attempts made before giving up
        diagnostics: Raw diagnostic text (decoder stderr etc.)
        guidance: Remediation hints for the user
    """

    kind: FailureKind = FailureKind.FATAL_DECODE_FAILURE

    def __init__(
        self,
        message: str,
        *,
        attempts: int = 0,
        diagnostics: str = "",
        guidance: list[str] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.attempts = attempts
        self.diagnostics = diagnostics
        self.guidance = guidance or []


class ArtifactNotFoundError(HarvestError):
    """No output directory, log or bundle exists yet."""

    kind = FailureKind.NOT_FOUND


class StaleArtifactError(HarvestError):
    """An operation was triggered but no fresh artifact appeared.

    The newest artifact that was seen (if any) predates the trigger.
    It is kept for diagnostics only and must never be reported as
    the operation's result.
    """

    kind = FailureKind.STALE

    def __init__(self, message: str, *, stale_candidate=None, **kwargs):
        super().__init__(message, **kwargs)
        self.stale_candidate = stale_candidate


class TransientCorruptionError(HarvestError):
    """Decoder reported an incomplete or corrupt read; retryable."""

    kind = FailureKind.TRANSIENT_CORRUPTION


class FatalDecodeError(HarvestError):
    """Decoder missing, exited unexpectedly, or retries ran out.

    Attributes:
        reason: One of "tool_not_installed", "unexpected_exit",
            "retries_exhausted"
    """

    kind = FailureKind.FATAL_DECODE_FAILURE

    def __init__(self, message: str, *, reason: str, **kwargs):
        super().__init__(message, **kwargs)
        self.reason = reason


class ReadinessTimedOutError(HarvestError):
    """A bounded wait expired before the artifact became readable."""

    kind = FailureKind.TIMED_OUT

    def __init__(self, message: str, *, phase: str, **kwargs):
        super().__init__(message, **kwargs)
        self.phase = phase


class ToolNotInstalledError(RuntimeError):
    """Raised by decoders when their executable cannot be spawned."""

    def __init__(self, tool: str, detail: str = ""):
        super().__init__(f"{tool} is not installed or not on PATH")
        self.tool = tool
        self.detail = detail


__all__ = [
    "FailureKind",
    "HarvestError",
    "ArtifactNotFoundError",
    "StaleArtifactError",
    "TransientCorruptionError",
    "FatalDecodeError",
    "ReadinessTimedOutError",
    "ToolNotInstalledError",
]
