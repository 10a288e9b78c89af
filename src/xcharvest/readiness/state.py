"""State carried through the readiness graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from xcharvest.core.clock import Clock, Deadline
from xcharvest.core.config import ReadinessConfig
from xcharvest.core.log import logger
from xcharvest.decode.xcresulttool import ResultBundleTool, XCResultSummary


class ReadinessPhase(str, Enum):
    """Phases a test-result bundle goes through before it can be read."""

    STAGING = "staging"
    FILES_APPEARING = "files_appearing"
    SIZE_STABILIZING = "size_stabilizing"
    READY_TO_READ = "ready_to_read"
    TIMED_OUT = "timed_out"


class PhaseTransition(BaseModel):
    """Entry into a phase.

    Attributes:
        at: Wall-clock time of entry
        elapsed: Seconds since the protocol started
    """

    phase: ReadinessPhase
    at: float
    elapsed: float


@dataclass
class ReadinessDeps:
    """Collaborators shared by every readiness node."""

    config: ReadinessConfig
    clock: Clock
    tool: ResultBundleTool


@dataclass
class ReadinessState:
    """Mutable progress of one bundle through the protocol."""

    bundle: Path
    expected_duration: float | None = None
    deadline: Deadline | None = None
    started: float = 0.0
    transitions: list[PhaseTransition] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    total_bytes: int = 0
    validation_attempts: int = 0
    last_diagnostics: str = ""

    @property
    def phase(self) -> ReadinessPhase | None:
        return self.transitions[-1].phase if self.transitions else None

    @property
    def phases(self) -> list[ReadinessPhase]:
        return [t.phase for t in self.transitions]

    def enter(self, phase: ReadinessPhase, clock: Clock) -> None:
        elapsed = clock.monotonic() - self.started
        self.transitions.append(
            PhaseTransition(phase=phase, at=clock.time(), elapsed=elapsed)
        )
        logger.debug(
            "Readiness phase",
            bundle=str(self.bundle),
            phase=phase.value,
            elapsed=round(elapsed, 3),
        )

    def transition_at(self, phase: ReadinessPhase) -> PhaseTransition | None:
        """First entry into phase, if it happened."""
        for transition in self.transitions:
            if transition.phase == phase:
                return transition
        return None


class ReadinessOutcome(BaseModel):
    """A bundle that passed validation, with how it got there."""

    summary: XCResultSummary
    transitions: list[PhaseTransition] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    total_bytes: int = 0
    validation_attempts: int = 0


__all__ = [
    "ReadinessPhase",
    "PhaseTransition",
    "ReadinessDeps",
    "ReadinessState",
    "ReadinessOutcome",
]
