"""Filesystem artifact value objects."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel


class ProjectArtifactLocation(BaseModel):
    """A project and the output directory the IDE keeps for it."""

    project_path: Path
    output_dir: Path

    @property
    def build_logs_dir(self) -> Path:
        return self.output_dir / "Logs" / "Build"

    @property
    def test_logs_dir(self) -> Path:
        return self.output_dir / "Logs" / "Test"


class ArtifactHandle(BaseModel):
    """A build log file or test-result bundle at a point in time."""

    path: Path
    modification_time: float

    def is_fresh(self, trigger_time: float) -> bool:
        """True if this artifact was written after trigger_time.

        Freshness is decided by modification time alone: a build may
        overwrite the same filename, so path identity proves nothing.
        """
        return self.modification_time > trigger_time

    @classmethod
    def from_path(cls, path: Path) -> ArtifactHandle:
        """Stat path and build a handle; raises OSError if it is gone."""
        return cls(path=path, modification_time=path.stat().st_mtime)
