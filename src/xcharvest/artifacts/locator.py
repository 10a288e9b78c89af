"""Locate the DerivedData directory that belongs to a project."""

from __future__ import annotations

import os
import plistlib
from pathlib import Path

from xcharvest.artifacts.models import ArtifactHandle, ProjectArtifactLocation
from xcharvest.core.config import DerivedDataConfig
from xcharvest.core.errors import ToolNotInstalledError
from xcharvest.core.log import logger
from xcharvest.core.runner import Runner

PROJECT_SUFFIXES = (".xcodeproj", ".xcworkspace")
DEFAULT_DERIVED_DATA = Path("~/Library/Developer/Xcode/DerivedData")


def _absolute(path: Path | str) -> Path:
    return Path(os.path.abspath(os.path.expanduser(str(path))))


class ArtifactLocator:
    """Resolve project paths to their output directories.

    Several DerivedData folders can share a project name prefix
    (Foo-abcd, Foo-efgh) when projects with the same name live in
    different places. The folder's info.plist records the workspace
    it was built from, which is what disambiguates them.
    """

    def __init__(
        self,
        config: DerivedDataConfig | None = None,
        runner: Runner | None = None,
    ):
        self.config = config or DerivedDataConfig()
        self.runner = runner or Runner()

    @staticmethod
    def project_name_and_dir(project_path: Path) -> tuple[str, Path]:
        """Return the project's base name and its containing directory.

        Accepts either a .xcodeproj/.xcworkspace bundle or a directory
        holding one.
        """
        project_path = _absolute(project_path)
        if project_path.suffix in PROJECT_SUFFIXES:
            return project_path.stem, project_path.parent

        try:
            for entry in sorted(project_path.iterdir()):
                if entry.suffix in PROJECT_SUFFIXES:
                    return entry.stem, project_path
        except OSError as e:
            logger.debug(
                "Cannot list project directory; using its name",
                project=str(project_path),
                error=str(e),
            )
        return project_path.stem, project_path

    def ide_preference_location(self) -> str | None:
        """Read IDECustomDerivedDataLocation from the IDE defaults."""
        try:
            result = self.runner.execute(
                [
                    "defaults",
                    "read",
                    "com.apple.dt.Xcode",
                    "IDECustomDerivedDataLocation",
                ],
                timeout=10,
            )
        except ToolNotInstalledError:
            return None
        if result.success and result.stdout.strip():
            return result.stdout.strip()
        return None

    def derived_data_root(self, project_path: Path) -> Path:
        """Work out which DerivedData root applies to a project."""
        if self.config.root is not None:
            return _absolute(self.config.root)

        custom = (
            self.ide_preference_location()
            if self.config.read_ide_preference
            else None
        )
        if custom:
            if custom.startswith("/"):
                return Path(custom)
            # Relative locations are relative to the project's folder
            return _absolute(_absolute(project_path).parent / custom)

        return _absolute(DEFAULT_DERIVED_DATA)

    def recorded_workspace(self, candidate: Path) -> Path | None:
        """Return the workspace path recorded in a candidate's metadata."""
        metadata = candidate / self.config.metadata_file
        try:
            with open(metadata, "rb") as f:
                data = plistlib.load(f)
        except (OSError, plistlib.InvalidFileException, ValueError) as e:
            logger.debug(
                "Skipping candidate with unreadable metadata",
                candidate=str(candidate),
                error=str(e),
            )
            return None

        recorded = data.get(self.config.workspace_key)
        if not isinstance(recorded, str) or not recorded:
            return None
        return _absolute(recorded)

    def locate(self, project_path: Path | str) -> ProjectArtifactLocation | None:
        """Find the output directory for project_path.

        Returns:
            The location, or None when no build has produced one yet
        """
        project_path = Path(project_path)
        name, project_dir = self.project_name_and_dir(project_path)
        root = self.derived_data_root(project_path)

        try:
            candidates = sorted(
                entry for entry in root.iterdir()
                if entry.is_dir() and entry.name.startswith(f"{name}-")
            )
        except FileNotFoundError:
            logger.debug("DerivedData root does not exist", root=str(root))
            return None
        except OSError as e:
            logger.warning(
                "Cannot read DerivedData root", root=str(root), error=str(e)
            )
            return None

        contained = None
        for candidate in candidates:
            recorded = self.recorded_workspace(candidate)
            if recorded is None:
                continue
            if recorded == project_dir or recorded.parent == project_dir:
                return self._found(project_path, candidate)
            if contained is None and (
                recorded.is_relative_to(project_dir)
                or project_dir.is_relative_to(recorded)
            ):
                contained = candidate

        if contained is not None:
            return self._found(project_path, contained)

        logger.debug(
            "No output directory matches project",
            project=str(project_path),
            candidates=len(candidates),
        )
        return None

    @staticmethod
    def _found(project_path: Path, output_dir: Path) -> ProjectArtifactLocation:
        logger.debug(
            "Located output directory",
            project=str(project_path),
            output_dir=str(output_dir),
        )
        return ProjectArtifactLocation(
            project_path=project_path, output_dir=output_dir
        )


def list_artifacts(directory: Path, suffix: str) -> list[ArtifactHandle]:
    """Handles for every entry in directory ending in suffix.

    Entries that vanish between listing and stat are skipped; a
    missing or unreadable directory yields an empty list.
    """
    handles = []
    try:
        entries = list(directory.iterdir())
    except OSError as e:
        logger.debug(
            "Artifact directory unreadable", directory=str(directory),
            error=str(e),
        )
        return handles

    for entry in entries:
        if not entry.name.endswith(suffix):
            continue
        try:
            handles.append(ArtifactHandle.from_path(entry))
        except OSError as e:
            logger.debug(
                "Artifact vanished before stat", path=str(entry), error=str(e)
            )
            continue
    return handles


def latest_artifact(directory: Path, suffix: str) -> ArtifactHandle | None:
    """The most recently modified artifact, fresh or not."""
    handles = list_artifacts(directory, suffix)
    if not handles:
        return None
    return max(handles, key=lambda h: h.modification_time)


def artifacts_since(
    directory: Path, suffix: str, since: float
) -> list[ArtifactHandle]:
    """Artifacts modified strictly after since, newest first.

    Never falls back to older artifacts.
    """
    fresh = [
        h for h in list_artifacts(directory, suffix) if h.is_fresh(since)
    ]
    return sorted(fresh, key=lambda h: h.modification_time, reverse=True)
