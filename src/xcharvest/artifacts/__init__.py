"""Locating and watching IDE output artifacts."""

from xcharvest.artifacts.locator import ArtifactLocator
from xcharvest.artifacts.models import ArtifactHandle, ProjectArtifactLocation
from xcharvest.artifacts.stability import StabilityDetector
from xcharvest.artifacts.watcher import BuildLogWatcher

__all__ = [
    "ArtifactHandle",
    "ArtifactLocator",
    "BuildLogWatcher",
    "ProjectArtifactLocation",
    "StabilityDetector",
]
