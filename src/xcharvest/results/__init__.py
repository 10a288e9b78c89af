"""Result models, extraction and formatting."""

from xcharvest.results.models import (
    BuildHarvest,
    DecodedBuildResult,
    HarvestFailure,
    TestHarvest,
    TestResultSummary,
)

__all__ = [
    "BuildHarvest",
    "DecodedBuildResult",
    "HarvestFailure",
    "TestHarvest",
    "TestResultSummary",
]
