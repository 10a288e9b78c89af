"""Readiness state machine for test-result bundles."""

from xcharvest.readiness.graph import ReadinessProtocol, create_readiness_graph
from xcharvest.readiness.state import ReadinessPhase, ReadinessState

__all__ = [
    "ReadinessProtocol",
    "create_readiness_graph",
    "ReadinessPhase",
    "ReadinessState",
]
