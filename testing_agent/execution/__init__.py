"""
Test run components for the Testing Agent.

This module provides script loading, browser instrumentation, step
recording, the run engine and run directory storage.
"""

from .artifacts import ArtifactStore, build_artifact_index, generate_run_id
from .engine import RunEngine, run_test
from .loader import load_script
from .models import (
    ActionEvent,
    ActionType,
    ArtifactIndex,
    RunResult,
    RunState,
    RunStatus,
    RunSummary,
)

__all__ = [
    "ArtifactStore",
    "build_artifact_index",
    "generate_run_id",
    "RunEngine",
    "run_test",
    "load_script",
    "ActionEvent",
    "ActionType",
    "ArtifactIndex",
    "RunResult",
    "RunState",
    "RunStatus",
    "RunSummary",
]
