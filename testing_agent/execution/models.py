"""
Data models for test runs and their artifacts.

Defines Pydantic models for run results, action events, log records
and the artifact index of a run directory.
"""

import time
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


CONSOLE_LOG_FILE = "console.log"
NETWORK_LOG_FILE = "network.log"
ACTIONS_FILE = "actions.json"
TRACE_FILE = "trace.zip"
SCREENSHOT_SUFFIX = ".png"


class RunStatus(str, Enum):
    """Outcome of a run."""

    PASS = "PASS"
    FAIL = "FAIL"


class RunState(Enum):
    """Lifecycle states of the run engine."""

    INIT = "init"
    BROWSER_STARTING = "browser_starting"
    INSTRUMENTING = "instrumenting"
    TRACING = "tracing"
    EXECUTING = "executing"
    FINALIZING = "finalizing"
    DONE = "done"
    ERRORED = "errored"


class ActionType(str, Enum):
    """Kinds of action events recorded during a run."""

    SCREENSHOT = "screenshot"
    STEP_START = "step:start"
    STEP_END = "step:end"
    STEP_ERROR = "step:error"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class ActionEvent(BaseModel):
    """One discrete occurrence during a run."""

    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    type: ActionType = Field(..., description="Event kind")
    name: str = Field(..., description="Step or screenshot name")
    time: int = Field(default_factory=now_ms, description="Epoch milliseconds")
    error: Optional[str] = Field(None, description="Error text for step:error")

    def to_record(self) -> Dict[str, Any]:
        """JSON-ready record; ``error`` is only present on errors."""
        return self.model_dump(exclude_none=True)


class NetworkRecord(BaseModel):
    """One line of the network log."""

    model_config = ConfigDict(extra="forbid")

    time: str = Field(..., description="ISO timestamp")
    method: str = Field(..., description="HTTP method")
    url: str = Field(..., description="Request URL")
    status: Optional[int] = Field(None, description="Response status if any")
    failure: Optional[str] = Field(None, description="Failure text for failed requests")

    def to_record(self) -> Dict[str, Any]:
        record = self.model_dump()
        if record["failure"] is None:
            del record["failure"]
        return record


class LogFiles(BaseModel):
    """Presence of each log kind, by file name."""

    model_config = ConfigDict(extra="forbid")

    console: Optional[str] = None
    network: Optional[str] = None
    actions: Optional[str] = None


class ArtifactIndex(BaseModel):
    """Derived manifest of what a run directory contains."""

    model_config = ConfigDict(extra="forbid")

    run_id: str = Field(..., description="Run identifier")
    artifacts_dir: str = Field(..., description="Absolute run directory")
    screenshots: List[str] = Field(default_factory=list, description="Screenshot file names")
    logs: LogFiles = Field(default_factory=LogFiles, description="Log files present")
    trace: Optional[str] = Field(None, description="Trace file name if present")

    @property
    def screenshot_names(self) -> List[str]:
        """Screenshot names without the ``.png`` suffix, as ``screenshot`` requests take them."""
        return [s[: -len(SCREENSHOT_SUFFIX)] for s in self.screenshots]


class RunResult(BaseModel):
    """Result of one run as returned by the run engine."""

    model_config = ConfigDict(extra="forbid")

    status: RunStatus = Field(..., description="PASS or FAIL")
    run_id: str = Field(..., description="Run identifier")
    artifacts_dir: str = Field(..., description="Absolute run directory")
    critical_errors: List[str] = Field(
        default_factory=list, description="Console and page errors seen during the run"
    )
    error: Optional[str] = Field(None, description="Exception absorbed by the engine")
    dropped_writes: int = Field(0, ge=0, description="Log writes lost to I/O errors")
    duration: float = Field(0.0, ge=0, description="Run duration in seconds")

    @property
    def passed(self) -> bool:
        return self.status == RunStatus.PASS

    def to_summary(self) -> Dict[str, Any]:
        """Create a summary dictionary for logging."""
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "duration": self.duration,
            "critical_errors": len(self.critical_errors),
            "dropped_writes": self.dropped_writes,
            "has_error": bool(self.error),
        }


class RunSummary(BaseModel):
    """A run result together with its artifact index."""

    model_config = ConfigDict(extra="forbid")

    status: RunStatus
    run_id: str
    artifacts_dir: str
    critical_errors: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    index: ArtifactIndex

    def describe(self) -> str:
        """Short plain-text summary for a conversational agent."""
        trace = "available" if self.index.trace else "none"
        logs = self.index.logs.model_dump()
        return (
            "Test run summary:\n"
            f"Status: {self.status.value}\n"
            f"RunId: {self.run_id}\n"
            f"Critical errors: {len(self.critical_errors)}\n"
            f"Screenshots: {len(self.index.screenshots)}\n"
            f"Logs: {logs}\n"
            f"Trace: {trace}"
        )
