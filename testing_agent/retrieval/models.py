"""
Request and response models for artifact retrieval.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from ..execution.models import ArtifactIndex


class ArtifactKind(str, Enum):
    """Closed set of artifact kinds a run can be asked for."""

    INDEX = "index"
    SCREENSHOT = "screenshot"
    CONSOLE = "console"
    NETWORK = "network"
    ACTIONS = "actions"
    TRACE = "trace"


class ArtifactRequest(BaseModel):
    """Transport-agnostic retrieval request ``{runId, kind, name?, filter?, limit?}``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    run_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("run_id", "runId"),
        description="Run identifier",
    )
    # Kept as a plain string: unknown kinds are reported after the run lookup
    kind: str = Field(..., description="Artifact kind")
    name: Optional[str] = Field(None, description="Screenshot name without .png")
    filter: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("filter", "grep"),
        description="Case-insensitive substring filter",
    )
    limit: Optional[int] = Field(
        None, ge=1, description="Keep only the most recent N entries after filtering"
    )


class ArtifactFile(BaseModel):
    """Reference to a binary artifact on disk."""

    model_config = ConfigDict(extra="forbid")

    kind: ArtifactKind
    name: str
    path: str
    mime_type: str
    size: int = Field(..., ge=0)


class LogSlice(BaseModel):
    """Filtered tail of a line-oriented log."""

    model_config = ConfigDict(extra="forbid")

    kind: ArtifactKind
    lines: List[str] = Field(default_factory=list)
    total: int = Field(0, ge=0, description="Matching lines before the limit was applied")

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


class ActionSlice(BaseModel):
    """Filtered tail of the action log."""

    model_config = ConfigDict(extra="forbid")

    kind: ArtifactKind = ArtifactKind.ACTIONS
    events: List[Dict[str, Any]] = Field(default_factory=list)
    total: int = Field(0, ge=0, description="Matching events before the limit was applied")


class ArtifactError(BaseModel):
    """Structured retrieval failure."""

    model_config = ConfigDict(extra="forbid")

    error: str = Field(..., description="Human-readable message")
    error_code: str = Field(..., description="RunNotFound, ArtifactNotFound, ...")


ArtifactResponse = Union[ArtifactIndex, ArtifactFile, LogSlice, ActionSlice, ArtifactError]
