"""
Artifact retrieval for the Testing Agent.

Serves filtered slices of run artifacts to external callers.
"""

from .models import (
    ActionSlice,
    ArtifactError,
    ArtifactFile,
    ArtifactKind,
    ArtifactRequest,
    LogSlice,
)
from .service import ArtifactRetrievalService, is_error, read_file_bytes

__all__ = [
    "ActionSlice",
    "ArtifactError",
    "ArtifactFile",
    "ArtifactKind",
    "ArtifactRequest",
    "LogSlice",
    "ArtifactRetrievalService",
    "is_error",
    "read_file_bytes",
]
