"""Core components for the Testing Agent."""

from .config import Config
from .exceptions import (
    TestingAgentError,
    ScriptNotFoundError,
    InvalidScriptShapeError,
    BrowserStartError,
    RunNotFoundError,
    ArtifactNotFoundError,
    InvalidArtifactKindError,
    InvalidArtifactRequestError,
    ValidationError,
)
from .logging_config import setup_logging, get_logger

__all__ = [
    "Config",
    "TestingAgentError",
    "ScriptNotFoundError",
    "InvalidScriptShapeError",
    "BrowserStartError",
    "RunNotFoundError",
    "ArtifactNotFoundError",
    "InvalidArtifactKindError",
    "InvalidArtifactRequestError",
    "ValidationError",
    "setup_logging",
    "get_logger",
]
