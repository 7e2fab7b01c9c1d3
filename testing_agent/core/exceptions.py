"""
Base exception classes for the Testing Agent.

Provides a hierarchy of exceptions for the errors that can occur while
loading scripts, running them in a browser, and retrieving run artifacts.
"""

from typing import Optional, Dict, Any


class TestingAgentError(Exception):
    """Base exception class for all Testing Agent errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
        }


class ScriptNotFoundError(TestingAgentError):
    """Raised when the script path does not exist."""

    def __init__(self, message: str, script_path: Optional[str] = None):
        super().__init__(message, "ScriptNotFound")
        self.script_path = script_path
        self.context.update({"script_path": script_path})


class InvalidScriptShapeError(TestingAgentError):
    """Raised when a script cannot be imported or exports no runner."""

    def __init__(
        self,
        message: str,
        script_path: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        super().__init__(message, "InvalidScriptShape")
        self.script_path = script_path
        self.reason = reason
        self.context.update(
            {
                "script_path": script_path,
                "reason": reason,
            }
        )


class BrowserStartError(TestingAgentError):
    """Raised when the browser, its context or its page cannot be opened."""

    def __init__(
        self,
        message: str,
        browser_name: Optional[str] = None,
        stage: Optional[str] = None,
    ):
        super().__init__(message, "BrowserStartFailure")
        self.browser_name = browser_name
        self.stage = stage
        self.context.update(
            {
                "browser_name": browser_name,
                "stage": stage,
            }
        )


class RunNotFoundError(TestingAgentError):
    """Raised when no directory exists for a run identifier."""

    def __init__(self, message: str, run_id: Optional[str] = None):
        super().__init__(message, "RunNotFound")
        self.run_id = run_id
        self.context.update({"run_id": run_id})


class ArtifactNotFoundError(TestingAgentError):
    """Raised when a requested artifact has no file in the run directory."""

    def __init__(
        self,
        message: str,
        run_id: Optional[str] = None,
        kind: Optional[str] = None,
        name: Optional[str] = None,
    ):
        super().__init__(message, "ArtifactNotFound")
        self.run_id = run_id
        self.kind = kind
        self.name = name
        self.context.update(
            {
                "run_id": run_id,
                "kind": kind,
                "name": name,
            }
        )


class InvalidArtifactKindError(TestingAgentError):
    """Raised when an artifact kind is not recognized."""

    def __init__(self, message: str, kind: Optional[str] = None):
        super().__init__(message, "InvalidArtifactKind")
        self.kind = kind
        self.context.update({"kind": kind})


class InvalidArtifactRequestError(TestingAgentError):
    """Raised when an artifact request is malformed or misses a required field."""

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        violations: Optional[list] = None,
    ):
        super().__init__(message, "InvalidArtifactRequest")
        self.field_name = field_name
        self.violations = violations or []
        self.context.update(
            {
                "field": field_name,
                "violations": violations,
            }
        )


class ValidationError(TestingAgentError):
    """Raised when configuration validation fails."""

    def __init__(
        self,
        message: str,
        validation_type: Optional[str] = None,
        violations: Optional[list] = None,
    ):
        super().__init__(message, "VALIDATION_FAILED")
        self.validation_type = validation_type
        self.violations = violations or []
        self.context.update(
            {
                "validation_type": validation_type,
                "violations": violations,
            }
        )
