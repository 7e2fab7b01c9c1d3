"""
Artifact retrieval service.

Serves slices of a run's artifacts by ``run id -> kind -> name/filter``.
Every failure is returned as an ArtifactError value; nothing is raised
across the service boundary.
"""

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import (
    ArtifactNotFoundError,
    InvalidArtifactKindError,
    InvalidArtifactRequestError,
    TestingAgentError,
)
from ..core.logging_config import get_logger
from ..execution.artifacts import ArtifactStore, build_artifact_index
from ..execution.models import (
    ACTIONS_FILE,
    CONSOLE_LOG_FILE,
    NETWORK_LOG_FILE,
    SCREENSHOT_SUFFIX,
    TRACE_FILE,
    RunResult,
    RunSummary,
)
from .models import (
    ActionSlice,
    ArtifactError,
    ArtifactFile,
    ArtifactKind,
    ArtifactRequest,
    ArtifactResponse,
    LogSlice,
)

LINE_LOG_FILES = {
    ArtifactKind.CONSOLE: CONSOLE_LOG_FILE,
    ArtifactKind.NETWORK: NETWORK_LOG_FILE,
}


def parse_kind(kind: Any) -> ArtifactKind:
    """Map a raw kind value onto ArtifactKind."""
    try:
        return ArtifactKind(kind)
    except ValueError:
        raise InvalidArtifactKindError(
            f"Invalid kind: {kind}. Must be one of {[k.value for k in ArtifactKind]}",
            kind=str(kind),
        )


def filter_and_tail(items: List[Any], render: Callable[[Any], str], needle: Optional[str], limit: Optional[int]):
    """Case-insensitive substring filter on ``render(item)``, then keep the last ``limit``."""
    if needle:
        lowered = needle.lower()
        items = [item for item in items if lowered in render(item).lower()]
    total = len(items)
    if limit:
        items = items[-limit:]
    return items, total


class ArtifactRetrievalService:
    """
    Read-only access to the artifacts of completed or running runs.

    Args:
        store: Artifact store resolving run identifiers to directories
    """

    def __init__(self, store: ArtifactStore):
        self.store = store
        self.logger = get_logger(__name__)
        self._handlers: Dict[ArtifactKind, Callable[[Path, ArtifactRequest], ArtifactResponse]] = {
            ArtifactKind.INDEX: self._get_index,
            ArtifactKind.SCREENSHOT: self._get_screenshot,
            ArtifactKind.CONSOLE: self._get_line_log,
            ArtifactKind.NETWORK: self._get_line_log,
            ArtifactKind.ACTIONS: self._get_actions,
            ArtifactKind.TRACE: self._get_trace,
        }

    @property
    def supported_kinds(self) -> List[ArtifactKind]:
        return list(self._handlers)

    def get_artifact(
        self,
        run_id: str,
        kind: str,
        name: Optional[str] = None,
        filter: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> ArtifactResponse:
        """
        Retrieve an artifact slice.

        Args:
            run_id: Run identifier
            kind: One of the ArtifactKind values
            name: Screenshot name without ``.png`` (screenshot only)
            filter: Case-insensitive substring filter (console, network, actions)
            limit: Keep only the most recent N entries after filtering

        Returns:
            The requested payload, or an ArtifactError
        """
        try:
            request = ArtifactRequest(
                run_id=run_id, kind=kind, name=name, filter=filter, limit=limit
            )
        except PydanticValidationError as e:
            return self._invalid_request(e)
        return self.handle(request)

    def handle_payload(self, payload: Dict[str, Any]) -> ArtifactResponse:
        """Retrieve from a raw request mapping as received by a transport."""
        try:
            request = ArtifactRequest.model_validate(payload)
        except PydanticValidationError as e:
            return self._invalid_request(e)
        return self.handle(request)

    def handle(self, request: ArtifactRequest) -> ArtifactResponse:
        """Dispatch a validated request. The run is resolved before the kind is read."""
        try:
            run_dir = self.store.resolve_run_dir(request.run_id)
            kind = parse_kind(request.kind)
            return self._handlers[kind](run_dir, request)
        except TestingAgentError as e:
            self.logger.debug(
                f"Artifact request failed: {e.message}",
                extra={"metadata": {"run_id": request.run_id, "kind": request.kind, **e.to_dict()}},
            )
            return ArtifactError(error=e.message, error_code=e.error_code)
        except (OSError, ValueError) as e:
            self.logger.warning(f"Failed to read artifact for run {request.run_id}: {e}")
            return ArtifactError(
                error=f"{request.kind} could not be read: {e}",
                error_code="ArtifactNotFound",
            )

    def _invalid_request(self, e: PydanticValidationError) -> ArtifactError:
        violations = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        error = InvalidArtifactRequestError(
            "Invalid artifact request: " + "; ".join(violations),
            violations=violations,
        )
        return ArtifactError(error=error.message, error_code=error.error_code)

    def _get_index(self, run_dir: Path, request: ArtifactRequest) -> ArtifactResponse:
        return build_artifact_index(run_dir)

    def _get_screenshot(self, run_dir: Path, request: ArtifactRequest) -> ArtifactResponse:
        if not request.name:
            raise InvalidArtifactRequestError(
                "name is required for screenshot", field_name="name"
            )
        name = request.name
        if name.endswith(SCREENSHOT_SUFFIX):
            name = name[: -len(SCREENSHOT_SUFFIX)]
        if "/" in name or "\\" in name:
            raise ArtifactNotFoundError(
                "screenshot not found", run_id=run_dir.name, kind="screenshot", name=name
            )
        return self._file(run_dir, ArtifactKind.SCREENSHOT, f"{name}{SCREENSHOT_SUFFIX}", "image/png")

    def _get_trace(self, run_dir: Path, request: ArtifactRequest) -> ArtifactResponse:
        return self._file(run_dir, ArtifactKind.TRACE, TRACE_FILE, "application/zip")

    def _file(self, run_dir: Path, kind: ArtifactKind, file_name: str, mime_type: str) -> ArtifactFile:
        path = run_dir / file_name
        if not path.is_file():
            raise ArtifactNotFoundError(
                f"{kind.value} not found", run_id=run_dir.name, kind=kind.value, name=file_name
            )
        return ArtifactFile(
            kind=kind,
            name=file_name,
            path=str(path.resolve()),
            mime_type=mime_type,
            size=path.stat().st_size,
        )

    def _get_line_log(self, run_dir: Path, request: ArtifactRequest) -> ArtifactResponse:
        kind = ArtifactKind(request.kind)
        path = run_dir / LINE_LOG_FILES[kind]
        if not path.is_file():
            raise ArtifactNotFoundError(
                "log not found", run_id=run_dir.name, kind=kind.value, name=path.name
            )
        text = path.read_text(encoding="utf-8", errors="replace")
        lines = [line for line in text.splitlines() if line]
        lines, total = filter_and_tail(lines, str, request.filter, request.limit)
        return LogSlice(kind=kind, lines=lines, total=total)

    def _get_actions(self, run_dir: Path, request: ArtifactRequest) -> ArtifactResponse:
        path = run_dir / ACTIONS_FILE
        if not path.is_file():
            raise ArtifactNotFoundError(
                "log not found", run_id=run_dir.name, kind="actions", name=ACTIONS_FILE
            )
        try:
            parsed = json.loads(path.read_text(encoding="utf-8", errors="replace"))
        except ValueError:
            raise ArtifactNotFoundError(
                "actions log is unreadable", run_id=run_dir.name, kind="actions", name=ACTIONS_FILE
            )
        if isinstance(parsed, dict):
            parsed = parsed.get("actions", [])
        if not isinstance(parsed, list):
            parsed = []
        events, total = filter_and_tail(
            parsed,
            lambda record: json.dumps(record, ensure_ascii=False, separators=(",", ":")),
            request.filter,
            request.limit,
        )
        return ActionSlice(events=events, total=total)

    def summarize(self, result: RunResult) -> RunSummary:
        """Attach the current artifact index to a run result."""
        return RunSummary(
            status=result.status,
            run_id=result.run_id,
            artifacts_dir=result.artifacts_dir,
            critical_errors=result.critical_errors,
            error=result.error,
            index=build_artifact_index(result.artifacts_dir),
        )


def read_file_bytes(artifact: ArtifactFile) -> bytes:
    """Contents of a file artifact, for transports that ship bytes."""
    return Path(artifact.path).read_bytes()


def is_error(response: ArtifactResponse) -> bool:
    return isinstance(response, ArtifactError)
