"""
Run directory storage and artifact indexing.

Each run owns one directory under the runs root, named by its run
identifier. The artifact index of a run is never stored; it is rebuilt
from the directory contents every time it is requested.
"""

import shutil
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..core.config import Config
from ..core.exceptions import RunNotFoundError
from ..core.logging_config import get_logger, log_performance
from .models import (
    ACTIONS_FILE,
    CONSOLE_LOG_FILE,
    NETWORK_LOG_FILE,
    SCREENSHOT_SUFFIX,
    TRACE_FILE,
    ArtifactIndex,
    LogFiles,
)

RUN_ID_FORMAT = "%Y-%m-%d-%H-%M-%S"
RUN_ID_LENGTH = 19


def generate_run_id(moment: Optional[datetime] = None) -> str:
    """Timestamp identifier with one-second resolution, e.g. ``2024-01-15-10-30-00``."""
    return (moment or datetime.now()).strftime(RUN_ID_FORMAT)


def run_started_at(run_id: str) -> Optional[datetime]:
    """Start time encoded in a run identifier, ignoring any collision suffix."""
    try:
        return datetime.strptime(run_id[:RUN_ID_LENGTH], RUN_ID_FORMAT)
    except ValueError:
        return None


def build_artifact_index(run_dir: Union[str, Path]) -> ArtifactIndex:
    """
    Describe which artifacts exist in ``run_dir`` right now.

    Pure function of the directory contents: calling it twice on an
    unchanged directory yields equal indexes, and calling it on a run that
    is still executing reflects whatever has been written so far.
    """
    run_dir = Path(run_dir).resolve()
    files = {entry.name for entry in run_dir.iterdir() if entry.is_file()}

    def present(file_name: str) -> Optional[str]:
        return file_name if file_name in files else None

    return ArtifactIndex(
        run_id=run_dir.name,
        artifacts_dir=str(run_dir),
        screenshots=sorted(f for f in files if f.endswith(SCREENSHOT_SUFFIX)),
        logs=LogFiles(
            console=present(CONSOLE_LOG_FILE),
            network=present(NETWORK_LOG_FILE),
            actions=present(ACTIONS_FILE),
        ),
        trace=present(TRACE_FILE),
    )


class ArtifactStore:
    """
    Access to the runs root directory.

    Allocates run directories for the engine and resolves them for
    retrieval. Reads are lock-free; only the engine that allocated a run
    directory writes into it.
    """

    def __init__(self, runs_root: Union[str, Path]):
        self.runs_root = Path(runs_root).resolve()
        self.logger = get_logger(__name__)

    @classmethod
    def from_config(cls, config: Config) -> "ArtifactStore":
        return cls(config.runs_dir)

    def allocate_run_dir(self, moment: Optional[datetime] = None) -> Path:
        """
        Create the directory of a new run.

        Two runs started within the same second would share a base
        identifier; the later one gets a ``-1``, ``-2``, ... suffix. The
        directory is created exclusively, so concurrent allocations never
        end up in the same directory.
        """
        self.runs_root.mkdir(parents=True, exist_ok=True)
        base_id = generate_run_id(moment)
        run_id = base_id
        suffix = 0
        while True:
            run_dir = self.runs_root / run_id
            try:
                run_dir.mkdir()
            except FileExistsError:
                suffix += 1
                run_id = f"{base_id}-{suffix}"
                continue
            if suffix:
                self.logger.info(
                    f"Run identifier {base_id} already taken, using {run_id}",
                    extra={"metadata": {"run_id": run_id, "base_id": base_id}},
                )
            return run_dir

    def resolve_run_dir(self, run_id: str) -> Path:
        """
        Directory of an existing run.

        Raises:
            RunNotFoundError: If ``run_id`` names no run directory under the root
        """
        if not run_id or "/" in run_id or "\\" in run_id or run_id in (".", ".."):
            raise RunNotFoundError(f"Run not found: {run_id}", run_id=run_id)
        run_dir = self.runs_root / run_id
        if not run_dir.is_dir():
            raise RunNotFoundError(f"Run not found: {run_id}", run_id=run_id)
        return run_dir

    def build_index(self, run_id: str) -> ArtifactIndex:
        return build_artifact_index(self.resolve_run_dir(run_id))

    def list_runs(self) -> List[str]:
        """Run identifiers, oldest first."""
        if not self.runs_root.is_dir():
            return []
        return sorted(entry.name for entry in self.runs_root.iterdir() if entry.is_dir())

    def get_expired_runs(
        self, retention_days: int, now: Optional[datetime] = None
    ) -> List[str]:
        """
        Runs older than the retention period.

        Age comes from the identifier's timestamp, or from the directory's
        modification time for directories not named like a run.
        """
        cutoff = (now or datetime.now()) - timedelta(days=retention_days)
        expired = []
        for run_id in self.list_runs():
            started = run_started_at(run_id)
            if started is None:
                started = datetime.fromtimestamp((self.runs_root / run_id).stat().st_mtime)
            if started < cutoff:
                expired.append(run_id)
        return expired

    def cleanup_expired_runs(
        self,
        retention_days: int,
        dry_run: bool = False,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Delete run directories that have exceeded the retention period.

        Runs are never expired automatically; this is invoked explicitly.

        Args:
            retention_days: Keep runs younger than this many days
            dry_run: If True, only report what would be deleted
            now: Reference time, defaults to the current time

        Returns:
            Cleanup summary with statistics
        """
        start_time = time.time()
        deleted = []
        freed_space = 0
        errors = []

        for run_id in self.get_expired_runs(retention_days, now):
            run_dir = self.runs_root / run_id
            size = sum(f.stat().st_size for f in run_dir.rglob("*") if f.is_file())
            if dry_run:
                self.logger.info(f"Would delete run: {run_id} ({size} bytes)")
            else:
                try:
                    shutil.rmtree(run_dir)
                except OSError as e:
                    error_msg = f"Failed to delete {run_dir}: {e}"
                    errors.append(error_msg)
                    self.logger.error(error_msg)
                    continue
            deleted.append(run_id)
            freed_space += size

        duration = time.time() - start_time
        summary = {
            "deleted_runs": deleted,
            "deleted_count": len(deleted),
            "freed_space": freed_space,
            "duration": duration,
            "dry_run": dry_run,
            "errors": errors,
        }

        self.logger.info(
            f"Run cleanup completed: {len(deleted)} runs, {freed_space} bytes freed",
            extra={"metadata": {**summary, "retention_days": retention_days}},
        )
        log_performance(
            self.logger,
            "run_cleanup",
            duration,
            deleted_count=len(deleted),
            freed_space=freed_space,
        )

        return summary
