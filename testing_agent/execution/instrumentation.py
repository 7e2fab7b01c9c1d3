"""
Browser instrumentation for test runs.

Attaches console, network and page-error observers to a page. Each event is
appended to the run's logs as it happens, so the logs survive a run that
crashes half-way.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from ..core.logging_config import get_logger
from .models import CONSOLE_LOG_FILE, NETWORK_LOG_FILE, NetworkRecord


def iso_now() -> str:
    """ISO-8601 UTC timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class AppendOnlyLog:
    """
    Line-oriented append-only log file.

    Every append opens the file in append mode and writes one complete line
    in a single call. Write failures never propagate: they are counted in
    ``dropped_writes`` and reported as warnings.
    """

    def __init__(self, path: Path, run_id: Optional[str] = None):
        self.path = Path(path)
        self.dropped_writes = 0
        self.logger = get_logger(__name__, run_id=run_id)

    def append(self, line: str) -> bool:
        """Append ``line`` plus a newline. Returns False if the write was dropped."""
        try:
            # Page text may carry lone surrogates that UTF-8 cannot encode
            with open(self.path, "a", encoding="utf-8", errors="backslashreplace") as f:
                f.write(line.rstrip("\n") + "\n")
            return True
        except (OSError, ValueError) as e:
            self.dropped_writes += 1
            self.logger.warning(
                f"Dropped write to {self.path.name}: {e}",
                extra={"metadata": {"path": str(self.path), "dropped_writes": self.dropped_writes}},
            )
            return False

    def append_json(self, record: dict) -> bool:
        return self.append(json.dumps(record, ensure_ascii=False))


class Instrumentation:
    """
    Observers streaming browser events into a run directory.

    Args:
        run_dir: Directory of the run being instrumented
        critical_errors: Accumulator owned by the run; console errors and
            page errors are appended to it
        log_failed_requests: Also record requests that failed before a
            response arrived
        run_id: Run identifier for log correlation
    """

    def __init__(
        self,
        run_dir: Path,
        critical_errors: List[str],
        log_failed_requests: bool = True,
        run_id: Optional[str] = None,
    ):
        self.run_dir = Path(run_dir)
        self.critical_errors = critical_errors
        self.log_failed_requests = log_failed_requests
        self.console_log = AppendOnlyLog(self.run_dir / CONSOLE_LOG_FILE, run_id)
        self.network_log = AppendOnlyLog(self.run_dir / NETWORK_LOG_FILE, run_id)
        self.logger = get_logger(__name__, run_id=run_id)

    @property
    def dropped_writes(self) -> int:
        return self.console_log.dropped_writes + self.network_log.dropped_writes

    def attach(self, page: Any) -> None:
        """Register all observers on ``page``. Call before any navigation."""
        page.on("console", self.on_console)
        page.on("pageerror", self.on_page_error)
        page.on("requestfinished", self.on_request_finished)
        if self.log_failed_requests:
            page.on("requestfailed", self.on_request_failed)
        self.logger.debug("Instrumentation attached")

    def on_console(self, message: Any) -> None:
        level = message.type
        text = message.text
        self.console_log.append(f"[{iso_now()}] [{level}] {text}")
        if level == "error":
            self.critical_errors.append(text)

    def on_page_error(self, error: Any) -> None:
        text = getattr(error, "message", None) or str(error)
        self.console_log.append(f"[{iso_now()}] [pageerror] {text}")
        self.critical_errors.append(text)

    async def on_request_finished(self, request: Any) -> None:
        try:
            response = await request.response()
        except Exception as e:
            # The page may close while the response is being resolved
            self.logger.debug(f"Could not resolve response for {request.url}: {e}")
            response = None
        record = NetworkRecord(
            time=iso_now(),
            method=request.method,
            url=request.url,
            status=response.status if response is not None else None,
        )
        self.network_log.append_json(record.to_record())

    def on_request_failed(self, request: Any) -> None:
        record = NetworkRecord(
            time=iso_now(),
            method=request.method,
            url=request.url,
            status=None,
            failure=request.failure or "request failed",
        )
        self.network_log.append_json(record.to_record())
