"""
Step recording for test scripts.

The StepRecorder is handed to scripts as ``helpers``. It brackets every
named step with screenshots and keeps the ordered action log of the run.
"""

import inspect
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Union

from ..core.logging_config import get_logger
from .models import ActionEvent, ActionType, SCREENSHOT_SUFFIX

StepBody = Callable[[], Union[None, Awaitable[None]]]


class StepRecorder:
    """
    Screenshot and step helpers exposed to test scripts.

    ``actions`` holds the run's action events in chronological order. The
    run engine persists them once the run is finalized.
    """

    def __init__(self, page: Any, run_dir: Path, run_id: Optional[str] = None):
        self.page = page
        self.run_dir = Path(run_dir)
        self.actions: List[ActionEvent] = []
        self.failed = False
        self.logger = get_logger(__name__, run_id=run_id)

    def _record(self, action_type: ActionType, name: str, error: Optional[str] = None) -> None:
        self.actions.append(ActionEvent(type=action_type, name=name, error=error))

    def screenshot_path(self, name: str) -> Path:
        return self.run_dir / f"{name}{SCREENSHOT_SUFFIX}"

    async def screenshot(self, name: str) -> Path:
        """Capture a full-page screenshot to ``<name>.png``."""
        path = self.screenshot_path(name)
        self._record(ActionType.SCREENSHOT, name)
        await self.page.screenshot(path=str(path), full_page=True)
        return path

    async def step(self, name: str, body: StepBody) -> None:
        """
        Run ``body`` as a named step.

        On failure the step is logged, an ``on_error_<name>`` screenshot is
        taken, the run is marked failed and the original exception is
        re-raised so the rest of the script is skipped.
        """
        self._record(ActionType.STEP_START, name)
        await self.screenshot(f"before_{name}")
        self.logger.debug(f"Step started: {name}", extra={"step": name})
        try:
            outcome = body()
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            self._record(ActionType.STEP_ERROR, name, error=str(e))
            self.failed = True
            self.logger.info(
                f"Step failed: {name} - {e}",
                extra={"step": name, "metadata": {"error_type": type(e).__name__}},
            )
            try:
                await self.screenshot(f"on_error_{name}")
            except Exception as capture_error:
                self.logger.warning(
                    f"Could not capture error screenshot for step {name}: {capture_error}",
                    extra={"step": name},
                )
            raise
        self._record(ActionType.STEP_END, name)
        await self.screenshot(f"after_{name}")
        self.logger.debug(f"Step completed: {name}", extra={"step": name})

    def records(self) -> List[dict]:
        """Action events as JSON-ready records."""
        return [action.to_record() for action in self.actions]
