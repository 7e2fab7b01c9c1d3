"""
Run engine for instrumented browser test runs.

Runs one script in a fresh browser session, records its artifacts into an
isolated run directory and classifies the outcome. Failures of the browser
or the script never escape the engine: they turn the run into a FAIL and
finalization still produces every artifact that can be produced.
"""

import inspect
import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Union

from ..core.config import Config
from ..core.exceptions import InvalidScriptShapeError
from ..core.logging_config import get_logger, log_performance
from .artifacts import ArtifactStore
from .browser import BrowserSession, PlaywrightLauncher
from .instrumentation import Instrumentation
from .loader import execute_script, find_script, resolve_runner
from .models import ACTIONS_FILE, TRACE_FILE, RunResult, RunState, RunStatus
from .recorder import StepRecorder

LauncherFactory = Callable[[Config, Optional[str]], PlaywrightLauncher]


@dataclass
class RunContext:
    """Mutable state of one run while the engine owns it."""

    run_id: str
    run_dir: Path
    state: RunState = RunState.INIT
    status: RunStatus = RunStatus.PASS
    critical_errors: List[str] = field(default_factory=list)
    error: Optional[str] = None
    tracing_started: bool = False
    dropped_writes: int = 0
    history: List[RunState] = field(default_factory=lambda: [RunState.INIT])

    def transition(self, state: RunState) -> None:
        self.state = state
        self.history.append(state)

    def fail(self, error: Optional[BaseException] = None) -> None:
        self.status = RunStatus.FAIL
        if error is not None and self.error is None:
            self.error = f"{type(error).__name__}: {error}"


class RunEngine:
    """
    Executes test scripts under instrumentation.

    Args:
        config: Testing Agent configuration
        store: Artifact store holding the run directories
        launcher_factory: Builds the browser launcher for a run; defaults to
            PlaywrightLauncher
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        store: Optional[ArtifactStore] = None,
        launcher_factory: Optional[LauncherFactory] = None,
    ):
        self.config = config or Config.from_env()
        self.store = store or ArtifactStore.from_config(self.config)
        self.launcher_factory = launcher_factory or PlaywrightLauncher
        self.logger = get_logger(__name__)
        self.last_run: Optional[RunContext] = None

    async def run_test(self, script_path: Union[str, Path]) -> RunResult:
        """
        Run one test script.

        Args:
            script_path: Path to the script to execute

        Returns:
            Outcome of the run with its identifier and directory

        Raises:
            ScriptNotFoundError: If the script does not exist
            InvalidScriptShapeError: If the file is not a Python module, or if it
                imports but exports no runner. In the latter case the run
                directory and its actions.json already exist.
        """
        # Only locate the script here; its code runs once the run directory exists
        script_spec = find_script(script_path)

        run_dir = self.store.allocate_run_dir()
        run = RunContext(run_id=run_dir.name, run_dir=run_dir)
        self.last_run = run
        logger = get_logger(__name__, run_id=run.run_id)
        logger.info(
            f"Starting run {run.run_id}: {script_path}",
            extra={"metadata": {"script_path": str(script_path), "artifacts_dir": str(run_dir)}},
        )

        start_time = time.time()
        launcher = self.launcher_factory(self.config, run.run_id)
        session = BrowserSession()
        instrumentation = Instrumentation(
            run_dir,
            run.critical_errors,
            log_failed_requests=self.config.log_failed_requests,
            run_id=run.run_id,
        )
        recorder = StepRecorder(None, run_dir, run_id=run.run_id)

        try:
            runner = resolve_runner(execute_script(script_spec))

            run.transition(RunState.BROWSER_STARTING)
            await launcher.start(session)

            run.transition(RunState.INSTRUMENTING)
            instrumentation.attach(session.page)

            run.transition(RunState.TRACING)
            await session.context.tracing.start(
                screenshots=self.config.trace_screenshots,
                snapshots=self.config.trace_snapshots,
            )
            run.tracing_started = True

            run.transition(RunState.EXECUTING)
            recorder.page = session.page
            await session.page.goto(self.config.start_url)
            outcome = runner(session.page, session.context, recorder)
            if inspect.isawaitable(outcome):
                await outcome
        except InvalidScriptShapeError as e:
            run.transition(RunState.ERRORED)
            run.fail(e)
            logger.error(f"Run {run.run_id} aborted: {e.message}", extra={"metadata": e.to_dict()})
            raise
        except Exception as e:
            failed_in = run.state
            run.transition(RunState.ERRORED)
            run.fail(e)
            logger.error(
                f"Run {run.run_id} failed during {failed_in.value}: {e}",
                extra={"metadata": {"state": failed_in.value, "error_type": type(e).__name__}},
            )
        finally:
            await self._finalize(run, launcher, session, instrumentation, recorder)

        if recorder.failed:
            run.fail()

        duration = time.time() - start_time
        run.transition(RunState.DONE)
        result = RunResult(
            status=run.status,
            run_id=run.run_id,
            artifacts_dir=str(run_dir),
            critical_errors=list(run.critical_errors),
            error=run.error,
            dropped_writes=run.dropped_writes,
            duration=duration,
        )
        log_performance(
            logger,
            f"run_{run.run_id}",
            duration,
            **result.to_summary(),
        )
        return result

    async def _finalize(
        self,
        run: RunContext,
        launcher: PlaywrightLauncher,
        session: BrowserSession,
        instrumentation: Instrumentation,
        recorder: StepRecorder,
    ) -> None:
        """Flush the trace, close the session and persist the action log."""
        run.transition(RunState.FINALIZING)
        logger = get_logger(__name__, run_id=run.run_id)

        if run.tracing_started and session.context is not None:
            try:
                await session.context.tracing.stop(path=str(run.run_dir / TRACE_FILE))
            except Exception as e:
                logger.warning(f"Failed to save trace: {e}")

        await launcher.close(session)

        run.dropped_writes = instrumentation.dropped_writes
        try:
            # ASCII-escaped so error texts with lone surrogates still serialize
            (run.run_dir / ACTIONS_FILE).write_text(
                json.dumps(recorder.records(), indent=2),
                encoding="utf-8",
            )
        except (OSError, ValueError) as e:
            run.dropped_writes += 1
            logger.warning(f"Failed to write {ACTIONS_FILE}: {e}")


async def run_test(
    script_path: Union[str, Path], config: Optional[Config] = None
) -> RunResult:
    """Run ``script_path`` with a default engine."""
    return await RunEngine(config).run_test(script_path)
