"""
Pytest configuration and shared fixtures for Testing Agent tests.

Provides fake Playwright objects so the run engine can be exercised
without a real browser.
"""

import inspect
import textwrap
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

from testing_agent.core.config import Config
from testing_agent.core.exceptions import BrowserStartError
from testing_agent.execution.artifacts import ArtifactStore
from testing_agent.execution.browser import BrowserSession, PlaywrightLauncher
from testing_agent.execution.engine import RunEngine
from testing_agent.retrieval.service import ArtifactRetrievalService


class FakeConsoleMessage:
    def __init__(self, type: str, text: str):
        self.type = type
        self.text = text


class FakeResponse:
    def __init__(self, status: int):
        self.status = status


class FakeRequest:
    def __init__(
        self,
        url: str,
        method: str = "GET",
        status: Optional[int] = 200,
        failure: Optional[str] = None,
    ):
        self.url = url
        self.method = method
        self.failure = failure
        self._status = status

    async def response(self):
        return FakeResponse(self._status) if self._status is not None else None


class FakePageError:
    def __init__(self, message: str):
        self.message = message

    def __str__(self):
        return self.message


class FakePage:
    """Records navigation, writes screenshot files and emits events to observers."""

    def __init__(self, fail_screenshots: bool = False):
        self.handlers: Dict[str, List[Callable]] = {}
        self.visited: List[str] = []
        self.screenshots: List[str] = []
        self.fail_screenshots = fail_screenshots
        self.closed = False

    def on(self, event: str, handler: Callable) -> None:
        self.handlers.setdefault(event, []).append(handler)

    async def emit(self, event: str, payload: Any) -> None:
        for handler in self.handlers.get(event, []):
            outcome = handler(payload)
            if inspect.isawaitable(outcome):
                await outcome

    async def goto(self, url: str) -> None:
        self.visited.append(url)

    async def screenshot(self, path: str, full_page: bool = False) -> None:
        if self.fail_screenshots:
            raise RuntimeError("screenshot failed")
        Path(path).write_bytes(b"\x89PNG fake")
        self.screenshots.append(Path(path).name)

    async def close(self) -> None:
        self.closed = True


class FakeTracing:
    def __init__(self):
        self.started_with: Optional[dict] = None
        self.stopped = False

    async def start(self, **options) -> None:
        self.started_with = options

    async def stop(self, path: Optional[str] = None) -> None:
        self.stopped = True
        if path:
            Path(path).write_bytes(b"PK fake trace")


class FakeContext:
    def __init__(self, page: FakePage, fail_close: bool = False):
        self.page = page
        self.tracing = FakeTracing()
        self.fail_close = fail_close
        self.closed = False

    async def new_page(self) -> FakePage:
        return self.page

    async def close(self) -> None:
        if self.fail_close:
            raise RuntimeError("context close failed")
        self.closed = True


class FakeBrowser:
    def __init__(self, context: FakeContext):
        self.context = context
        self.closed = False

    async def new_context(self) -> FakeContext:
        return self.context

    async def close(self) -> None:
        self.closed = True


class FakeDriver:
    def __init__(self):
        self.stopped = False

    async def stop(self) -> None:
        self.stopped = True


class FakeLauncher(PlaywrightLauncher):
    """
    Launcher handing out fake browser objects.

    ``fail_stage`` makes start fail after the handles of earlier stages
    were stored on the session, like a real partial start.
    """

    fail_stage: Optional[str] = None
    fail_screenshots = False
    fail_context_close = False
    instances: List["FakeLauncher"] = []

    def __init__(self, config: Config, run_id: Optional[str] = None):
        super().__init__(config, run_id)
        self.page = FakePage(fail_screenshots=self.fail_screenshots)
        self.context = FakeContext(self.page, fail_close=self.fail_context_close)
        self.browser = FakeBrowser(self.context)
        self.driver = FakeDriver()
        FakeLauncher.instances.append(self)

    async def start(self, session: BrowserSession) -> BrowserSession:
        stages = [
            ("driver", self.driver),
            ("browser", self.browser),
            ("context", self.context),
            ("page", self.page),
        ]
        for stage, handle in stages:
            if stage == self.fail_stage:
                raise BrowserStartError(
                    f"Failed to start chromium ({stage}): boom",
                    browser_name="chromium",
                    stage=stage,
                )
            setattr(session, stage, handle)
        return session


@pytest.fixture
def temp_config(tmp_path):
    """Create a configuration rooted in a temporary directory."""
    config = Config(
        runs_dir=tmp_path / "runs",
        logs_dir=tmp_path / "logs",
        headless_mode=True,
    )
    config.runs_dir = tmp_path / "runs"
    return config


@pytest.fixture
def artifact_store(temp_config):
    return ArtifactStore(temp_config.runs_dir)


@pytest.fixture
def retrieval_service(artifact_store):
    return ArtifactRetrievalService(artifact_store)


@pytest.fixture
def fake_launcher():
    """Reset and return the fake launcher class."""
    FakeLauncher.fail_stage = None
    FakeLauncher.fail_screenshots = False
    FakeLauncher.fail_context_close = False
    FakeLauncher.instances = []
    yield FakeLauncher
    FakeLauncher.fail_stage = None
    FakeLauncher.fail_screenshots = False
    FakeLauncher.fail_context_close = False
    FakeLauncher.instances = []


@pytest.fixture
def run_engine(temp_config, artifact_store, fake_launcher):
    return RunEngine(temp_config, store=artifact_store, launcher_factory=fake_launcher)


@pytest.fixture
def write_script(tmp_path):
    """Write a test script into the temporary directory and return its path."""

    def _write(source: str, name: str = "script_under_test.py") -> Path:
        path = tmp_path / "scripts" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sample_run_dir(artifact_store):
    """A finished run directory with every kind of artifact."""
    run_dir = artifact_store.runs_root / "2024-01-15-10-30-00"
    run_dir.mkdir(parents=True)

    (run_dir / "console.log").write_text(
        "[2024-01-15T10:30:01.000Z] [info] ok\n"
        "[2024-01-15T10:30:02.000Z] [error] boom\n"
        "[2024-01-15T10:30:03.000Z] [warning] slow response\n",
        encoding="utf-8",
    )
    (run_dir / "network.log").write_text(
        '{"time": "2024-01-15T10:30:01.000Z", "method": "GET", "url": "https://example.com/", "status": 200}\n'
        '{"time": "2024-01-15T10:30:02.000Z", "method": "POST", "url": "https://example.com/api", "status": 500}\n',
        encoding="utf-8",
    )
    (run_dir / "actions.json").write_text(
        """[
  {"type": "step:start", "name": "login", "time": 1705314601000},
  {"type": "screenshot", "name": "before_login", "time": 1705314601001},
  {"type": "step:end", "name": "login", "time": 1705314602000}
]""",
        encoding="utf-8",
    )
    (run_dir / "before_login.png").write_bytes(b"\x89PNG before")
    (run_dir / "after_login.png").write_bytes(b"\x89PNG after")
    (run_dir / "trace.zip").write_bytes(b"PK trace")
    return run_dir
