"""
Playwright browser launcher.

Opens a browser, an isolated context and a page for one run and tears
them down again. Every close is attempted independently so that one
failing resource never keeps the others open.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from ..core.config import Config
from ..core.exceptions import BrowserStartError
from ..core.logging_config import get_logger


class BrowserMode(Enum):
    """Browser execution mode."""

    HEADED = "headed"
    HEADLESS = "headless"


@dataclass
class BrowserSession:
    """Handles of an open browser session. Any of them may be missing after a failed start."""

    driver: Any = None
    browser: Any = None
    context: Any = None
    page: Any = None


class PlaywrightLauncher:
    """
    Starts Playwright sessions according to the configuration.

    Args:
        config: Testing Agent configuration
        run_id: Run identifier for log correlation
    """

    def __init__(self, config: Config, run_id: Optional[str] = None):
        self.config = config
        self.logger = get_logger(__name__, run_id=run_id)

    @property
    def mode(self) -> BrowserMode:
        return BrowserMode.HEADLESS if self.config.is_headless else BrowserMode.HEADED

    async def start(self, session: BrowserSession) -> BrowserSession:
        """
        Fill ``session`` with a driver, browser, context and page.

        Handles are stored on ``session`` as soon as they exist, so the
        caller can close whatever was opened even when a later stage fails.

        Raises:
            BrowserStartError: If any stage fails
        """
        from playwright.async_api import async_playwright

        browser_name = self.config.browser_name
        self.logger.info(
            f"Launching {browser_name} in {self.mode.value} mode",
            extra={"metadata": {"browser": browser_name, "mode": self.mode.value}},
        )

        stage = "driver"
        try:
            session.driver = await async_playwright().start()
            stage = "browser"
            browser_type = getattr(session.driver, browser_name)
            session.browser = await browser_type.launch(headless=self.config.is_headless)
            stage = "context"
            session.context = await session.browser.new_context()
            stage = "page"
            session.page = await session.context.new_page()
        except Exception as e:
            raise BrowserStartError(
                f"Failed to start {browser_name} ({stage}): {e}",
                browser_name=browser_name,
                stage=stage,
            ) from e

        return session

    async def close(self, session: BrowserSession) -> List[str]:
        """
        Close page, context, browser and driver independently.

        Returns:
            Messages of the close operations that failed
        """
        failures = []
        steps = [
            ("page", session.page, "close"),
            ("context", session.context, "close"),
            ("browser", session.browser, "close"),
            ("driver", session.driver, "stop"),
        ]
        for label, handle, method in steps:
            if handle is None:
                continue
            try:
                await getattr(handle, method)()
            except Exception as e:
                failures.append(f"{label}: {e}")
                self.logger.warning(f"Failed to close {label}: {e}")
        return failures
