"""
Testing Agent - instrumented Playwright test runs with on-demand artifacts

Runs browser test scripts, records screenshots, console and network logs,
action events and a trace for every run, and serves slices of those
artifacts to conversational agents.
"""

__version__ = "0.1.0"
__author__ = "Testing Agent Team"

from .core.config import Config
from .core.exceptions import TestingAgentError
from .core.logging_config import setup_logging

__all__ = [
    "Config",
    "TestingAgentError",
    "setup_logging",
]
