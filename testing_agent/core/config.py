"""
Configuration management for the Testing Agent.

Handles environment variables, defaults, and configuration validation
for the run engine, the artifact store and the transports.
"""

import logging
import os
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from pathlib import Path


VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARN", "WARNING", "ERROR"]
VALID_BROWSERS = ["chromium", "firefox", "webkit"]

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """Configuration class for the Testing Agent with environment variable support."""

    # Environment detection
    ci_mode: bool = field(default=False)

    # Browser settings
    headless_mode: Optional[bool] = field(default=None)
    browser_name: str = field(default="chromium")
    start_url: str = field(default="about:blank")

    # Instrumentation
    trace_screenshots: bool = field(default=True)
    trace_snapshots: bool = field(default=True)
    log_failed_requests: bool = field(default=True)

    # Logging configuration
    log_level: str = field(default="INFO")
    log_format: str = field(default="text")

    # Artifact management
    artifact_retention_days: int = field(default=7)

    # Directory paths
    project_root: Path = field(default_factory=lambda: Path.cwd())
    runs_dir: Path = field(default_factory=lambda: Path.cwd() / "runs")
    logs_dir: Path = field(default_factory=lambda: Path.cwd() / "logs")

    def __post_init__(self):
        """Apply environment overrides while respecting explicit constructor args."""
        ci_env = os.getenv("CI", "").lower() == "true"
        if ci_env and self.ci_mode is False:
            self.ci_mode = True

        headless_env = os.getenv("TESTING_AGENT_HEADLESS")
        if headless_env is not None:
            self.headless_mode = headless_env.lower() == "true"

        browser_env = os.getenv("TESTING_AGENT_BROWSER")
        if browser_env:
            self.browser_name = browser_env.lower()
        if self.browser_name not in VALID_BROWSERS:
            self.browser_name = "chromium"

        runs_env = os.getenv("TESTING_AGENT_RUNS_DIR")
        if runs_env:
            self.runs_dir = Path(runs_env)
        self.runs_dir = Path(self.runs_dir)
        self.logs_dir = Path(self.logs_dir)

        log_env = os.getenv("TESTING_AGENT_LOG_LEVEL")
        if log_env:
            self.log_level = log_env
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            self.log_level = "INFO"
        else:
            self.log_level = self.log_level.upper()
        if self.log_level == "WARN":
            self.log_level = "WARNING"

        # JSON logs in CI unless explicitly set otherwise
        if self.ci_mode and self.log_format == "text":
            self.log_format = "json"

        retention_env = os.getenv("TESTING_AGENT_ARTIFACT_RETENTION_DAYS")
        if retention_env is not None:
            try:
                self.artifact_retention_days = int(retention_env)
            except ValueError:
                logger.warning(
                    f"Ignoring TESTING_AGENT_ARTIFACT_RETENTION_DAYS={retention_env!r}: not an integer; "
                    f"keeping {self.artifact_retention_days} days"
                )

    @property
    def is_headless(self) -> bool:
        """Get effective headless mode: explicit setting, else CI mode."""
        if self.headless_mode is not None:
            return self.headless_mode
        return self.ci_mode

    @property
    def is_ci_mode(self) -> bool:
        """Check if running in CI environment."""
        return self.ci_mode

    @property
    def debug_enabled(self) -> bool:
        """Check if debug logging is enabled."""
        return self.log_level == "DEBUG"

    def get_log_file_path(self) -> Path:
        """Get the main log file path."""
        return self.logs_dir / "testing-agent.log"

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for logging."""
        return {
            "ci_mode": self.ci_mode,
            "headless_mode": self.headless_mode,
            "browser_name": self.browser_name,
            "start_url": self.start_url,
            "log_level": self.log_level,
            "log_format": self.log_format,
            "log_failed_requests": self.log_failed_requests,
            "artifact_retention_days": self.artifact_retention_days,
            "project_root": str(self.project_root),
            "runs_dir": str(self.runs_dir),
            "logs_dir": str(self.logs_dir),
        }

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables."""
        ci = os.getenv("CI", "").lower() == "true"
        headless_env = os.getenv("TESTING_AGENT_HEADLESS")
        headless = None if headless_env is None else headless_env.lower() == "true"
        retention = os.getenv("TESTING_AGENT_ARTIFACT_RETENTION_DAYS", "7")

        return cls(
            ci_mode=ci,
            headless_mode=headless,
            browser_name=os.getenv("TESTING_AGENT_BROWSER", "chromium").lower(),
            log_level=os.getenv("TESTING_AGENT_LOG_LEVEL", "INFO").upper(),
            log_format="json" if ci else "text",
            artifact_retention_days=int(retention) if retention.isdigit() else 7,
            runs_dir=Path(os.getenv("TESTING_AGENT_RUNS_DIR", str(Path.cwd() / "runs"))),
        )

    def validate(self) -> None:
        """Validate configuration and raise ValidationError if invalid."""
        from .exceptions import ValidationError

        errors = []

        if self.log_level not in VALID_LOG_LEVELS:
            errors.append(
                f"Invalid log level: {self.log_level}. Must be one of {VALID_LOG_LEVELS}"
            )

        if self.browser_name not in VALID_BROWSERS:
            errors.append(
                f"Invalid browser: {self.browser_name}. Must be one of {VALID_BROWSERS}"
            )

        if self.artifact_retention_days < 0:
            errors.append(
                f"Artifact retention must be non-negative, got {self.artifact_retention_days}"
            )

        if self.runs_dir.exists() and not self.runs_dir.is_dir():
            errors.append(f"runs directory is not a directory: {self.runs_dir}")

        if errors:
            message = "Configuration validation failed: " + "; ".join(errors)
            raise ValidationError(
                message,
                validation_type="config",
                violations=errors,
            )
