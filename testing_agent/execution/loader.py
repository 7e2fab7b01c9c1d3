"""
Script loading for test runs.

A test script is a Python file exporting a runner callable with the
signature ``(page, context, helpers)``. The runner may be a plain function
or a coroutine function.
"""

import importlib.util
import uuid
from importlib.machinery import ModuleSpec
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Union

from ..core.exceptions import InvalidScriptShapeError, ScriptNotFoundError
from ..core.logging_config import get_logger

# Looked up in this order
RUNNER_ATTRIBUTES = ("default", "run", "runner")

Runner = Callable[[Any, Any, Any], Any]

logger = get_logger(__name__)


def check_script_exists(script_path: Union[str, Path]) -> Path:
    """Resolve ``script_path`` or raise ScriptNotFoundError."""
    path = Path(script_path)
    if not path.is_file():
        raise ScriptNotFoundError(
            f"Script file not found: {script_path}", script_path=str(script_path)
        )
    return path.resolve()


def find_script(script_path: Union[str, Path]) -> ModuleSpec:
    """
    Locate a test script without running any of its code.

    Raises:
        ScriptNotFoundError: If the path does not exist
        InvalidScriptShapeError: If the file cannot be loaded as a Python module
    """
    path = check_script_exists(script_path)

    # A unique name keeps repeated loads of the same file independent
    module_name = f"testing_agent_script_{path.stem}_{uuid.uuid4().hex[:8]}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise InvalidScriptShapeError(
            f"Cannot load script as a Python module: {path}",
            script_path=str(path),
            reason="not_a_module",
        )
    return spec


def execute_script(spec: ModuleSpec) -> ModuleType:
    """Run the script's top-level code. Its exceptions propagate unchanged."""
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def resolve_runner(module: ModuleType) -> Runner:
    """
    Return the runner exported by an executed script module.

    Raises:
        InvalidScriptShapeError: If none of the runner attributes is callable
    """
    script_path = getattr(module, "__file__", None)
    for attribute in RUNNER_ATTRIBUTES:
        candidate = getattr(module, attribute, None)
        if callable(candidate):
            logger.debug(
                f"Resolved runner '{attribute}' in {script_path}",
                extra={"metadata": {"script_path": script_path, "runner": attribute}},
            )
            return candidate

    raise InvalidScriptShapeError(
        "Test script must export a callable named one of "
        f"{', '.join(RUNNER_ATTRIBUTES)} taking (page, context, helpers)",
        script_path=script_path,
        reason="no_runner",
    )


def load_script(script_path: Union[str, Path]) -> Runner:
    """
    Load a test script and return its runner.

    Args:
        script_path: Path to the Python test script

    Returns:
        The runner callable exported by the script

    Raises:
        ScriptNotFoundError: If the path does not exist
        InvalidScriptShapeError: If the script exports no runner
    """
    return resolve_runner(execute_script(find_script(script_path)))
