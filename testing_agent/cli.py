"""
Main CLI interface for the Testing Agent.

Provides commands to run test scripts, inspect run artifacts, list and
clean up runs, and start the stdio tool server.
"""

import argparse
import asyncio
import json
import sys
import uuid
from pathlib import Path
from typing import Optional, List

from . import __version__
from .core.config import Config
from .core.exceptions import TestingAgentError
from .core.logging_config import setup_logging
from .execution.artifacts import ArtifactStore
from .execution.engine import RunEngine
from .retrieval.models import ArtifactError, LogSlice
from .retrieval.service import ArtifactRetrievalService


def _build_config(args: argparse.Namespace) -> Config:
    config = Config.from_env()
    if getattr(args, "runs_dir", None):
        config.runs_dir = Path(args.runs_dir)
    if getattr(args, "headless", False):
        config.headless_mode = True
    if getattr(args, "browser", None):
        config.browser_name = args.browser
    return config


def cmd_test(args: argparse.Namespace) -> int:
    """Run a test script."""
    config = _build_config(args)
    engine = RunEngine(config)

    try:
        result = asyncio.run(engine.run_test(args.script))
    except TestingAgentError as e:
        print(f"❌ {e.message}", file=sys.stderr)
        return 2

    if args.json:
        summary = ArtifactRetrievalService(engine.store).summarize(result)
        print(json.dumps({"type": "test_run_summary", "payload": summary.model_dump(mode="json")}, indent=2))
    else:
        print(f"[{result.status.value}] Run completed. Artifacts: {result.artifacts_dir}")
        if result.error:
            print(f"Error: {result.error}")
        if result.critical_errors:
            print("Critical console errors detected:")
            for error in result.critical_errors:
                print(error)

    return 0 if result.passed else 1


def cmd_artifact(args: argparse.Namespace) -> int:
    """Print one artifact slice of a run."""
    config = _build_config(args)
    service = ArtifactRetrievalService(ArtifactStore.from_config(config))

    response = service.get_artifact(
        args.run_id, args.kind, name=args.name, filter=args.grep, limit=args.limit
    )

    if isinstance(response, ArtifactError):
        print(json.dumps(response.model_dump()), file=sys.stderr)
        return 1
    if isinstance(response, LogSlice):
        if response.lines:
            print(response.text)
        return 0
    print(json.dumps(response.model_dump(mode="json"), indent=2))
    return 0


def cmd_runs(args: argparse.Namespace) -> int:
    """List run identifiers."""
    config = _build_config(args)
    for run_id in ArtifactStore.from_config(config).list_runs():
        print(run_id)
    return 0


def cmd_cleanup(args: argparse.Namespace) -> int:
    """Delete runs older than the retention period."""
    config = _build_config(args)
    days = args.days if args.days is not None else config.artifact_retention_days
    store = ArtifactStore.from_config(config)

    summary = store.cleanup_expired_runs(days, dry_run=args.dry_run)

    verb = "Would delete" if args.dry_run else "Deleted"
    print(f"🧹 {verb} {summary['deleted_count']} runs older than {days} days ({summary['freed_space']} bytes)")
    for error in summary["errors"]:
        print(f"   ❌ {error}")
    return 1 if summary["errors"] else 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Serve tools over stdio until the input closes."""
    from .server.stdio import ToolServer

    ToolServer(_build_config(args)).serve_forever()
    return 0


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    print(f"Testing Agent {__version__}")
    if args.verbose:
        config = Config.from_env()
        print()
        print("System Information:")
        print(f"  Python: {sys.version}")
        print(f"  Platform: {sys.platform}")
        print(f"  Runs Directory: {config.runs_dir}")
        print(f"  Browser: {config.browser_name} ({'headless' if config.is_headless else 'headed'})")
    return 0


def create_main_parser() -> argparse.ArgumentParser:
    """Create main CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="testing-agent",
        description="Testing Agent - instrumented Playwright runs with on-demand artifacts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  testing-agent test tests/example_script.py
  testing-agent artifact 2024-01-15-10-30-00 console --grep error --limit 20
  testing-agent artifact 2024-01-15-10-30-00 screenshot --name after_open_example
  testing-agent runs
  testing-agent cleanup --days 7 --dry-run
  testing-agent serve
        """,
    )

    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--runs-dir", help="Runs root directory (default: ./runs)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    test_parser = subparsers.add_parser("test", help="Run a test script")
    test_parser.add_argument(
        "script", help="Path to a Python script exporting run(page, context, helpers)"
    )
    test_parser.add_argument("--headless", action="store_true", help="Force headless mode")
    test_parser.add_argument(
        "--browser", choices=["chromium", "firefox", "webkit"], help="Browser to launch"
    )
    test_parser.add_argument("--json", action="store_true", help="Print the run summary as JSON")
    test_parser.set_defaults(func=cmd_test)

    artifact_parser = subparsers.add_parser("artifact", help="Show an artifact of a run")
    artifact_parser.add_argument("run_id", help="Run identifier")
    artifact_parser.add_argument(
        "kind", help="index, screenshot, console, network, actions or trace"
    )
    artifact_parser.add_argument("--name", help="Screenshot name without .png")
    artifact_parser.add_argument("--grep", help="Case-insensitive substring filter")
    artifact_parser.add_argument("--limit", type=int, help="Keep only the most recent N entries")
    artifact_parser.set_defaults(func=cmd_artifact)

    runs_parser = subparsers.add_parser("runs", help="List runs")
    runs_parser.set_defaults(func=cmd_runs)

    cleanup_parser = subparsers.add_parser("cleanup", help="Delete old runs")
    cleanup_parser.add_argument("--days", type=int, help="Retention period in days")
    cleanup_parser.add_argument(
        "--dry-run", action="store_true", help="Only report what would be deleted"
    )
    cleanup_parser.set_defaults(func=cmd_cleanup)

    serve_parser = subparsers.add_parser("serve", help="Serve tools over stdio")
    serve_parser.set_defaults(func=cmd_serve)

    version_parser = subparsers.add_parser("version", help="Show version information")
    version_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Show detailed version information"
    )
    version_parser.set_defaults(func=cmd_version)

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_main_parser()

    if args is None:
        args = sys.argv[1:]

    parsed_args = parser.parse_args(args)

    if not hasattr(parsed_args, "func"):
        parser.print_help()
        return 1

    config = Config.from_env()
    if parsed_args.verbose:
        config.log_level = "DEBUG"
    setup_logging(config, uuid.uuid4().hex)

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
