"""Command-line entry point: ``assoc``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from . import __version__
from .app import Dashboard, StartupError, configure_logging, run_worker
from .config import get_settings
from .paths import encode_project_path
from .project import ProjectConfigError, load_project_config

logger = logging.getLogger(__name__)

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def cmd_dashboard(args: argparse.Namespace) -> int:
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level, settings.resolved_log_file)
    project_dir = Path(args.cwd).resolve()
    try:
        project = load_project_config(project_dir)
        asyncio.run(Dashboard(settings, project_dir, project).run())
    except (StartupError, ProjectConfigError) as exc:
        logger.error("Dashboard failed to start", extra={"error": str(exc)})
        print(f"assoc: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


def cmd_spawn(args: argparse.Namespace) -> int:
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)
    try:
        return asyncio.run(run_worker(args.prompt, Path(args.cwd).resolve(), settings.claude_path))
    except KeyboardInterrupt:
        return 130


def cmd_encode(args: argparse.Namespace) -> int:
    print(encode_project_path(args.path))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="assoc", description="Live dashboard for agent sessions")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--cwd", default=".", help="Project directory (default: current directory)")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Override ASSOC_LOG_LEVEL",
    )
    parser.set_defaults(func=cmd_dashboard)
    sub = parser.add_subparsers(dest="cmd")

    p_spawn = sub.add_parser("spawn", help="Run one headless worker and print its progress")
    p_spawn.add_argument("prompt")
    p_spawn.add_argument("--cwd", default=argparse.SUPPRESS, help="Project directory for the worker")
    p_spawn.set_defaults(func=cmd_spawn)

    p_encode = sub.add_parser("encode", help="Print the encoded project identifier for a path")
    p_encode.add_argument("path")
    p_encode.set_defaults(func=cmd_encode)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except ValidationError as exc:
        print(f"assoc: invalid settings: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
