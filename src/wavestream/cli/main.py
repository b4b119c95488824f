from __future__ import annotations

import argparse
import logging
from pathlib import Path

from rich.console import Console

from wavestream.cli.commands import (
    add_cmd,
    doctor_cmd,
    fetch_cmd,
    init_cmd,
    logs_cmd,
    media_cmd,
    resolve_cmd,
    serve_cmd,
)
from wavestream.cli.context import CLIContext
from wavestream.core.config import load_paths, load_settings
from wavestream.core.errors import WavestreamError
from wavestream.core.logging import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wavestream",
        description="Wavestream audio streaming CLI",
    )
    parser.add_argument(
        "--project-root",
        type=Path,
        default=Path.cwd(),
        help="Project root to use for .wavestream data (default: current working directory)",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0)

    subparsers = parser.add_subparsers(dest="command", required=True)
    init_cmd.register(subparsers)
    add_cmd.register(subparsers)
    media_cmd.register(subparsers)
    resolve_cmd.register(subparsers)
    fetch_cmd.register(subparsers)
    logs_cmd.register(subparsers)
    doctor_cmd.register(subparsers)
    serve_cmd.register(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    console = Console()

    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 2

    try:
        ctx = CLIContext(paths=load_paths(args.project_root), console=console, settings=load_settings())
        return handler(args, ctx)
    except WavestreamError as exc:
        logger.error(str(exc))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
