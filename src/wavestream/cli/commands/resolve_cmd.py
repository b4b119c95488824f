from __future__ import annotations

import argparse

from rich.table import Table

from wavestream.application.services.playback_service import create_playback_service
from wavestream.application.services.project_service import ProjectService
from wavestream.cli.context import CLIContext


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("resolve", help="Show which media a locator (ID, filename or URL) maps to")
    parser.add_argument("locator")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    ProjectService(ctx.paths).require_initialized()

    payload = create_playback_service(ctx.paths, ctx.settings).resolve(args.locator)

    table = Table(title=f"Resolved: {args.locator}")
    table.add_column("Field")
    table.add_column("Value", overflow="fold")
    for key in ("id", "method", "mime", "size", "url"):
        table.add_row(key, str(payload.get(key)))
    ctx.console.print(table)
    return 0
