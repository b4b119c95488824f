from __future__ import annotations

import argparse

from rich.table import Table

from wavestream.application.services.project_service import ProjectService
from wavestream.cli.context import CLIContext
from wavestream.infrastructure.db.repos.media_repo import MediaRepo


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("media", help="List media in the library")
    parser.add_argument("--limit", type=int, default=50)
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    ProjectService(ctx.paths).require_initialized()

    records = MediaRepo(ctx.paths.db_path).list(limit=args.limit)

    table = Table(title=f"Media ({len(records)})")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Stored Path", overflow="fold")
    table.add_column("MIME Type")
    table.add_column("Size")

    for r in records:
        table.add_row(str(r.id), r.title, r.stored_relpath, r.mime_type or "-", str(r.size_bytes))

    ctx.console.print(table)
    return 0
