from __future__ import annotations

import argparse
from pathlib import Path

from wavestream.application.services.library_service import LibraryService
from wavestream.application.services.project_service import ProjectService
from wavestream.cli.context import CLIContext
from wavestream.infrastructure.db.repos.media_repo import MediaRepo
from wavestream.infrastructure.library.store import MediaStore


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("add", help="Copy an audio file into the media library")
    parser.add_argument("path", type=Path)
    parser.add_argument("--title", default=None)
    parser.add_argument("--description", default=None)
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    ProjectService(ctx.paths).require_initialized()

    service = LibraryService(MediaRepo(ctx.paths.db_path), MediaStore(ctx.paths.media_dir))
    result = service.add_file(args.path, title=args.title, description=args.description)
    record = result.record

    if result.status == "duplicate":
        ctx.console.print(f"[yellow]Already in library[/yellow] #{record.id} {record.stored_relpath}")
    else:
        ctx.console.print(f"[green]Added[/green] #{record.id} {record.stored_relpath}")
    ctx.console.print(f"Title: {record.title}")
    ctx.console.print(f"MIME type: {record.mime_type}  Size: {record.size_bytes} bytes")
    return 0
