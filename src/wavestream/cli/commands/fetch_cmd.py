from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path

from wavestream.application.services.playback_service import create_playback_service
from wavestream.application.services.project_service import ProjectService
from wavestream.cli.context import CLIContext
from wavestream.domain.models.delivery import ChunkRequest, PlaybackRequest
from wavestream.web.sinks import FileResponseSink


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser(
        "fetch",
        help="Run a delivery request locally and write the response body to a file",
    )
    parser.add_argument("locator", help="Media ID, filename or URL (a numeric ID with --chunk)")
    parser.add_argument("--output", "-o", type=Path, required=True)
    parser.add_argument("--range", dest="range_header", default=None, help="Range header, e.g. 'bytes=0-1023'")
    parser.add_argument("--chunk", type=int, default=None, help="Fetch this chunk index instead")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    ProjectService(ctx.paths).require_initialized()

    # A local fetch always wants the bytes, never a redirect.
    service = create_playback_service(ctx.paths, replace(ctx.settings, redirect_threshold_mb=0))
    output: Path = args.output.expanduser().resolve()
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open("wb") as handle:
        sink = FileResponseSink(handle)
        if args.chunk is not None:
            if not args.locator.isdigit():
                ctx.console.print("[red]--chunk requires a numeric media ID[/red]")
                return 2
            result = service.serve_chunk(ChunkRequest(resource_id=int(args.locator), chunk_index=args.chunk), sink)
        else:
            result = service.play(PlaybackRequest(locator=args.locator, range_header=args.range_header), sink)

    if result.status == 302:
        output.unlink(missing_ok=True)
        ctx.console.print(f"[yellow]302[/yellow] redirect to {sink.headers.get('Location')}")
        return 0
    if result.status >= 400:
        output.unlink(missing_ok=True)
        ctx.console.print(f"[red]{result.status}[/red] {result.message or result.outcome}")
        return 1

    ctx.console.print(f"[green]{result.status}[/green] wrote {result.bytes_sent} bytes to {output}")
    for name in ("Content-Type", "Content-Range", "X-Wavestream-Cache"):
        if name in sink.headers:
            ctx.console.print(f"{name}: {sink.headers[name]}")
    return 0
