from __future__ import annotations

import argparse

from rich.panel import Panel
from rich.table import Table

from wavestream.application.services.project_service import ProjectService
from wavestream.cli.context import CLIContext
from wavestream.infrastructure.db.repos.stream_log_repo import StreamLogRepo


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("logs", help="Show recent stream log entries and timing stats")
    parser.add_argument("--limit", type=int, default=20)
    parser.add_argument("--samples", type=int, default=5, help="Rows used for the timing summary")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    ProjectService(ctx.paths).require_initialized()

    repo = StreamLogRepo(ctx.paths.db_path)
    stats = repo.network_stats(args.samples)
    ctx.console.print(
        Panel.fit(
            f"Samples: {stats['samples']}\n"
            f"Average: {stats['avg_duration']} ms\n"
            f"Max: {stats['max_duration']} ms\n"
            f"Min: {stats['min_duration']} ms",
            title="Network Stats",
        )
    )

    rows = repo.recent(args.limit)
    table = Table(title=f"Stream Log ({len(rows)})")
    table.add_column("Time")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Media")
    table.add_column("Bytes")
    table.add_column("ms")
    table.add_column("Cache")
    table.add_column("Message", overflow="fold")
    for row in rows:
        table.add_row(
            row["logged_at"],
            row["log_type"],
            str(row["status_code"] or "-"),
            str(row["resource_id"] or "-"),
            str(row["bytes_sent"]),
            str(row["duration_ms"]),
            row["cache_status"] or "-",
            row["message"],
        )
    ctx.console.print(table)
    return 0
