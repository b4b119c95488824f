from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console

from wavestream.core.config import AppPaths, StreamSettings


@dataclass(slots=True)
class CLIContext:
    paths: AppPaths
    console: Console
    settings: StreamSettings
