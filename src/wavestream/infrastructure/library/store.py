from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from wavestream.core.files import ensure_directory, safe_copy_atomic

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_filename(name: str) -> str:
    base = PurePosixPath(name.replace("\\", "/")).name.strip()
    stem, dot, suffix = base.rpartition(".")
    if not dot:
        stem, suffix = base, ""
    clean_stem = _UNSAFE_NAME_CHARS.sub("-", stem).strip("-.") or "media"
    clean_suffix = _UNSAFE_NAME_CHARS.sub("", suffix).lower()
    return f"{clean_stem}.{clean_suffix}" if clean_suffix else clean_stem


class MediaStore:
    """Uploads tree laid out as ``YYYY/MM/<name>`` under ``base_dir``."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = base_dir

    def ensure_layout(self) -> None:
        ensure_directory(self.base_dir)

    def relpath_for(self, filename: str, when: datetime | None = None) -> PurePosixPath:
        moment = when or datetime.now(timezone.utc)
        folder = PurePosixPath(f"{moment.year:04d}") / f"{moment.month:02d}"
        name = sanitize_filename(filename)
        candidate = folder / name
        stem, suffix = PurePosixPath(name).stem, PurePosixPath(name).suffix
        counter = 1
        while (self.base_dir / candidate).exists():
            candidate = folder / f"{stem}-{counter}{suffix}"
            counter += 1
        return candidate

    def store_file(self, src: Path, filename: str | None = None, when: datetime | None = None) -> PurePosixPath:
        self.ensure_layout()
        relpath = self.relpath_for(filename or src.name, when)
        safe_copy_atomic(src, self.base_dir / relpath)
        return relpath

    def abspath(self, relpath: str) -> Path | None:
        """Absolute path for a stored relpath, or None when it escapes the store."""
        root = self.base_dir.resolve()
        resolved = (root / relpath).resolve()
        if root not in resolved.parents:
            return None
        return resolved
