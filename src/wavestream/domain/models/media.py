from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath


@dataclass(slots=True)
class MediaRecord:
    id: int | None
    stored_relpath: str
    title: str
    mime_type: str | None
    size_bytes: int
    digest_sha256: str
    added_at: str
    description: str | None = None

    @property
    def filename(self) -> str:
        return PurePosixPath(self.stored_relpath).name


@dataclass(frozen=True, slots=True)
class StoredMedia:
    """What the provider knows about a record's file right now."""

    path: Path
    size: int
    mime_type: str
    modified_at: float
