from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from wavestream.core.errors import LibraryError
from wavestream.core.hashing import compute_file_digest
from wavestream.core.mime import guess_media_type
from wavestream.core.time import now_utc_iso
from wavestream.domain.models.media import MediaRecord
from wavestream.infrastructure.db.repos.media_repo import MediaRepo
from wavestream.infrastructure.library.store import MediaStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AddResult:
    record: MediaRecord
    status: str


def derive_title(filename: str) -> str:
    stem = PurePosixPath(filename).stem
    words = re.sub(r"[_\-.]+", " ", stem).split()
    return " ".join(words) or stem or filename


class LibraryService:
    def __init__(self, media_repo: MediaRepo, media_store: MediaStore) -> None:
        self.media_repo = media_repo
        self.media_store = media_store

    def add_file(
        self,
        file_path: Path,
        title: str | None = None,
        description: str | None = None,
        original_filename: str | None = None,
    ) -> AddResult:
        path = file_path.expanduser().resolve()
        if not path.exists() or not path.is_file():
            raise LibraryError(f"File not found: {path}")

        digest_sha256 = compute_file_digest(path, "sha256")
        existing = self.media_repo.get_by_digest(digest_sha256)
        if existing:
            logger.info("Media already in library as %s: %s", existing.id, existing.stored_relpath)
            return AddResult(record=existing, status="duplicate")

        filename = original_filename or path.name
        try:
            relpath = self.media_store.store_file(path, filename=filename)
        except OSError as exc:
            raise LibraryError(f"Unable to copy {path.name} into the library: {exc}") from exc

        record = MediaRecord(
            id=None,
            stored_relpath=relpath.as_posix(),
            title=(title or "").strip() or derive_title(filename),
            description=description,
            mime_type=guess_media_type(filename),
            size_bytes=path.stat().st_size,
            digest_sha256=digest_sha256,
            added_at=now_utc_iso(),
        )
        self.media_repo.insert(record)
        logger.info("Added media %s as %s", record.id, record.stored_relpath)
        return AddResult(record=record, status="added")

    def get(self, media_id: int) -> MediaRecord | None:
        return self.media_repo.get_by_id(media_id)

    def list(self, limit: int = 100) -> list[MediaRecord]:
        return self.media_repo.list(limit)
