from __future__ import annotations

from urllib.parse import quote

from wavestream.core.files import is_readable_file
from wavestream.core.mime import guess_media_type
from wavestream.domain.models.media import StoredMedia
from wavestream.infrastructure.db.repos.media_repo import MediaRepo
from wavestream.infrastructure.library.store import MediaStore


class LibraryMediaProvider:
    """Media resource provider backed by the SQLite index and the uploads tree."""

    def __init__(self, media_repo: MediaRepo, media_store: MediaStore, public_base_url: str = "") -> None:
        self.media_repo = media_repo
        self.media_store = media_store
        self.public_base_url = public_base_url.rstrip("/")

    def lookup_by_id(self, resource_id: int) -> StoredMedia | None:
        record = self.media_repo.get_by_id(resource_id)
        if record is None:
            return None
        path = self.media_store.abspath(record.stored_relpath)
        if path is None or not is_readable_file(path):
            return None
        try:
            stat = path.stat()
        except OSError:
            return None
        return StoredMedia(
            path=path,
            size=stat.st_size,
            mime_type=record.mime_type or guess_media_type(path.name),
            modified_at=stat.st_mtime,
        )

    def search_by_filename(self, filename: str, *, exact: bool) -> int | None:
        record = self.media_repo.find_by_filename(filename, exact=exact)
        return record.id if record else None

    def search_by_title(self, text: str) -> int | None:
        record = self.media_repo.search_title(text)
        return record.id if record else None

    def public_url(self, resource_id: int) -> str | None:
        record = self.media_repo.get_by_id(resource_id)
        if record is None:
            return None
        return f"{self.public_base_url}/media/{quote(record.stored_relpath)}"
