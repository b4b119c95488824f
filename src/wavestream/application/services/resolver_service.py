from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath
from typing import Protocol
from urllib.parse import unquote, urlsplit

from wavestream.core.errors import ResolutionError
from wavestream.domain.models.delivery import ResourceReference
from wavestream.domain.models.media import StoredMedia

logger = logging.getLogger(__name__)

_NUMERIC_ID_RE = re.compile(r"\d+", re.ASCII)
_URL_SCHEMES = {"http", "https", "file"}

# Largest value an SQLite INTEGER primary key can hold.
MAX_RESOURCE_ID = 2**63 - 1


class MediaProvider(Protocol):
    def lookup_by_id(self, resource_id: int) -> StoredMedia | None: ...

    def search_by_filename(self, filename: str, *, exact: bool) -> int | None: ...

    def search_by_title(self, text: str) -> int | None: ...

    def public_url(self, resource_id: int) -> str | None: ...


def filename_candidate(locator: str) -> str:
    """Reduce a filename, relative path or full URL to its final path segment.

    Query and fragment are split off before percent-decoding, so an encoded
    ``#`` or ``?`` stays part of the name.
    """
    raw = locator.strip().replace("\\", "/")
    parts = urlsplit(raw)
    if parts.netloc or parts.scheme in _URL_SCHEMES:
        path = parts.path
    else:
        path = raw.split("?", 1)[0].split("#", 1)[0]
    path = unquote(path)
    return PurePosixPath(path).name if path.strip("/") else ""


class ResolverService:
    def __init__(self, provider: MediaProvider) -> None:
        self.provider = provider

    def resolve(self, locator: str) -> ResourceReference:
        raw = (locator or "").strip()
        if not raw:
            raise ResolutionError("Empty locator")

        if _NUMERIC_ID_RE.fullmatch(raw):
            return self.resolve_id(int(raw))

        candidate = filename_candidate(raw)
        if not candidate:
            raise ResolutionError(f"No filename in locator: {raw}")

        resource_id = self.provider.search_by_filename(candidate, exact=True)
        method = "filename_exact"
        if resource_id is None:
            resource_id = self.provider.search_by_filename(candidate, exact=False)
            method = "filename_partial"
        if resource_id is None:
            stem = PurePosixPath(candidate).stem
            if stem:
                resource_id = self.provider.search_by_title(stem)
                method = "title_search"

        if resource_id is None:
            logger.debug("No media matched locator %r (candidate %r)", raw, candidate)
            raise ResolutionError(f"No media matches: {candidate}")

        logger.debug("Locator %r resolved to media %s by %s", raw, resource_id, method)
        return self._reference(resource_id, method)

    def resolve_id(self, resource_id: int) -> ResourceReference:
        if not 0 <= resource_id <= MAX_RESOURCE_ID:
            raise ResolutionError(f"Media not found: {resource_id}")
        return self._reference(resource_id, "id")

    def _reference(self, resource_id: int, method: str) -> ResourceReference:
        stored = self.provider.lookup_by_id(resource_id)
        if stored is None:
            raise ResolutionError(f"Media not found: {resource_id}")
        return ResourceReference(
            id=resource_id,
            path=stored.path,
            size=stored.size,
            mime_type=stored.mime_type,
            modified_at=stored.modified_at,
            resolved_by=method,
        )
