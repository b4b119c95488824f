from __future__ import annotations

import logging

from wavestream.core.config import MIB
from wavestream.core.errors import RangeNotSatisfiableError, StreamOpenError, StreamReadError
from wavestream.domain.models.delivery import ChunkResult, ResourceReference
from wavestream.infrastructure.cache.chunk_cache import ChunkCache

logger = logging.getLogger(__name__)

# Only the first chunk is worth keeping: players request it on every load.
CACHED_CHUNK_INDEX = 0


class ChunkService:
    def __init__(
        self,
        cache: ChunkCache,
        *,
        max_chunk_bytes: int = 8 * MIB,
        read_size: int = 512 * 1024,
    ) -> None:
        self.cache = cache
        self.max_chunk_bytes = max_chunk_bytes
        self.read_size = read_size

    def effective_chunk_size(self, chunk_size_bytes: int) -> int:
        return max(1, min(int(chunk_size_bytes), self.max_chunk_bytes))

    def peek_first_chunk(self, resource_id: int, chunk_size_bytes: int) -> ChunkResult | None:
        """Cached chunk 0 for ``resource_id`` without touching the provider or disk."""
        entry = self.cache.get(resource_id, CACHED_CHUNK_INDEX)
        if entry is None:
            return None
        size = self.effective_chunk_size(chunk_size_bytes)
        expected = min(size, entry.size)
        if len(entry.data) != expected:
            logger.debug("Ignoring stale chunk cache entry for media %s", resource_id)
            return None
        return ChunkResult(
            data=entry.data,
            byte_start=0,
            byte_end=len(entry.data) - 1,
            total_size=entry.size,
            mime_type=entry.mime_type,
            from_cache=True,
        )

    def get_chunk(self, ref: ResourceReference, chunk_index: int, chunk_size_bytes: int) -> ChunkResult:
        if chunk_index < 0:
            raise ValueError(f"Chunk index must not be negative: {chunk_index}")
        size = self.effective_chunk_size(chunk_size_bytes)
        byte_start = chunk_index * size
        if byte_start >= ref.size:
            raise RangeNotSatisfiableError(ref.size)
        byte_end = min(byte_start + size - 1, ref.size - 1)

        if chunk_index == CACHED_CHUNK_INDEX:
            cached = self.peek_first_chunk(ref.id, size)
            if cached is not None and cached.total_size == ref.size:
                return cached

        data = self._read(ref, byte_start, byte_end - byte_start + 1)

        if chunk_index == CACHED_CHUNK_INDEX:
            self.cache.put(ref.id, CACHED_CHUNK_INDEX, data=data, size=ref.size, mime_type=ref.mime_type)

        return ChunkResult(
            data=data,
            byte_start=byte_start,
            byte_end=byte_end,
            total_size=ref.size,
            mime_type=ref.mime_type,
        )

    def clear(self) -> int:
        count = self.cache.clear()
        logger.info("Cleared %d chunk cache entries", count)
        return count

    def purge_expired(self) -> int:
        return self.cache.purge_expired()

    def _read(self, ref: ResourceReference, offset: int, length: int) -> bytes:
        try:
            handle = ref.path.open("rb")
        except OSError as exc:
            raise StreamOpenError(f"Unable to open media {ref.id}") from exc

        parts: list[bytes] = []
        remaining = length
        with handle:
            try:
                handle.seek(offset)
                while remaining > 0:
                    data = handle.read(min(self.read_size, remaining))
                    if not data:
                        raise StreamReadError(f"Media {ref.id} ended early at offset {offset + length - remaining}")
                    parts.append(data)
                    remaining -= len(data)
            except OSError as exc:
                raise StreamReadError(f"Read failed for media {ref.id}") from exc
        return b"".join(parts)
