from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True, slots=True)
class ChunkCacheEntry:
    resource_id: int
    data: bytes
    size: int
    mime_type: str
    expires_at: float


class ChunkCache:
    """Process-wide TTL store keyed by ``(resource_id, chunk_index)``.

    Writers race harmlessly: the last write wins and every writer stores the
    same bytes for the same key.
    """

    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[tuple[int, int], ChunkCacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, resource_id: int, chunk_index: int) -> ChunkCacheEntry | None:
        key = (resource_id, chunk_index)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                return None
            return entry

    def put(self, resource_id: int, chunk_index: int, *, data: bytes, size: int, mime_type: str) -> ChunkCacheEntry:
        entry = ChunkCacheEntry(
            resource_id=resource_id,
            data=data,
            size=size,
            mime_type=mime_type,
            expires_at=self._clock() + self.ttl_seconds,
        )
        with self._lock:
            self._entries[(resource_id, chunk_index)] = entry
        return entry

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
