from __future__ import annotations

import logging
import queue
import sqlite3
import threading
import time
from typing import Any

from wavestream.core.time import now_utc_iso
from wavestream.domain.models.delivery import StreamEvent
from wavestream.infrastructure.db.repos.stream_log_repo import StreamLogRepo

logger = logging.getLogger(__name__)


class StreamLogService:
    """Fire-and-forget stream log backed by a single writer thread.

    ``record`` never blocks the response path: a full queue or a failed
    write drops the event with a warning.
    """

    _PRUNE_EVERY = 200

    def __init__(self, repo: StreamLogRepo, *, retention_rows: int = 5000, max_pending: int = 1000) -> None:
        self.repo = repo
        self.retention_rows = retention_rows
        self._queue: queue.Queue[tuple[StreamEvent, str]] = queue.Queue(maxsize=max_pending)
        self._stop = threading.Event()
        self._writes_since_prune = 0
        self._worker = threading.Thread(target=self._worker_loop, daemon=True, name="stream-log-writer")
        self._worker.start()

    def record(self, event: StreamEvent) -> None:
        if self._stop.is_set():
            logger.warning("Stream log is shut down; dropping %s event", event.log_type)
            return
        try:
            self._queue.put_nowait((event, now_utc_iso()))
        except queue.Full:
            logger.warning("Stream log queue is full; dropping %s event", event.log_type)

    def flush(self, timeout: float = 5.0) -> bool:
        """Wait until every queued event has been written (or dropped)."""
        deadline = time.monotonic() + timeout
        while self._queue.unfinished_tasks:
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.01)
        return True

    def shutdown(self, timeout: float = 2.0) -> None:
        self.flush(timeout=timeout)
        self._stop.set()
        if self._worker.is_alive():
            self._worker.join(timeout=timeout)

    def recent(self, limit: int = 10) -> list[dict[str, Any]]:
        return self.repo.recent(limit)

    def network_stats(self, samples: int = 5) -> dict[str, Any]:
        return self.repo.network_stats(samples)

    def _worker_loop(self) -> None:
        while not self._stop.is_set():
            try:
                event, logged_at = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue
            try:
                self._write(event, logged_at)
            finally:
                self._queue.task_done()

    def _write(self, event: StreamEvent, logged_at: str) -> None:
        try:
            self.repo.insert(event, logged_at=logged_at)
            self._writes_since_prune += 1
            if self._writes_since_prune >= self._PRUNE_EVERY:
                self._writes_since_prune = 0
                deleted = self.repo.prune(self.retention_rows)
                if deleted:
                    logger.debug("Pruned %d stream log rows", deleted)
        except sqlite3.Error as exc:
            logger.warning("Failed to write stream log event (%s): %s", event.log_type, exc)
        except Exception:
            logger.warning("Unexpected error writing stream log event (%s)", event.log_type, exc_info=True)
