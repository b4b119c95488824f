from __future__ import annotations

import queue
import threading
from typing import BinaryIO, Iterator

from wavestream.core.errors import ClientDisconnectedError

_END_OF_BODY = b""


class QueueResponseSink:
    """Hands a response produced on a worker thread to an ASGI body iterator.

    The body queue is bounded so a slow client throttles the file reads.
    Once ``disconnect`` is called every pending or future ``write`` raises
    ``ClientDisconnectedError``.
    """

    def __init__(self, max_pending_buffers: int = 8, poll_interval: float = 0.25) -> None:
        self._head: queue.Queue[tuple[int, dict[str, str]]] = queue.Queue(maxsize=1)
        self._body: queue.Queue[bytes] = queue.Queue(maxsize=max_pending_buffers)
        self._disconnected = threading.Event()
        self._poll_interval = poll_interval
        self._headers_sent = False

    @property
    def headers_sent(self) -> bool:
        return self._headers_sent

    def send_headers(self, status: int, headers: dict[str, str]) -> None:
        if self._headers_sent:
            raise RuntimeError("Response headers already sent")
        self._headers_sent = True
        self._head.put((status, dict(headers)))

    def write(self, data: bytes) -> None:
        if data:
            self._put(bytes(data))

    def flush(self) -> None:
        # Each write is already visible to the reader.
        return None

    def is_disconnected(self) -> bool:
        return self._disconnected.is_set()

    def disconnect(self) -> None:
        self._disconnected.set()

    def close(self) -> None:
        """Finish the response; a worker that never sent headers yields a bare 500."""
        if not self._headers_sent:
            body = b"Internal server error"
            self.send_headers(
                500,
                {"Content-Type": "text/plain; charset=utf-8", "Content-Length": str(len(body))},
            )
            try:
                self._put(body)
            except ClientDisconnectedError:
                return
        try:
            self._put(_END_OF_BODY)
        except ClientDisconnectedError:
            return

    def wait_for_headers(self, timeout: float | None = None) -> tuple[int, dict[str, str]]:
        return self._head.get(timeout=timeout)

    def iter_body(self) -> Iterator[bytes]:
        while not self._disconnected.is_set():
            try:
                item = self._body.get(timeout=self._poll_interval)
            except queue.Empty:
                continue
            if item == _END_OF_BODY:
                return
            yield item

    def _put(self, item: bytes) -> None:
        while True:
            if self._disconnected.is_set():
                raise ClientDisconnectedError()
            try:
                self._body.put(item, timeout=self._poll_interval)
                return
            except queue.Full:
                continue


class FileResponseSink:
    """Writes the response body to an open binary file, keeping status and headers."""

    def __init__(self, handle: BinaryIO) -> None:
        self.handle = handle
        self.status: int | None = None
        self.headers: dict[str, str] = {}
        self.bytes_written = 0

    def send_headers(self, status: int, headers: dict[str, str]) -> None:
        self.status = status
        self.headers = dict(headers)

    def write(self, data: bytes) -> None:
        self.handle.write(data)
        self.bytes_written += len(data)

    def flush(self) -> None:
        self.handle.flush()

    def is_disconnected(self) -> bool:
        return False
