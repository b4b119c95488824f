from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Protocol

from wavestream.core.config import KIB
from wavestream.core.errors import ClientDisconnectedError
from wavestream.core.hashing import file_etag
from wavestream.core.ranges import content_range, full_range, unsatisfied_content_range
from wavestream.core.time import http_date
from wavestream.domain.models.delivery import (
    MALFORMED_RANGE_REASON,
    ByteRange,
    ChunkResult,
    DeliveryDecision,
    Forbidden,
    NotFound,
    Redirect,
    RejectBadFormat,
    RejectRange,
    ResourceReference,
    StreamFull,
    StreamRange,
    StreamResult,
)

logger = logging.getLogger(__name__)

RESOURCE_ID_HEADER = "X-Wavestream-Resource-Id"
CACHE_STATUS_HEADER = "X-Wavestream-Cache"
CACHE_CONTROL = "public, max-age=86400"

_REASON_MESSAGES = {
    "not_found": "File not found",
    "file_type_not_allowed": "File type not allowed",
    "size_exceeded": "File exceeds maximum streaming size",
    "streaming_disabled": "Streaming is disabled",
    MALFORMED_RANGE_REASON: "Malformed Range header",
}


class ResponseSink(Protocol):
    """Where the engine writes one response: status and headers once, then body bytes.

    ``write`` raises ``ClientDisconnectedError`` when the client is gone.
    """

    def send_headers(self, status: int, headers: dict[str, str]) -> None: ...

    def write(self, data: bytes) -> None: ...

    def flush(self) -> None: ...

    def is_disconnected(self) -> bool: ...


def reason_message(reason: str) -> str:
    return _REASON_MESSAGES.get(reason, reason.replace("_", " ").capitalize())


class StreamingEngine:
    def __init__(self, buffer_size: int = 8 * KIB) -> None:
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        self.buffer_size = buffer_size

    def stream(self, ref: ResourceReference, decision: DeliveryDecision, sink: ResponseSink) -> StreamResult:
        if isinstance(decision, Redirect):
            sink.send_headers(
                302,
                {
                    "Location": decision.url,
                    "Content-Length": "0",
                    RESOURCE_ID_HEADER: str(ref.id),
                },
            )
            return StreamResult(status=302, bytes_sent=0, outcome="redirect", message=decision.url)

        if isinstance(decision, RejectRange):
            sink.send_headers(
                416,
                {
                    "Content-Range": unsatisfied_content_range(decision.size),
                    "Content-Length": "0",
                },
            )
            return StreamResult(status=416, bytes_sent=0, outcome="rejected", message="range_not_satisfiable")

        if isinstance(decision, RejectBadFormat):
            status = 400 if decision.reason == MALFORMED_RANGE_REASON else 403
            return self.reject(status, decision.reason, sink)
        if isinstance(decision, Forbidden):
            return self.reject(403, decision.reason, sink)
        if isinstance(decision, NotFound):
            return self.reject(404, decision.reason, sink)

        if isinstance(decision, StreamFull):
            if decision.head_only:
                sink.send_headers(200, self._entity_headers(ref, ref.size))
                return StreamResult(status=200, bytes_sent=0, outcome="head", byte_range=full_range(ref.size))
            return self._stream_body(ref, full_range(ref.size), sink)

        if isinstance(decision, StreamRange):
            return self._stream_body(ref, decision.byte_range, sink)

        raise TypeError(f"Unknown delivery decision: {decision!r}")

    def send_chunk(self, chunk: ChunkResult, sink: ResponseSink, resource_id: int | None = None) -> StreamResult:
        cache_status = "hit" if chunk.from_cache else "miss"
        byte_range = ByteRange(start=chunk.byte_start, end=chunk.byte_end)
        headers = {
            "Content-Type": chunk.mime_type,
            "Content-Length": str(chunk.length),
            "Content-Range": content_range(byte_range, chunk.total_size),
            "Accept-Ranges": "bytes",
            CACHE_STATUS_HEADER: cache_status,
        }
        if resource_id is not None:
            headers[RESOURCE_ID_HEADER] = str(resource_id)
        sink.send_headers(206, headers)

        sent = 0
        view = memoryview(chunk.data)
        try:
            while sent < chunk.length:
                if sink.is_disconnected():
                    raise ClientDisconnectedError()
                piece = view[sent : sent + self.buffer_size]
                sink.write(bytes(piece))
                sink.flush()
                sent += len(piece)
        except ClientDisconnectedError:
            logger.debug("Client went away after %d of %d chunk bytes", sent, chunk.length)
            return StreamResult(
                status=206,
                bytes_sent=sent,
                outcome="aborted",
                byte_range=byte_range,
                cache_status=cache_status,
            )
        return StreamResult(
            status=206,
            bytes_sent=sent,
            outcome="complete",
            byte_range=byte_range,
            cache_status=cache_status,
        )

    def send_error(self, status: int, message: str, sink: ResponseSink, outcome: str = "rejected") -> StreamResult:
        body = message.encode("utf-8")
        sink.send_headers(
            status,
            {
                "Content-Type": "text/plain; charset=utf-8",
                "Content-Length": str(len(body)),
            },
        )
        sent = 0
        try:
            if body and not sink.is_disconnected():
                sink.write(body)
                sink.flush()
                sent = len(body)
        except ClientDisconnectedError:
            pass
        return StreamResult(status=status, bytes_sent=sent, outcome=outcome, message=message)

    def open_file(self, path: Path) -> BinaryIO:
        return path.open("rb")

    def reject(self, status: int, reason: str, sink: ResponseSink) -> StreamResult:
        result = self.send_error(status, reason_message(reason), sink)
        result.message = reason
        return result

    def _entity_headers(self, ref: ResourceReference, length: int) -> dict[str, str]:
        return {
            "Content-Type": ref.mime_type,
            "Content-Length": str(length),
            "Accept-Ranges": "bytes",
            "Cache-Control": CACHE_CONTROL,
            "Last-Modified": http_date(ref.modified_at),
            "ETag": file_etag(ref.modified_at, ref.size),
            RESOURCE_ID_HEADER: str(ref.id),
        }

    def _stream_body(self, ref: ResourceReference, byte_range: ByteRange | None, sink: ResponseSink) -> StreamResult:
        try:
            handle = self.open_file(ref.path)
        except OSError as exc:
            logger.error("Unable to open media %s: %s", ref.id, exc)
            return self.send_error(500, "Unable to open media file", sink, outcome="open_failed")

        with handle:
            start = byte_range.start if byte_range else 0
            length = byte_range.length if byte_range else 0
            if start:
                try:
                    handle.seek(start)
                except OSError as exc:
                    logger.error("Unable to seek media %s to %d: %s", ref.id, start, exc)
                    return self.send_error(500, "Unable to open media file", sink, outcome="open_failed")

            headers = self._entity_headers(ref, length)
            if byte_range is not None and byte_range.is_partial:
                status = 206
                headers["Content-Range"] = content_range(byte_range, ref.size)
            else:
                status = 200
            sink.send_headers(status, headers)

            sent = 0
            outcome = "complete"
            try:
                while sent < length:
                    if sink.is_disconnected():
                        outcome = "aborted"
                        break
                    try:
                        data = handle.read(min(self.buffer_size, length - sent))
                    except OSError as exc:
                        logger.warning("Read failed for media %s at offset %d: %s", ref.id, start + sent, exc)
                        outcome = "read_failed"
                        break
                    if not data:
                        logger.warning(
                            "Media %s ended early at offset %d (expected %d bytes)",
                            ref.id,
                            start + sent,
                            length,
                        )
                        outcome = "read_failed"
                        break
                    sink.write(data)
                    sink.flush()
                    sent += len(data)
            except ClientDisconnectedError:
                outcome = "aborted"

        if outcome == "aborted":
            logger.debug("Client went away after %d of %d bytes of media %s", sent, length, ref.id)
        return StreamResult(status=status, bytes_sent=sent, outcome=outcome, byte_range=byte_range)
