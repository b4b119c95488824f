from __future__ import annotations

import logging
import time
from typing import Any, Protocol

from wavestream.application.services.chunk_service import ChunkService
from wavestream.application.services.delivery_policy import DeliveryPolicy
from wavestream.application.services.resolver_service import MAX_RESOURCE_ID, MediaProvider, ResolverService
from wavestream.application.services.streaming_service import ResponseSink, StreamingEngine
from wavestream.core.config import AppPaths, StreamSettings
from wavestream.core.errors import RangeNotSatisfiableError, ResolutionError, StreamOpenError, StreamReadError
from wavestream.domain.models.delivery import (
    ChunkRequest,
    PlaybackRequest,
    RejectRange,
    ResourceReference,
    StreamEvent,
    StreamResult,
)
from wavestream.infrastructure.cache.chunk_cache import ChunkCache
from wavestream.infrastructure.db.repos.media_repo import MediaRepo
from wavestream.infrastructure.library.provider import LibraryMediaProvider
from wavestream.infrastructure.library.store import MediaStore

logger = logging.getLogger(__name__)


class LogSink(Protocol):
    def record(self, event: StreamEvent) -> None: ...


def classify_event(result: StreamResult) -> str:
    if result.status >= 500 or result.outcome == "read_failed":
        return "error"
    if result.outcome == "aborted":
        return "aborted"
    if result.status in (400, 416):
        return "range"
    if result.status in (403, 404):
        return "rejected"
    return "request"


class PlaybackService:
    """Runs one delivery request end to end and records its outcome."""

    def __init__(
        self,
        *,
        provider: MediaProvider,
        resolver: ResolverService,
        policy: DeliveryPolicy,
        engine: StreamingEngine,
        chunk_service: ChunkService,
        log_sink: LogSink | None = None,
    ) -> None:
        self.provider = provider
        self.resolver = resolver
        self.policy = policy
        self.engine = engine
        self.chunk_service = chunk_service
        self.log_sink = log_sink

    @property
    def chunk_size_bytes(self) -> int:
        return self.policy.settings.chunk_size_bytes

    def play(self, request: PlaybackRequest, sink: ResponseSink) -> StreamResult:
        started = time.monotonic()
        method = request.method.upper()
        ref: ResourceReference | None = None
        try:
            ref = self.resolver.resolve(request.locator)
        except ResolutionError as exc:
            logger.info("Playback lookup failed for %r: %s", request.locator, exc)
            result = self.engine.reject(404, "not_found", sink)
        else:
            direct_url = None
            if method == "GET" and request.range_header is None:
                direct_url = self.provider.public_url(ref.id)
            decision = self.policy.decide(ref, method, request.range_header, direct_url)
            result = self.engine.stream(ref, decision, sink)

        self._record(
            result,
            ref=ref,
            started=started,
            locator=request.locator,
            message=f"{method} {request.locator}",
            ip_address=request.ip_address,
            user_agent=request.user_agent,
        )
        return result

    def serve_chunk(self, request: ChunkRequest, sink: ResponseSink) -> StreamResult:
        started = time.monotonic()
        result, ref = self._serve_chunk(request, sink)
        self._record(
            result,
            ref=ref,
            resource_id=request.resource_id,
            started=started,
            locator=str(request.resource_id),
            chunk_index=request.chunk_index,
            message=f"chunk {request.chunk_index} of {request.resource_id}",
            ip_address=request.ip_address,
            user_agent=request.user_agent,
        )
        return result

    def resolve(self, locator: str) -> dict[str, Any]:
        ref = self.resolver.resolve(locator)
        return {
            "success": True,
            "id": ref.id,
            "url": self.provider.public_url(ref.id),
            "mime": ref.mime_type,
            "size": ref.size,
            "method": ref.resolved_by,
        }

    def _serve_chunk(
        self,
        request: ChunkRequest,
        sink: ResponseSink,
    ) -> tuple[StreamResult, ResourceReference | None]:
        if request.chunk_index < 0:
            return self.engine.send_error(400, "Invalid chunk index", sink), None
        if not self.policy.settings.enable_streaming:
            return self.engine.reject(403, "streaming_disabled", sink), None

        if request.chunk_index == 0:
            cached = self.chunk_service.peek_first_chunk(request.resource_id, self.chunk_size_bytes)
            if cached is not None:
                return self.engine.send_chunk(cached, sink, request.resource_id), None

        try:
            ref = self.resolver.resolve_id(request.resource_id)
        except ResolutionError:
            return self.engine.reject(404, "not_found", sink), None

        rejection = self.policy.check_resource(ref)
        if rejection is not None:
            return self.engine.stream(ref, rejection, sink), ref

        try:
            chunk = self.chunk_service.get_chunk(ref, request.chunk_index, self.chunk_size_bytes)
        except RangeNotSatisfiableError as exc:
            return self.engine.stream(ref, RejectRange(size=exc.size), sink), ref
        except StreamOpenError as exc:
            logger.error("%s", exc)
            return self.engine.send_error(500, "Unable to open media file", sink, outcome="open_failed"), ref
        except StreamReadError as exc:
            logger.warning("%s", exc)
            return self.engine.send_error(500, "Unable to read media file", sink, outcome="read_failed"), ref

        return self.engine.send_chunk(chunk, sink, ref.id), ref

    def _record(
        self,
        result: StreamResult,
        *,
        ref: ResourceReference | None,
        started: float,
        resource_id: int | None = None,
        locator: str,
        message: str,
        chunk_index: int | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        if self.log_sink is None:
            return
        if ref is not None:
            resource_id = ref.id
        elif resource_id is not None and not 0 <= resource_id <= MAX_RESOURCE_ID:
            resource_id = None
        event = StreamEvent(
            log_type=classify_event(result),
            message=f"{message} -> {result.status} {result.outcome}",
            resource_id=resource_id,
            locator=locator,
            chunk_index=chunk_index,
            byte_start=result.byte_range.start if result.byte_range else None,
            byte_end=result.byte_range.end if result.byte_range else None,
            file_size=ref.size if ref else None,
            bytes_sent=result.bytes_sent,
            status_code=result.status,
            duration_ms=int((time.monotonic() - started) * 1000),
            cache_status=result.cache_status,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        try:
            self.log_sink.record(event)
        except Exception:
            logger.warning("Stream log sink rejected event", exc_info=True)


def create_playback_service(
    paths: AppPaths,
    settings: StreamSettings,
    log_sink: LogSink | None = None,
) -> PlaybackService:
    provider = LibraryMediaProvider(
        MediaRepo(paths.db_path),
        MediaStore(paths.media_dir),
        public_base_url=settings.public_base_url,
    )
    return PlaybackService(
        provider=provider,
        resolver=ResolverService(provider),
        policy=DeliveryPolicy(settings),
        engine=StreamingEngine(buffer_size=settings.buffer_size_bytes),
        chunk_service=ChunkService(
            ChunkCache(ttl_seconds=settings.chunk_cache_ttl_seconds),
            max_chunk_bytes=settings.max_chunk_size_bytes,
        ),
        log_sink=log_sink,
    )
