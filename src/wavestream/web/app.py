from __future__ import annotations

import logging
import tempfile
import threading
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Callable

from fastapi import FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.concurrency import iterate_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from wavestream.application.services.library_service import LibraryService
from wavestream.application.services.playback_service import create_playback_service
from wavestream.application.services.project_service import ProjectService
from wavestream.application.services.stream_log_service import StreamLogService
from wavestream.core.config import AppPaths, StreamSettings, load_settings
from wavestream.core.errors import LibraryError, ResolutionError
from wavestream.domain.models.delivery import ChunkRequest, PlaybackRequest, StreamResult
from wavestream.infrastructure.db.repos.media_repo import MediaRepo
from wavestream.infrastructure.db.repos.stream_log_repo import StreamLogRepo
from wavestream.infrastructure.library.store import MediaStore
from wavestream.web.sinks import QueueResponseSink

logger = logging.getLogger(__name__)

_EXPOSED_HEADERS = [
    "Accept-Ranges",
    "Content-Length",
    "Content-Range",
    "ETag",
    "X-Wavestream-Cache",
    "X-Wavestream-Resource-Id",
]


class AddMediaPathRequest(BaseModel):
    path: str
    title: str | None = None
    description: str | None = None


def _jsonable(value: Any) -> Any:
    if is_dataclass(value):
        return asdict(value)
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return value


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",", 1)[0].strip() or None
    return request.client.host if request.client else None


def _parse_non_negative_int(raw: str | None, name: str) -> int:
    if raw is None or not raw.strip():
        raise HTTPException(status_code=400, detail=f"Missing required parameter: {name}")
    value = raw.strip()
    if not value.isascii() or not value.isdigit():
        raise HTTPException(status_code=400, detail=f"Invalid {name}: {raw}")
    return int(value)


def create_app(paths: AppPaths, settings: StreamSettings | None = None) -> FastAPI:
    settings = settings or load_settings()
    app = FastAPI(title="Wavestream", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "HEAD", "POST"],
        allow_headers=["*"],
        expose_headers=_EXPOSED_HEADERS,
    )

    project_service = ProjectService(paths)
    project_service.init_project()

    media_repo = MediaRepo(paths.db_path)
    library_service = LibraryService(media_repo, MediaStore(paths.media_dir))
    log_service = StreamLogService(StreamLogRepo(paths.db_path), retention_rows=settings.log_retention_rows)
    playback_service = create_playback_service(paths, settings, log_sink=log_service)
    provider = playback_service.provider
    chunk_service = playback_service.chunk_service

    app.state.settings = settings
    app.state.playback_service = playback_service
    app.state.log_service = log_service

    @app.on_event("shutdown")
    def _shutdown_stream_log() -> None:
        log_service.shutdown()

    def _stream_delivery(runner: Callable[[QueueResponseSink], StreamResult]) -> StreamingResponse:
        sink = QueueResponseSink()

        def worker() -> None:
            try:
                runner(sink)
            except Exception:
                logger.exception("Delivery worker failed")
            finally:
                sink.close()

        threading.Thread(target=worker, daemon=True, name="wavestream-delivery").start()
        status, headers = sink.wait_for_headers()

        async def body() -> AsyncIterator[bytes]:
            try:
                async for piece in iterate_in_threadpool(sink.iter_body()):
                    yield piece
            finally:
                sink.disconnect()

        return StreamingResponse(body(), status_code=status, headers=headers)

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"ok": True, "media": media_repo.count()}

    @app.api_route("/play/{locator:path}", methods=["GET", "HEAD"])
    def play(locator: str, request: Request) -> StreamingResponse:
        playback_request = PlaybackRequest(
            locator=locator,
            method=request.method,
            range_header=request.headers.get("range"),
            ip_address=_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
        return _stream_delivery(lambda sink: playback_service.play(playback_request, sink))

    @app.get("/resolve-id")
    def resolve_id(filename: str | None = Query(default=None)) -> dict[str, Any]:
        if filename is None or not filename.strip():
            raise HTTPException(status_code=400, detail="Missing required parameter: filename")
        try:
            return playback_service.resolve(filename)
        except ResolutionError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    @app.get("/chunk")
    def chunk_endpoint(
        request: Request,
        file_id: str | None = Query(default=None),
        chunk: str | None = Query(default=None),
    ) -> StreamingResponse:
        chunk_request = ChunkRequest(
            resource_id=_parse_non_negative_int(file_id, "file_id"),
            chunk_index=_parse_non_negative_int(chunk, "chunk"),
            ip_address=_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
        return _stream_delivery(lambda sink: playback_service.serve_chunk(chunk_request, sink))

    @app.get("/api/media")
    def api_media(limit: int = Query(default=100, ge=1, le=1000)) -> dict[str, Any]:
        records = library_service.list(limit)
        return {"ok": True, "count": media_repo.count(), "media": _jsonable(records)}

    @app.get("/api/media/{media_id}")
    def api_media_item(media_id: int) -> dict[str, Any]:
        record = library_service.get(media_id)
        if record is None:
            raise HTTPException(status_code=404, detail=f"Media not found: {media_id}")
        return {"ok": True, "media": _jsonable(record), "url": provider.public_url(media_id)}

    @app.post("/api/media/path")
    def api_media_path(req: AddMediaPathRequest) -> dict[str, Any]:
        try:
            result = library_service.add_file(Path(req.path), title=req.title, description=req.description)
        except LibraryError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"ok": True, "status": result.status, "media": _jsonable(result.record)}

    @app.post("/api/media/upload")
    async def api_media_upload(
        file: UploadFile = File(...),
        title: str | None = Form(default=None),
        description: str | None = Form(default=None),
    ) -> dict[str, Any]:
        filename = file.filename or "upload.bin"
        temp_path = None
        try:
            with tempfile.NamedTemporaryFile(delete=False, suffix=Path(filename).suffix) as tmp:
                temp_path = Path(tmp.name)
                tmp.write(await file.read())
            result = library_service.add_file(
                temp_path,
                title=title,
                description=description,
                original_filename=filename,
            )
        except LibraryError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        finally:
            if temp_path and temp_path.exists():
                temp_path.unlink(missing_ok=True)
        return {
            "ok": True,
            "status": result.status,
            "media": _jsonable(result.record),
            "uploaded_filename": file.filename,
        }

    @app.get("/api/logs")
    def api_logs(limit: int = Query(default=10, ge=1, le=500)) -> dict[str, Any]:
        return {"ok": True, "logs": log_service.recent(limit)}

    @app.get("/api/logs/stats")
    def api_logs_stats(samples: int = Query(default=5, ge=1, le=1000)) -> dict[str, Any]:
        return {"ok": True, "stats": log_service.network_stats(samples)}

    @app.post("/api/cache/clear")
    def api_cache_clear() -> dict[str, Any]:
        return {"ok": True, "count": chunk_service.clear()}

    @app.get("/api/settings")
    def api_settings() -> dict[str, Any]:
        return {"ok": True, "settings": settings.as_dict()}

    app.mount("/media", StaticFiles(directory=str(paths.media_dir)), name="media")

    return app
