from pathlib import Path

from fastapi.testclient import TestClient

from wavestream.core.config import AppPaths, StreamSettings
from wavestream.web.app import create_app

AUDIO = bytes(i % 241 for i in range(5000))


def _paths(tmp_path: Path) -> AppPaths:
    project_root = tmp_path / "proj"
    project_root.mkdir(parents=True, exist_ok=True)
    return AppPaths(
        project_root=project_root,
        wavestream_dir=project_root / ".wavestream",
        db_path=project_root / ".wavestream" / "wavestream.db",
        media_dir=project_root / ".wavestream" / "media",
    )


def _add_take(client: TestClient, tmp_path: Path, name: str = "take.wav", data: bytes = AUDIO) -> dict:
    source = tmp_path / name
    source.write_bytes(data)
    r = client.post("/api/media/path", json={"path": str(source), "title": "Morning Take"})
    assert r.status_code == 200
    return r.json()["media"]


def test_play_end_to_end(tmp_path: Path) -> None:
    app = create_app(_paths(tmp_path), StreamSettings())
    with TestClient(app) as client:
        media = _add_take(client, tmp_path)
        media_id = media["id"]

        # Small WAV without Range: redirect to the static file URL.
        r = client.get(f"/play/{media_id}", follow_redirects=False)
        assert r.status_code == 302
        location = r.headers["location"]
        assert location == f"/media/{media['stored_relpath']}"
        direct = client.get(location)
        assert direct.status_code == 200
        assert direct.content == AUDIO

        # Range request by filename.
        r = client.get("/play/take.wav", headers={"Range": "bytes=100-199"})
        assert r.status_code == 206
        assert r.content == AUDIO[100:200]
        assert r.headers["content-range"] == "bytes 100-199/5000"
        assert r.headers["content-length"] == "100"
        assert r.headers["accept-ranges"] == "bytes"
        assert r.headers["content-type"] == "audio/wav"

        # Suffix range through a full URL locator.
        r = client.get(
            "/play/https%3A%2F%2Fexample.com%2Faudio%2Ftake.wav",
            headers={"Range": "bytes=-10"},
        )
        assert r.status_code == 206
        assert r.content == AUDIO[-10:]

        # HEAD never redirects and never returns 206.
        r = client.head(f"/play/{media_id}", headers={"Range": "bytes=0-9"})
        assert r.status_code == 200
        assert r.headers["content-length"] == "5000"
        assert r.headers["etag"].startswith('"')
        assert r.content == b""

        r = client.get(f"/play/{media_id}", headers={"Range": "bytes=5000-"})
        assert r.status_code == 416
        assert r.headers["content-range"] == "bytes */5000"

        r = client.get(f"/play/{media_id}", headers={"Range": "bytes=abc"})
        assert r.status_code == 400

        r = client.get("/play/does-not-exist.wav")
        assert r.status_code == 404
        assert r.text == "File not found"


def test_large_files_stream_instead_of_redirecting(tmp_path: Path) -> None:
    app = create_app(_paths(tmp_path), StreamSettings(redirect_threshold_mb=0, buffer_size_kb=8))
    with TestClient(app) as client:
        data = bytes(i % 13 for i in range(100_000))
        media_id = _add_take(client, tmp_path, data=data)["id"]

        r = client.get(f"/play/{media_id}", follow_redirects=False)
        assert r.status_code == 200
        assert r.headers["content-length"] == "100000"
        assert r.content == data


def test_policy_rejections(tmp_path: Path) -> None:
    app = create_app(_paths(tmp_path), StreamSettings(allowed_extensions=("mp3",)))
    with TestClient(app) as client:
        media_id = _add_take(client, tmp_path)["id"]
        r = client.get(f"/play/{media_id}")
        assert r.status_code == 403
        assert r.text == "File type not allowed"

        r = client.get(f"/chunk?file_id={media_id}&chunk=0")
        assert r.status_code == 403


def test_streaming_disabled(tmp_path: Path) -> None:
    app = create_app(_paths(tmp_path), StreamSettings(enable_streaming=False))
    with TestClient(app) as client:
        media_id = _add_take(client, tmp_path)["id"]
        r = client.get(f"/play/{media_id}", headers={"Range": "bytes=0-1"})
        assert r.status_code == 403
        assert r.text == "Streaming is disabled"


def test_resolve_id_endpoint(tmp_path: Path) -> None:
    app = create_app(_paths(tmp_path), StreamSettings())
    with TestClient(app) as client:
        media = _add_take(client, tmp_path)

        r = client.get("/resolve-id", params={"filename": "take.wav"})
        assert r.status_code == 200
        payload = r.json()
        assert payload == {
            "success": True,
            "id": media["id"],
            "url": f"/media/{media['stored_relpath']}",
            "mime": "audio/wav",
            "size": 5000,
            "method": "filename_exact",
        }

        r = client.get("/resolve-id", params={"filename": "Morning.wav"})
        assert r.status_code == 200
        assert r.json()["method"] == "title_search"

        assert client.get("/resolve-id").status_code == 400
        r = client.get("/resolve-id", params={"filename": "other.mp3"})
        assert r.status_code == 404
        assert "detail" in r.json()


def test_chunk_endpoint_caches_first_chunk(tmp_path: Path) -> None:
    app = create_app(_paths(tmp_path), StreamSettings(chunk_size_mb=2048 / (1024 * 1024)))
    with TestClient(app) as client:
        media_id = _add_take(client, tmp_path)["id"]

        r = client.get("/chunk", params={"file_id": media_id, "chunk": 0})
        assert r.status_code == 206
        assert r.headers["x-wavestream-cache"] == "miss"
        assert r.headers["content-range"] == "bytes 0-2047/5000"
        assert r.content == AUDIO[:2048]

        r = client.get("/chunk", params={"file_id": media_id, "chunk": 0})
        assert r.headers["x-wavestream-cache"] == "hit"
        assert r.content == AUDIO[:2048]

        r = client.get("/chunk", params={"file_id": media_id, "chunk": 2})
        assert r.status_code == 206
        assert r.headers["content-range"] == "bytes 4096-4999/5000"
        assert r.content == AUDIO[4096:]

        assert client.get("/chunk", params={"file_id": media_id, "chunk": 3}).status_code == 416
        assert client.get("/chunk", params={"file_id": 999, "chunk": 1}).status_code == 404
        assert client.get("/chunk", params={"file_id": media_id}).status_code == 400
        assert client.get("/chunk", params={"file_id": "abc", "chunk": 0}).status_code == 400
        assert client.get("/chunk", params={"file_id": media_id, "chunk": -1}).status_code == 400

        r = client.post("/api/cache/clear")
        assert r.json() == {"ok": True, "count": 1}
        r = client.get("/chunk", params={"file_id": media_id, "chunk": 0})
        assert r.headers["x-wavestream-cache"] == "miss"


def test_logs_settings_and_media_admin(tmp_path: Path) -> None:
    app = create_app(_paths(tmp_path), StreamSettings())
    with TestClient(app) as client:
        media = _add_take(client, tmp_path)
        client.get(f"/play/{media['id']}", headers={"Range": "bytes=0-9"})
        client.get("/play/missing.wav")
        assert app.state.log_service.flush() is True

        r = client.get("/api/logs", params={"limit": 5})
        assert r.status_code == 200
        logs = r.json()["logs"]
        assert [row["log_type"] for row in logs] == ["rejected", "request"]
        assert logs[1]["status_code"] == 206
        assert logs[1]["bytes_sent"] == 10

        r = client.get("/api/logs/stats")
        assert r.status_code == 200
        assert set(r.json()["stats"]) == {"avg_duration", "max_duration", "min_duration", "samples"}

        r = client.get("/api/settings")
        assert r.json()["settings"]["allowed_extensions"] == ["mp3", "wav", "ogg", "m4a", "flac"]

        r = client.get("/api/media")
        assert r.json()["count"] == 1
        assert client.get(f"/api/media/{media['id']}").json()["media"]["title"] == "Morning Take"
        assert client.get("/api/media/999").status_code == 404

        r = client.post("/api/media/path", json={"path": str(tmp_path / "missing.wav")})
        assert r.status_code == 400

        r = client.post(
            "/api/media/upload",
            files={"file": ("upload.mp3", b"ID3-upload", "audio/mpeg")},
            data={"title": "Uploaded"},
        )
        assert r.status_code == 200
        assert r.json()["status"] == "added"
        assert r.json()["media"]["stored_relpath"].endswith("/upload.mp3")
        r = client.post("/api/media/upload", files={"file": ("again.mp3", b"ID3-upload", "audio/mpeg")})
        assert r.json()["status"] == "duplicate"

        assert client.get("/health").json() == {"ok": True, "media": 2}


def test_ids_beyond_integer_range_are_not_found(tmp_path: Path) -> None:
    app = create_app(_paths(tmp_path), StreamSettings())
    with TestClient(app) as client:
        _add_take(client, tmp_path)
        huge = "99999999999999999999"

        r = client.get(f"/play/{huge}", headers={"Range": "bytes=0-9"})
        assert r.status_code == 404
        assert r.text == "File not found"

        for chunk in (0, 1):
            r = client.get("/chunk", params={"file_id": huge, "chunk": chunk})
            assert r.status_code == 404

        assert app.state.log_service.flush() is True
        logs = client.get("/api/logs", params={"limit": 10}).json()["logs"]
        assert [row["status_code"] for row in logs] == [404, 404, 404]
        assert all(row["resource_id"] is None for row in logs)


def test_encoded_hash_in_filename_is_not_truncated(tmp_path: Path) -> None:
    app = create_app(_paths(tmp_path), StreamSettings())
    with TestClient(app) as client:
        _add_take(client, tmp_path, name="track.wav")

        assert client.get("/resolve-id", params={"filename": "track.wav"}).status_code == 200
        r = client.get("/resolve-id", params={"filename": "track%231.wav"})
        assert r.status_code == 404
        r = client.get("/play/track%25231.wav", headers={"Range": "bytes=0-9"})
        assert r.status_code == 404
