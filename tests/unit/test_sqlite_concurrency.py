from __future__ import annotations

import threading
import time
from pathlib import Path

from wavestream.infrastructure.db.sqlite import escape_like, get_connection, initialize_schema


def test_connection_enables_wal_and_busy_timeout(tmp_path: Path) -> None:
    db_path = tmp_path / "wavestream.db"
    initialize_schema(db_path=db_path)

    with get_connection(db_path) as conn:
        journal_mode = conn.execute("PRAGMA journal_mode;").fetchone()[0]
        busy_timeout = conn.execute("PRAGMA busy_timeout;").fetchone()[0]
        foreign_keys = conn.execute("PRAGMA foreign_keys;").fetchone()[0]

    assert str(journal_mode).lower() == "wal"
    assert int(busy_timeout) >= 30_000
    assert int(foreign_keys) == 1


def test_busy_timeout_is_env_tunable(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("WAVESTREAM_SQLITE_BUSY_TIMEOUT_MS", "1500")
    with get_connection(tmp_path / "wavestream.db") as conn:
        assert int(conn.execute("PRAGMA busy_timeout;").fetchone()[0]) == 1500

    monkeypatch.setenv("WAVESTREAM_SQLITE_BUSY_TIMEOUT_MS", "not-a-number")
    with get_connection(tmp_path / "wavestream.db") as conn:
        assert int(conn.execute("PRAGMA busy_timeout;").fetchone()[0]) == 30_000


def test_log_write_waits_for_lock_instead_of_failing_immediately(tmp_path: Path) -> None:
    db_path = tmp_path / "wavestream.db"
    initialize_schema(db_path=db_path)

    writer_1 = get_connection(db_path)
    writer_1.execute("BEGIN IMMEDIATE;")
    writer_1.execute(
        "INSERT INTO stream_logs (logged_at, log_type, message) VALUES (?, ?, ?)",
        ("2026-01-01T00:00:00+00:00", "request", "first"),
    )

    out: dict[str, object] = {}

    def _writer_2() -> None:
        started = time.perf_counter()
        try:
            with get_connection(db_path) as conn_2:
                conn_2.execute(
                    "INSERT INTO stream_logs (logged_at, log_type, message) VALUES (?, ?, ?)",
                    ("2026-01-01T00:00:01+00:00", "request", "second"),
                )
                conn_2.commit()
            out["ok"] = True
        except Exception as exc:  # pragma: no cover - surfaced through the assertion below
            out["ok"] = False
            out["error"] = str(exc)
        finally:
            out["elapsed"] = time.perf_counter() - started

    t = threading.Thread(target=_writer_2)
    t.start()
    time.sleep(0.25)
    writer_1.commit()
    writer_1.close()
    t.join(timeout=5)

    assert out.get("ok") is True, str(out.get("error"))
    assert float(out.get("elapsed", 0.0)) >= 0.2

    with get_connection(db_path) as conn:
        count = conn.execute("SELECT COUNT(*) FROM stream_logs").fetchone()[0]
    assert int(count) == 2


def test_escape_like_neutralises_wildcards() -> None:
    assert escape_like("100%_mix\\take") == "100\\%\\_mix\\\\take"
