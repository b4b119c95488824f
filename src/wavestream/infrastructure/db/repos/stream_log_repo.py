from __future__ import annotations

from pathlib import Path
from typing import Any

from wavestream.core.time import now_utc_iso
from wavestream.domain.models.delivery import StreamEvent
from wavestream.infrastructure.db.sqlite import get_connection


class StreamLogRepo:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def insert(self, event: StreamEvent, logged_at: str | None = None) -> int:
        with get_connection(self.db_path) as conn:
            cursor = conn.execute(
                """
                INSERT INTO stream_logs (
                    logged_at,
                    log_type,
                    message,
                    resource_id,
                    locator,
                    chunk_index,
                    byte_start,
                    byte_end,
                    file_size,
                    bytes_sent,
                    status_code,
                    duration_ms,
                    cache_status,
                    ip_address,
                    user_agent
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    logged_at or now_utc_iso(),
                    event.log_type,
                    event.message,
                    event.resource_id,
                    event.locator,
                    event.chunk_index,
                    event.byte_start,
                    event.byte_end,
                    event.file_size,
                    event.bytes_sent,
                    event.status_code,
                    event.duration_ms,
                    event.cache_status,
                    event.ip_address,
                    event.user_agent,
                ),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def recent(self, limit: int = 10) -> list[dict[str, Any]]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM stream_logs ORDER BY id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [dict(row) for row in rows]

    def network_stats(self, samples: int = 5) -> dict[str, Any]:
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                """
                SELECT
                    AVG(duration_ms) AS avg_duration,
                    MAX(duration_ms) AS max_duration,
                    MIN(duration_ms) AS min_duration,
                    COUNT(*) AS samples
                FROM (
                    SELECT duration_ms
                    FROM stream_logs
                    WHERE duration_ms > 0
                    ORDER BY id DESC
                    LIMIT ?
                )
                """,
                (samples,),
            ).fetchone()
        count = int(row["samples"] or 0)
        if count == 0:
            return {"avg_duration": 0, "max_duration": 0, "min_duration": 0, "samples": 0}
        return {
            "avg_duration": round(float(row["avg_duration"]), 2),
            "max_duration": int(row["max_duration"]),
            "min_duration": int(row["min_duration"]),
            "samples": count,
        }

    def count(self) -> int:
        with get_connection(self.db_path) as conn:
            return int(conn.execute("SELECT COUNT(*) AS c FROM stream_logs").fetchone()["c"])

    def prune(self, keep: int) -> int:
        with get_connection(self.db_path) as conn:
            cursor = conn.execute(
                """
                DELETE FROM stream_logs
                WHERE id NOT IN (
                    SELECT id FROM stream_logs ORDER BY id DESC LIMIT ?
                )
                """,
                (keep,),
            )
            conn.commit()
            return int(cursor.rowcount or 0)
