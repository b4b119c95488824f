from __future__ import annotations

from pathlib import Path

from wavestream.domain.models.media import MediaRecord
from wavestream.infrastructure.db.sqlite import escape_like, get_connection, like_pattern


class MediaRepo:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def insert(self, record: MediaRecord) -> MediaRecord:
        with get_connection(self.db_path) as conn:
            cursor = conn.execute(
                """
                INSERT INTO media (
                    stored_relpath,
                    title,
                    description,
                    mime_type,
                    size_bytes,
                    digest_sha256,
                    added_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.stored_relpath,
                    record.title,
                    record.description,
                    record.mime_type,
                    record.size_bytes,
                    record.digest_sha256,
                    record.added_at,
                ),
            )
            conn.commit()
            record.id = int(cursor.lastrowid)
        return record

    def get_by_id(self, media_id: int) -> MediaRecord | None:
        with get_connection(self.db_path) as conn:
            row = conn.execute("SELECT * FROM media WHERE id = ?", (media_id,)).fetchone()
        return self._to_model(row) if row else None

    def get_by_digest(self, digest_sha256: str) -> MediaRecord | None:
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM media WHERE digest_sha256 = ? ORDER BY id ASC LIMIT 1",
                (digest_sha256,),
            ).fetchone()
        return self._to_model(row) if row else None

    def find_by_filename(self, filename: str, *, exact: bool) -> MediaRecord | None:
        """Match against the stored path.

        Exact mode accepts the whole stored path or its final segment,
        ignoring case. Partial mode accepts any stored path containing the
        name. The lowest ID wins when several rows match.
        """
        if not filename:
            return None
        with get_connection(self.db_path) as conn:
            if exact:
                row = conn.execute(
                    """
                    SELECT * FROM media
                    WHERE stored_relpath = ? COLLATE NOCASE
                       OR stored_relpath LIKE ? ESCAPE '\\'
                    ORDER BY id ASC
                    LIMIT 1
                    """,
                    (filename, "%/" + escape_like(filename)),
                ).fetchone()
            else:
                row = conn.execute(
                    """
                    SELECT * FROM media
                    WHERE stored_relpath LIKE ? ESCAPE '\\'
                    ORDER BY id ASC
                    LIMIT 1
                    """,
                    (like_pattern(filename),),
                ).fetchone()
        return self._to_model(row) if row else None

    def search_title(self, text: str) -> MediaRecord | None:
        if not text.strip():
            return None
        pattern = like_pattern(text.strip())
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                """
                SELECT * FROM media
                WHERE title LIKE ? ESCAPE '\\'
                   OR description LIKE ? ESCAPE '\\'
                ORDER BY id ASC
                LIMIT 1
                """,
                (pattern, pattern),
            ).fetchone()
        return self._to_model(row) if row else None

    def list(self, limit: int = 100) -> list[MediaRecord]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM media
                ORDER BY added_at DESC, id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [self._to_model(row) for row in rows]

    def count(self) -> int:
        with get_connection(self.db_path) as conn:
            return int(conn.execute("SELECT COUNT(*) AS c FROM media").fetchone()["c"])

    @staticmethod
    def _to_model(row) -> MediaRecord:
        return MediaRecord(
            id=int(row["id"]),
            stored_relpath=row["stored_relpath"],
            title=row["title"],
            description=row["description"],
            mime_type=row["mime_type"],
            size_bytes=int(row["size_bytes"]),
            digest_sha256=row["digest_sha256"],
            added_at=row["added_at"],
        )
