from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from wavestream.core.config import StreamSettings
from wavestream.core.files import is_readable_file
from wavestream.core.mime import extension_of
from wavestream.infrastructure.db.repos.media_repo import MediaRepo
from wavestream.infrastructure.db.sqlite import get_connection
from wavestream.infrastructure.library.store import MediaStore


@dataclass(slots=True)
class DoctorIssue:
    check: str
    level: str
    message: str


@dataclass(slots=True)
class DoctorReport:
    ok: bool
    checks_run: int
    issues: list[DoctorIssue]
    db_runtime: dict[str, object]


class HealthService:
    def __init__(self, db_path: Path, media_dir: Path, settings: StreamSettings) -> None:
        self.db_path = db_path
        self.media_dir = media_dir
        self.settings = settings

    def run_doctor(self) -> DoctorReport:
        issues: list[DoctorIssue] = []
        checks_run = 0

        media_repo = MediaRepo(self.db_path)
        store = MediaStore(self.media_dir)

        # Check 1: database runtime pragmas support concurrent access.
        checks_run += 1
        with get_connection(self.db_path) as conn:
            journal_mode = str(conn.execute("PRAGMA journal_mode;").fetchone()[0]).lower()
            busy_timeout_ms = int(conn.execute("PRAGMA busy_timeout;").fetchone()[0])
            foreign_keys = int(conn.execute("PRAGMA foreign_keys;").fetchone()[0])

        db_runtime: dict[str, object] = {
            "journal_mode": journal_mode,
            "busy_timeout_ms": busy_timeout_ms,
            "foreign_keys": bool(foreign_keys),
        }

        if journal_mode != "wal":
            issues.append(
                DoctorIssue(
                    check="db_runtime",
                    level="error",
                    message=f"SQLite journal_mode is '{journal_mode}', expected 'wal' for concurrent access.",
                )
            )
        if foreign_keys != 1:
            issues.append(
                DoctorIssue(check="db_runtime", level="error", message="SQLite foreign_keys pragma is disabled.")
            )
        if busy_timeout_ms <= 0:
            issues.append(
                DoctorIssue(
                    check="db_runtime",
                    level="error",
                    message="SQLite busy_timeout is disabled; concurrent log writes may fail immediately.",
                )
            )

        records = media_repo.list(limit=1_000_000)
        sizes: dict[int, int] = {}

        # Check 2: every media record has a readable file in the library.
        checks_run += 1
        for record in records:
            path = store.abspath(record.stored_relpath)
            if path is None or not is_readable_file(path):
                issues.append(
                    DoctorIssue(
                        check="media_files",
                        level="error",
                        message=f"Missing or unreadable file for media {record.id}: {record.stored_relpath}",
                    )
                )
                continue
            sizes[record.id] = path.stat().st_size

        # Check 3: recorded sizes still match the files on disk.
        checks_run += 1
        for record in records:
            actual = sizes.get(record.id)
            if actual is not None and actual != record.size_bytes:
                issues.append(
                    DoctorIssue(
                        check="size_drift",
                        level="warning",
                        message=(
                            f"Media {record.id} is {actual} bytes on disk but {record.size_bytes} bytes in the index."
                        ),
                    )
                )

        # Check 4: extensions the delivery policy would refuse.
        checks_run += 1
        for record in records:
            ext = extension_of(record.stored_relpath)
            if ext not in self.settings.allowed_extensions:
                issues.append(
                    DoctorIssue(
                        check="file_type",
                        level="warning",
                        message=f"Media {record.id} has extension '{ext or '-'}' which is not streamable.",
                    )
                )

        # Check 5: files above the streaming size limit.
        checks_run += 1
        limit = self.settings.max_file_size_bytes
        for record in records:
            actual = sizes.get(record.id, record.size_bytes)
            if actual > limit:
                issues.append(
                    DoctorIssue(
                        check="file_size",
                        level="warning",
                        message=f"Media {record.id} is {actual} bytes, above the {limit} byte streaming limit.",
                    )
                )

        return DoctorReport(
            ok=not any(i.level == "error" for i in issues),
            checks_run=checks_run,
            issues=issues,
            db_runtime=db_runtime,
        )
