from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from wavestream.core.errors import ConfigurationError

MIB = 1024 * 1024
KIB = 1024


@dataclass(frozen=True)
class AppPaths:
    project_root: Path
    wavestream_dir: Path
    db_path: Path
    media_dir: Path


DEFAULT_WAVESTREAM_DIRNAME = ".wavestream"

DEFAULT_ALLOWED_EXTENSIONS = ("mp3", "wav", "ogg", "m4a", "flac")
DEFAULT_REDIRECT_MIME_TYPES = ("audio/mpeg", "audio/wav", "audio/x-wav", "audio/wave")
MIN_BUFFER_SIZE_KB = 8
MAX_BUFFER_SIZE_KB = 1024


def load_paths(project_root: Path | None = None) -> AppPaths:
    root = (project_root or Path.cwd()).expanduser().resolve()

    home_raw = os.getenv("WAVESTREAM_HOME")
    if home_raw:
        wavestream_dir = Path(home_raw).expanduser().resolve()
    else:
        wavestream_dir = root / DEFAULT_WAVESTREAM_DIRNAME

    return AppPaths(
        project_root=root,
        wavestream_dir=wavestream_dir,
        db_path=wavestream_dir / "wavestream.db",
        media_dir=wavestream_dir / "media",
    )


@dataclass(frozen=True)
class StreamSettings:
    """Delivery settings shared by the policy, engine and chunk cache."""

    enable_streaming: bool = True
    allowed_extensions: tuple[str, ...] = DEFAULT_ALLOWED_EXTENSIONS
    max_file_size_mb: float = 2048
    redirect_threshold_mb: float = 10
    redirect_mime_types: tuple[str, ...] = DEFAULT_REDIRECT_MIME_TYPES
    chunk_size_mb: float = 1.0
    max_chunk_size_mb: float = 8
    buffer_size_kb: int = 8
    chunk_cache_ttl_seconds: int = 300
    log_retention_rows: int = 5000
    public_base_url: str = ""

    def __post_init__(self) -> None:
        normalized = tuple(
            ext.strip().lower().lstrip(".") for ext in self.allowed_extensions if ext and ext.strip()
        )
        object.__setattr__(self, "allowed_extensions", normalized)
        object.__setattr__(
            self,
            "redirect_mime_types",
            tuple(m.strip().lower() for m in self.redirect_mime_types if m and m.strip()),
        )
        object.__setattr__(self, "public_base_url", self.public_base_url.strip().rstrip("/"))

        if not normalized:
            raise ConfigurationError("allowed_extensions must list at least one extension")
        if self.max_file_size_mb <= 0:
            raise ConfigurationError("max_file_size_mb must be positive")
        if self.redirect_threshold_mb < 0:
            raise ConfigurationError("redirect_threshold_mb must not be negative")
        if self.chunk_size_mb <= 0 or self.max_chunk_size_mb <= 0:
            raise ConfigurationError("chunk sizes must be positive")
        if not MIN_BUFFER_SIZE_KB <= self.buffer_size_kb <= MAX_BUFFER_SIZE_KB:
            raise ConfigurationError(
                f"buffer_size_kb must be between {MIN_BUFFER_SIZE_KB} and {MAX_BUFFER_SIZE_KB}"
            )
        if self.chunk_cache_ttl_seconds < 0:
            raise ConfigurationError("chunk_cache_ttl_seconds must not be negative")
        if self.log_retention_rows <= 0:
            raise ConfigurationError("log_retention_rows must be positive")

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * MIB)

    @property
    def redirect_threshold_bytes(self) -> int:
        return int(self.redirect_threshold_mb * MIB)

    @property
    def chunk_size_bytes(self) -> int:
        return max(1, int(self.chunk_size_mb * MIB))

    @property
    def max_chunk_size_bytes(self) -> int:
        return max(1, int(self.max_chunk_size_mb * MIB))

    @property
    def buffer_size_bytes(self) -> int:
        return self.buffer_size_kb * KIB

    def as_dict(self) -> dict[str, object]:
        return {
            "enable_streaming": self.enable_streaming,
            "allowed_extensions": list(self.allowed_extensions),
            "max_file_size_mb": self.max_file_size_mb,
            "redirect_threshold_mb": self.redirect_threshold_mb,
            "redirect_mime_types": list(self.redirect_mime_types),
            "chunk_size_mb": self.chunk_size_mb,
            "max_chunk_size_mb": self.max_chunk_size_mb,
            "buffer_size_kb": self.buffer_size_kb,
            "chunk_cache_ttl_seconds": self.chunk_cache_ttl_seconds,
            "log_retention_rows": self.log_retention_rows,
            "public_base_url": self.public_base_url,
        }


def _read_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _read_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _read_int_env(name: str, default: int, *, minimum: int = 1, maximum: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value < minimum:
        return default
    if maximum is not None and value > maximum:
        return default
    return value


def _read_csv_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    values = tuple(part.strip().lower().lstrip(".") for part in raw.split(",") if part.strip())
    return values or default


def load_settings() -> StreamSettings:
    """Build settings from WAVESTREAM_* environment variables; bad values fall back to defaults."""
    return StreamSettings(
        enable_streaming=_read_bool_env("WAVESTREAM_ENABLE_STREAMING", True),
        allowed_extensions=_read_csv_env("WAVESTREAM_ALLOWED_FILE_TYPES", DEFAULT_ALLOWED_EXTENSIONS),
        max_file_size_mb=_read_float_env("WAVESTREAM_MAX_FILE_SIZE_MB", 2048),
        redirect_threshold_mb=_read_float_env("WAVESTREAM_REDIRECT_THRESHOLD_MB", 10),
        chunk_size_mb=_read_float_env("WAVESTREAM_CHUNK_SIZE_MB", 1.0),
        max_chunk_size_mb=_read_float_env("WAVESTREAM_MAX_CHUNK_SIZE_MB", 8),
        buffer_size_kb=_read_int_env(
            "WAVESTREAM_BUFFER_SIZE_KB",
            8,
            minimum=MIN_BUFFER_SIZE_KB,
            maximum=MAX_BUFFER_SIZE_KB,
        ),
        chunk_cache_ttl_seconds=_read_int_env("WAVESTREAM_CHUNK_CACHE_TTL_SECONDS", 300, minimum=0),
        log_retention_rows=_read_int_env("WAVESTREAM_LOG_RETENTION_ROWS", 5000),
        public_base_url=os.getenv("WAVESTREAM_PUBLIC_BASE_URL", ""),
    )
