from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union


@dataclass(frozen=True, slots=True)
class ResourceReference:
    id: int
    path: Path
    size: int
    mime_type: str
    modified_at: float = 0.0
    resolved_by: str = "id"

    def __post_init__(self) -> None:
        if self.size < 0:
            raise ValueError(f"Resource size must not be negative: {self.size}")

    @property
    def extension(self) -> str:
        return self.path.suffix.lower().lstrip(".")


@dataclass(frozen=True, slots=True)
class ByteRange:
    start: int
    end: int
    is_partial: bool = True

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid byte range: {self.start}-{self.end}")

    @property
    def length(self) -> int:
        return self.end - self.start + 1


# Range parser results.


@dataclass(frozen=True, slots=True)
class FullRange:
    pass


@dataclass(frozen=True, slots=True)
class MalformedRange:
    header: str


@dataclass(frozen=True, slots=True)
class UnsatisfiableRange:
    total_size: int


@dataclass(frozen=True, slots=True)
class SatisfiableRange:
    byte_range: ByteRange


RangeResult = Union[FullRange, MalformedRange, UnsatisfiableRange, SatisfiableRange]


# Delivery decisions.


@dataclass(frozen=True, slots=True)
class Redirect:
    url: str


@dataclass(frozen=True, slots=True)
class StreamFull:
    head_only: bool = False


@dataclass(frozen=True, slots=True)
class StreamRange:
    byte_range: ByteRange


@dataclass(frozen=True, slots=True)
class RejectRange:
    size: int


@dataclass(frozen=True, slots=True)
class RejectBadFormat:
    reason: str = "file_type_not_allowed"


@dataclass(frozen=True, slots=True)
class NotFound:
    reason: str = "not_found"


@dataclass(frozen=True, slots=True)
class Forbidden:
    reason: str


DeliveryDecision = Union[
    Redirect,
    StreamFull,
    StreamRange,
    RejectRange,
    RejectBadFormat,
    NotFound,
    Forbidden,
]

MALFORMED_RANGE_REASON = "malformed_range"


@dataclass(slots=True)
class StreamResult:
    status: int
    bytes_sent: int
    outcome: str
    byte_range: ByteRange | None = None
    cache_status: str | None = None
    message: str = ""


@dataclass(frozen=True, slots=True)
class ChunkResult:
    data: bytes
    byte_start: int
    byte_end: int
    total_size: int
    mime_type: str
    from_cache: bool = False

    @property
    def length(self) -> int:
        return len(self.data)


@dataclass(slots=True)
class StreamEvent:
    log_type: str
    message: str
    resource_id: int | None = None
    locator: str | None = None
    chunk_index: int | None = None
    byte_start: int | None = None
    byte_end: int | None = None
    file_size: int | None = None
    bytes_sent: int = 0
    status_code: int | None = None
    duration_ms: int = 0
    cache_status: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True, slots=True)
class PlaybackRequest:
    locator: str
    method: str = "GET"
    range_header: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True, slots=True)
class ChunkRequest:
    resource_id: int
    chunk_index: int
    ip_address: str | None = None
    user_agent: str | None = None
