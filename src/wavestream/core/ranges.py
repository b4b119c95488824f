from __future__ import annotations

import re

from wavestream.domain.models.delivery import (
    ByteRange,
    FullRange,
    MalformedRange,
    RangeResult,
    SatisfiableRange,
    UnsatisfiableRange,
)

# Only the first range of a multi-range header is honoured.
_RANGE_RE = re.compile(r"^\s*bytes\s*=\s*(\d*)\s*-\s*(\d*)\s*(?:,.*)?$", re.IGNORECASE | re.ASCII)


def parse_range(range_header: str | None, total_size: int) -> RangeResult:
    """Resolve a Range header against a resource of ``total_size`` bytes.

    ``None`` means no header was sent and the whole resource is served. A
    header that does not look like ``bytes=<start>-<end>`` is malformed. A
    suffix form (``bytes=-N``) selects the last N bytes, clamped to the
    whole resource when N exceeds it.
    """
    if range_header is None:
        return FullRange()

    match = _RANGE_RE.match(range_header)
    if match is None:
        return MalformedRange(header=range_header)

    start_raw, end_raw = match.group(1), match.group(2)
    if not start_raw and not end_raw:
        return MalformedRange(header=range_header)

    if not start_raw:
        suffix_length = int(end_raw)
        start = max(0, total_size - suffix_length)
        end = total_size - 1
    else:
        start = int(start_raw)
        end = int(end_raw) if end_raw else total_size - 1

    if start > end or start >= total_size:
        return UnsatisfiableRange(total_size=total_size)

    end = min(end, total_size - 1)
    return SatisfiableRange(byte_range=ByteRange(start=start, end=end, is_partial=True))


def full_range(total_size: int) -> ByteRange | None:
    if total_size <= 0:
        return None
    return ByteRange(start=0, end=total_size - 1, is_partial=False)


def content_range(byte_range: ByteRange, total_size: int) -> str:
    return f"bytes {byte_range.start}-{byte_range.end}/{total_size}"


def unsatisfied_content_range(total_size: int) -> str:
    return f"bytes */{total_size}"
