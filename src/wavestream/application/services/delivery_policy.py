from __future__ import annotations

from wavestream.core.config import StreamSettings
from wavestream.core.mime import is_audio_mime
from wavestream.core.ranges import parse_range
from wavestream.domain.models.delivery import (
    MALFORMED_RANGE_REASON,
    DeliveryDecision,
    Forbidden,
    FullRange,
    MalformedRange,
    Redirect,
    RejectBadFormat,
    RejectRange,
    ResourceReference,
    SatisfiableRange,
    StreamFull,
    StreamRange,
    UnsatisfiableRange,
)


class DeliveryPolicy:
    """Chooses how a resolved resource is delivered. Performs no I/O."""

    def __init__(self, settings: StreamSettings) -> None:
        self.settings = settings

    def admit(self, ref: ResourceReference) -> DeliveryDecision | None:
        if not self.settings.enable_streaming:
            return Forbidden("streaming_disabled")
        return self.check_resource(ref)

    def check_resource(self, ref: ResourceReference) -> DeliveryDecision | None:
        """Type and size validation shared by every delivery path; None means allowed."""
        if not is_audio_mime(ref.mime_type) or ref.extension not in self.settings.allowed_extensions:
            return RejectBadFormat("file_type_not_allowed")
        if ref.size > self.settings.max_file_size_bytes:
            return Forbidden("size_exceeded")
        return None

    def decide(
        self,
        ref: ResourceReference,
        method: str,
        range_header: str | None = None,
        direct_url: str | None = None,
    ) -> DeliveryDecision:
        verb = method.upper()
        if verb not in {"GET", "HEAD"}:
            raise ValueError(f"Unsupported method: {method}")

        rejection = self.admit(ref)
        if rejection is not None:
            return rejection

        if verb == "GET" and range_header is None and self._redirect_eligible(ref, direct_url):
            return Redirect(url=direct_url)

        if verb == "HEAD":
            return StreamFull(head_only=True)

        parsed = parse_range(range_header, ref.size)
        if isinstance(parsed, FullRange):
            return StreamFull()
        if isinstance(parsed, SatisfiableRange):
            return StreamRange(parsed.byte_range)
        if isinstance(parsed, UnsatisfiableRange):
            return RejectRange(size=parsed.total_size)
        if isinstance(parsed, MalformedRange):
            return RejectBadFormat(MALFORMED_RANGE_REASON)
        raise TypeError(f"Unknown range result: {parsed!r}")

    def _redirect_eligible(self, ref: ResourceReference, direct_url: str | None) -> bool:
        if not direct_url:
            return False
        if ref.size >= self.settings.redirect_threshold_bytes:
            return False
        return ref.mime_type.strip().lower() in self.settings.redirect_mime_types
