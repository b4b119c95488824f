from __future__ import annotations

from datetime import datetime, timezone
from email.utils import formatdate


def now_utc_iso() -> str:
    """Return an RFC 3339/ISO timestamp in UTC with seconds precision."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def http_date(timestamp: float) -> str:
    """Format a POSIX timestamp as an RFC 7231 HTTP-date."""
    return formatdate(timestamp, usegmt=True)
