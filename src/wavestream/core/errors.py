class WavestreamError(Exception):
    """Base error for all user-facing Wavestream exceptions."""


class ConfigurationError(WavestreamError):
    """Raised when configuration is invalid or incomplete."""


class ProjectNotInitializedError(WavestreamError):
    """Raised when .wavestream metadata is missing."""


class LibraryError(WavestreamError):
    """Raised when a media file cannot be added to the library."""


class ResolutionError(WavestreamError):
    """Raised when a locator does not match any media record."""


class RangeError(WavestreamError):
    """Raised when a requested byte range cannot be honoured."""


class RangeNotSatisfiableError(RangeError):
    """Raised when a requested range starts beyond the end of the resource."""

    def __init__(self, size: int, message: str | None = None) -> None:
        super().__init__(message or f"Range not satisfiable for resource of {size} bytes")
        self.size = size


class StreamIOError(WavestreamError):
    """Raised when reading media bytes fails after validation passed."""


class StreamOpenError(StreamIOError):
    """Raised when a media file cannot be opened for reading."""


class StreamReadError(StreamIOError):
    """Raised when a media file read fails or ends early."""


class ClientDisconnectedError(Exception):
    """Raised by a response sink once the downstream client has gone away."""
