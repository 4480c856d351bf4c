"""
Resignal exception hierarchy.

All application-specific exceptions inherit from ResignalError, so the
pipeline can collapse any failure into a single ``Failed`` state and the
CLI can report it uniformly.
"""

from datetime import UTC, datetime


class ResignalError(Exception):
    """Base exception for all Resignal errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "RESIGNAL_ERROR",
    ) -> None:
        self.detail = detail
        self.code = code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Local precondition errors (never retried)
# ---------------------------------------------------------------------------


class PermissionDeniedError(ResignalError):
    """Raised when recording is attempted without microphone permission."""

    def __init__(self) -> None:
        super().__init__(
            detail="Microphone permission is required to record audio.",
            code="PERMISSION_DENIED",
        )


class AlreadyRecordingError(ResignalError):
    """Raised when trying to start a recording while one is already active."""

    def __init__(self) -> None:
        super().__init__(
            detail="A recording is already in progress.",
            code="ALREADY_RECORDING",
        )


class NotRecordingError(ResignalError):
    """Raised when a transition requires an active (or paused) recording."""

    def __init__(self, detail: str = "No active recording.") -> None:
        super().__init__(detail=detail, code="NOT_RECORDING")


class RecordingFailedError(ResignalError):
    """Raised when the audio source cannot start capturing."""

    def __init__(self, detail: str = "Failed to start recording.") -> None:
        super().__init__(detail=detail, code="RECORDING_FAILED")


class FileOperationError(ResignalError):
    """Raised when the finished recording file is missing or unusable."""

    def __init__(self, detail: str = "Failed to save recording file.") -> None:
        super().__init__(detail=detail, code="FILE_OPERATION_FAILED")


class PipelineBusyError(ResignalError):
    """Raised when ``run`` is called while another run is in flight."""

    def __init__(self) -> None:
        super().__init__(
            detail="A transcription upload is already running.",
            code="PIPELINE_BUSY",
        )


# ---------------------------------------------------------------------------
# Chunking
# ---------------------------------------------------------------------------


class ChunkingFailedError(ResignalError):
    """Raised when the source recording cannot be opened, sized or read."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(
            detail=f"Failed to split audio file: {reason}",
            code="CHUNKING_FAILED",
        )


# ---------------------------------------------------------------------------
# Remote API errors
# ---------------------------------------------------------------------------


class APIError(ResignalError):
    """Raised for an unsuccessful response from the transcription service."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        code: str = "API_ERROR",
        detail: str | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(
            detail=detail or f"API error ({status_code}): {message}",
            code=code,
        )


class UnauthorizedError(APIError):
    """HTTP 401 from the service."""

    def __init__(self) -> None:
        super().__init__(
            message="Unauthorized",
            status_code=401,
            code="UNAUTHORIZED",
            detail="Unauthorized. Please restart the app and try again.",
        )


class FileTooLargeError(APIError):
    """HTTP 413: the chunk exceeds the server payload limit."""

    def __init__(self) -> None:
        super().__init__(
            message="Payload too large",
            status_code=413,
            code="FILE_TOO_LARGE",
            detail="Audio chunk exceeds the server size limit.",
        )


class ServerError(APIError):
    """A 5xx response, or a job the service reported as failed (status 0)."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(
            message=message,
            status_code=status_code,
            code="SERVER_ERROR",
            detail=f"Server error ({status_code}): {message}",
        )


class NetworkError(APIError):
    """Connection failure or timeout before a response was received."""

    def __init__(self, message: str) -> None:
        super().__init__(
            message=message,
            status_code=0,
            code="NETWORK_ERROR",
            detail=f"Network error: {message}",
        )


class InvalidResponseError(APIError):
    """The service answered with a body we cannot interpret."""

    def __init__(self, message: str = "Received an unexpected response from the server.") -> None:
        super().__init__(
            message=message,
            status_code=0,
            code="INVALID_RESPONSE",
            detail=message,
        )


# ---------------------------------------------------------------------------
# Run failures
# ---------------------------------------------------------------------------


class UploadFailedError(ResignalError):
    """A chunk could not be uploaded within the retry budget."""

    def __init__(self, chunk_index: int, underlying: BaseException) -> None:
        self.chunk_index = chunk_index
        self.underlying = underlying
        super().__init__(
            detail=f"Failed to upload chunk {chunk_index}: {underlying}",
            code="UPLOAD_FAILED",
        )


class CompletionFailedError(ResignalError):
    """The finalize call for the remote job failed."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(
            detail=f"Failed to finalize transcription: {reason}",
            code="COMPLETION_FAILED",
        )


class PollingTimeoutError(ResignalError):
    """The remote job did not reach a terminal state within ``max_wait``."""

    def __init__(self, waited: float) -> None:
        self.waited = waited
        super().__init__(
            detail="Transcription is taking longer than expected. Please try again.",
            code="POLLING_TIMEOUT",
        )


class UploadCancelledError(ResignalError):
    """The run was cancelled through its cancellation token."""

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason
        detail = "Upload was cancelled."
        if reason:
            detail = f"Upload was cancelled: {reason}"
        super().__init__(detail=detail, code="CANCELLED")


def is_transient(exc: BaseException) -> bool:
    """Return True for failures worth retrying (network errors and 5xx)."""
    if isinstance(exc, NetworkError):
        return True
    return isinstance(exc, ServerError) and exc.status_code >= 500
