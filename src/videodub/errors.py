"""
Error kinds raised by the translation pipeline.
"""

from enum import Enum

FILE_UPLOAD_ERROR = "FILE_UPLOAD_ERROR"
VIDEO_PROCESSING_ERROR = "VIDEO_PROCESSING_ERROR"
INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorKind(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    UNSUPPORTED_MEDIA = "UNSUPPORTED_MEDIA"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    FETCH_FAILED = "FETCH_FAILED"
    CONFIGURATION = "CONFIGURATION"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    REMOTE_PROCESSING_FAILED = "REMOTE_PROCESSING_FAILED"
    TIMEOUT = "TIMEOUT"
    GENERATION_FAILED = "GENERATION_FAILED"
    SYNTHESIS_FAILED = "SYNTHESIS_FAILED"
    MUX_FAILED = "MUX_FAILED"
    CANCELLED = "CANCELLED"


# kind -> (public error category, HTTP status)
ERROR_TABLE: dict[ErrorKind, tuple[str, int]] = {
    ErrorKind.INVALID_INPUT: (FILE_UPLOAD_ERROR, 400),
    ErrorKind.UNSUPPORTED_MEDIA: (FILE_UPLOAD_ERROR, 400),
    ErrorKind.PAYLOAD_TOO_LARGE: (FILE_UPLOAD_ERROR, 400),
    ErrorKind.FETCH_FAILED: (FILE_UPLOAD_ERROR, 400),
    ErrorKind.CONFIGURATION: (VIDEO_PROCESSING_ERROR, 500),
    ErrorKind.UPLOAD_FAILED: (VIDEO_PROCESSING_ERROR, 502),
    ErrorKind.REMOTE_PROCESSING_FAILED: (VIDEO_PROCESSING_ERROR, 500),
    ErrorKind.TIMEOUT: (VIDEO_PROCESSING_ERROR, 504),
    ErrorKind.GENERATION_FAILED: (VIDEO_PROCESSING_ERROR, 500),
    ErrorKind.SYNTHESIS_FAILED: (VIDEO_PROCESSING_ERROR, 500),
    ErrorKind.MUX_FAILED: (VIDEO_PROCESSING_ERROR, 500),
    ErrorKind.CANCELLED: (VIDEO_PROCESSING_ERROR, 499),
}


class PipelineError(Exception):
    """A classified failure at some stage of a translation request."""

    def __init__(self, kind: ErrorKind, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code if status_code is not None else ERROR_TABLE[kind][1]

    @property
    def category(self) -> str:
        return ERROR_TABLE[self.kind][0]

    def to_response(self) -> dict:
        return {"success": False, "error": self.message, "errorType": self.category}

    def __repr__(self) -> str:
        return f"PipelineError({self.kind.value}, {self.message!r}, status={self.status_code})"


def internal_error_response(exc: BaseException) -> dict:
    """Response body for an unclassified exception (message string only)."""
    return {
        "success": False,
        "error": "Internal server error",
        "details": str(exc) or "Unknown error",
        "errorType": INTERNAL_ERROR,
    }
