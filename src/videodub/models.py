"""
Data models for the video translation service.
"""

import io
from dataclasses import dataclass
from typing import BinaryIO


@dataclass
class UploadSource:
    """A video posted in the request body.

    ``size`` is the declared length, known before any of ``stream`` is read.
    """

    filename: str
    mime_type: str
    size: int
    stream: BinaryIO

    @classmethod
    def from_bytes(cls, filename: str, mime_type: str, data: bytes) -> "UploadSource":
        return cls(filename=filename, mime_type=mime_type, size=len(data), stream=io.BytesIO(data))


@dataclass
class UrlSource:
    """A video referenced by URL (direct link or YouTube)."""

    url: str


@dataclass
class TranslationRequest:
    """One call to the translation endpoint."""

    target_language: str
    upload: UploadSource | None = None
    url: UrlSource | None = None

    @property
    def source_identity(self) -> str:
        """Filename and size for uploads, the raw URL otherwise."""
        if self.upload is not None:
            return f"{self.upload.filename}-{self.upload.size}"
        if self.url is not None:
            return self.url.url
        return ""


@dataclass
class AcquiredMedia:
    """A source video persisted to a local temporary file."""

    path: str
    mime_type: str
    display_name: str


@dataclass
class RemoteMedia:
    """A file uploaded to the Gemini Files API."""

    name: str
    uri: str
    mime_type: str
    state: str = "PROCESSING"


@dataclass
class CacheEntry:
    """A cached translation result."""

    translation: str
    video_url: str
    timestamp: float  # seconds since epoch


@dataclass
class TranslationResult:
    """Payload returned to the client on success."""

    result: str
    video_url: str
    file_name: str
    target_language: str
    cached: bool = False

    def to_response(self) -> dict:
        body = {
            "success": True,
            "result": self.result,
            "videoUrl": self.video_url,
            "fileName": self.file_name,
            "targetLanguage": self.target_language,
        }
        if self.cached:
            body["cached"] = True
        return body
