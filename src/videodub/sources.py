"""
Source acquisition: persist uploads, stream direct URLs, dispatch YouTube links.
"""

import logging
import os
import uuid
from collections.abc import Sequence
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx

from .errors import ErrorKind, PipelineError
from .io_ffmpeg import ensure_dir
from .models import AcquiredMedia, TranslationRequest, UploadSource
from .youtube import download_youtube_video, is_youtube_url

logger = logging.getLogger("videodub")

CHUNK_SIZE = 1 << 20


def validate_video(
    mime_type: str, size: int | None, supported: Sequence[str], max_size: int
) -> None:
    """Reject unsupported mime types and oversize payloads."""
    if mime_type not in supported:
        raise PipelineError(
            ErrorKind.UNSUPPORTED_MEDIA,
            f"Unsupported video type: {mime_type}. Supported types: {', '.join(supported)}",
        )
    if size and size > max_size:
        raise PipelineError(
            ErrorKind.PAYLOAD_TOO_LARGE,
            f"File size exceeds maximum allowed size of {max_size // (1024 * 1024)}MB",
        )


def safe_filename(name: str, default: str = "video.mp4") -> str:
    base = Path(name.replace("\\", "/")).name.strip()
    return base or default


def url_display_name(url: str) -> str:
    """Last path segment of the URL, without query string."""
    path = urlparse(url).path
    return safe_filename(unquote(path.rsplit("/", 1)[-1])) if path else "video.mp4"


def _discard(path: str) -> None:
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Failed to cleanup temp file: %s (%s)", path, e)


class MediaSources:
    """Turns the request's source into a local temporary video file."""

    def __init__(
        self,
        temp_dir: str,
        supported_types: Sequence[str],
        max_file_size: int,
        timeout: float = 60.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.temp_dir = temp_dir
        self.supported_types = tuple(supported_types)
        self.max_file_size = max_file_size
        self.timeout = timeout
        self.http_client = http_client

    def validate_upload(self, upload: UploadSource) -> None:
        validate_video(upload.mime_type, upload.size, self.supported_types, self.max_file_size)

    def acquire(self, request: TranslationRequest) -> AcquiredMedia:
        if request.upload is not None:
            return self.save_upload(request.upload)
        if request.url is None:
            raise PipelineError(ErrorKind.INVALID_INPUT, "Either a file or video URL must be provided")
        url = request.url.url
        if is_youtube_url(url):
            logger.info("Processing YouTube URL: %s", url)
            media = download_youtube_video(url, self.temp_dir)
            try:
                validate_video(
                    media.mime_type, os.path.getsize(media.path), self.supported_types, self.max_file_size
                )
            except PipelineError:
                _discard(media.path)
                raise
            return media
        logger.info("Processing video URL: %s", url)
        return self.download_direct(url)

    def save_upload(self, upload: UploadSource) -> AcquiredMedia:
        self.validate_upload(upload)
        ensure_dir(self.temp_dir)
        name = safe_filename(upload.filename)
        path = os.path.join(self.temp_dir, f"upload-{uuid.uuid4().hex}-{name}")
        written = 0
        try:
            with open(path, "wb") as f:
                while chunk := upload.stream.read(CHUNK_SIZE):
                    written += len(chunk)
                    # the declared size may understate the body
                    if written > self.max_file_size:
                        raise PipelineError(
                            ErrorKind.PAYLOAD_TOO_LARGE,
                            f"File size exceeds maximum allowed size of "
                            f"{self.max_file_size // (1024 * 1024)}MB",
                        )
                    f.write(chunk)
        except (PipelineError, OSError):
            _discard(path)
            raise
        logger.info("Saved upload %s (%d bytes) -> %s", name, written, path)
        return AcquiredMedia(path=path, mime_type=upload.mime_type, display_name=name)

    def download_direct(self, url: str) -> AcquiredMedia:
        """Stream a video over HTTP, validating type and size before keeping it."""
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise PipelineError(ErrorKind.INVALID_INPUT, f"Invalid video URL: {url}")

        ensure_dir(self.temp_dir)
        name = url_display_name(url)
        path = os.path.join(self.temp_dir, f"url-{uuid.uuid4().hex}-{name}")
        client = self.http_client or httpx.Client(follow_redirects=True, timeout=self.timeout)
        try:
            with client.stream("GET", url) as r:
                if r.status_code != httpx.codes.OK:
                    raise PipelineError(
                        ErrorKind.FETCH_FAILED,
                        f"Failed to fetch video from URL: HTTP {r.status_code}: {r.reason_phrase}",
                    )
                ctype = r.headers.get("content-type", "").split(";")[0].strip().lower() or "video/mp4"
                declared = r.headers.get("content-length")
                validate_video(
                    ctype,
                    int(declared) if declared and declared.isdigit() else None,
                    self.supported_types,
                    self.max_file_size,
                )
                written = 0
                with open(path, "wb") as f:
                    for chunk in r.iter_bytes(CHUNK_SIZE):
                        written += len(chunk)
                        if written > self.max_file_size:
                            raise PipelineError(
                                ErrorKind.PAYLOAD_TOO_LARGE,
                                f"File size exceeds maximum allowed size of "
                                f"{self.max_file_size // (1024 * 1024)}MB",
                            )
                        f.write(chunk)
        except PipelineError:
            _discard(path)
            raise
        except (httpx.HTTPError, OSError) as e:
            _discard(path)
            raise PipelineError(ErrorKind.FETCH_FAILED, f"Failed to fetch video from URL: {e}") from e
        finally:
            if self.http_client is None:
                client.close()

        logger.info("Downloaded %d bytes from %s -> %s", written, url, path)
        return AcquiredMedia(path=path, mime_type=ctype, display_name=name)
