"""
Tests for source acquisition (uploads, direct URLs, YouTube).
"""

import io
import os

import httpx
import pytest

from videodub import youtube
from videodub.errors import ErrorKind, PipelineError
from videodub.models import TranslationRequest, UploadSource, UrlSource
from videodub.sources import MediaSources, url_display_name, validate_video
from videodub.youtube import is_youtube_url

SUPPORTED = ("video/mp4", "video/webm")


def _sources(tmp_path, handler=None, max_size=1024):
    client = httpx.Client(transport=httpx.MockTransport(handler)) if handler else None
    return MediaSources(str(tmp_path), SUPPORTED, max_size, http_client=client)


def test_validate_video():
    """Test mime type and size limits."""
    validate_video("video/mp4", 10, SUPPORTED, 100)
    with pytest.raises(PipelineError) as exc:
        validate_video("image/png", 10, SUPPORTED, 100)
    assert exc.value.kind is ErrorKind.UNSUPPORTED_MEDIA
    with pytest.raises(PipelineError) as exc:
        validate_video("video/mp4", 101, SUPPORTED, 100)
    assert exc.value.kind is ErrorKind.PAYLOAD_TOO_LARGE


@pytest.mark.parametrize(
    "url",
    [
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "https://youtu.be/dQw4w9WgXcQ",
        "https://m.youtube.com/watch?v=dQw4w9WgXcQ&t=10",
        "https://www.youtube.com/shorts/abcdefghijk",
        "https://www.youtube.com/embed/dQw4w9WgXcQ",
    ],
)
def test_is_youtube_url(url):
    assert is_youtube_url(url)


@pytest.mark.parametrize(
    "url",
    [
        "https://example.com/video.mp4",
        "https://www.youtube.com/",
        "https://www.youtube.com/watch",
        "https://notyoutube.com/watch?v=dQw4w9WgXcQ",
        "ftp://youtu.be/dQw4w9WgXcQ",
    ],
)
def test_is_not_youtube_url(url):
    assert not is_youtube_url(url)


def test_url_display_name():
    """Test the last path segment is used, without query string."""
    assert url_display_name("https://cdn.example.com/a/b/clip.mp4?sig=1") == "clip.mp4"
    assert url_display_name("https://cdn.example.com/") == "video.mp4"


def test_save_upload(tmp_path):
    """Test uploads are written to a temp file after validation."""
    media = _sources(tmp_path).save_upload(UploadSource.from_bytes("clip.mp4", "video/mp4", b"abc"))
    assert media.display_name == "clip.mp4"
    with open(media.path, "rb") as f:
        assert f.read() == b"abc"


def test_save_upload_rejects_before_writing(tmp_path):
    """Test invalid uploads never touch the disk."""
    with pytest.raises(PipelineError):
        _sources(tmp_path).save_upload(UploadSource.from_bytes("clip.gif", "image/gif", b"abc"))
    assert list(tmp_path.iterdir()) == []


class UnreadableStream(io.BytesIO):
    def read(self, *args):
        raise AssertionError("body read before the size check")


def test_save_upload_oversize_is_never_read(tmp_path):
    """Test a declared size over the limit is rejected without reading the body."""
    upload = UploadSource("big.mp4", "video/mp4", size=4096, stream=UnreadableStream())
    with pytest.raises(PipelineError) as exc:
        _sources(tmp_path).save_upload(upload)
    assert exc.value.kind is ErrorKind.PAYLOAD_TOO_LARGE
    assert list(tmp_path.iterdir()) == []


def test_save_upload_understated_size(tmp_path):
    """Test a body longer than its declared size is cut off at the limit."""
    upload = UploadSource("clip.mp4", "video/mp4", size=10, stream=io.BytesIO(b"x" * 2048))
    with pytest.raises(PipelineError) as exc:
        _sources(tmp_path).save_upload(upload)
    assert exc.value.kind is ErrorKind.PAYLOAD_TOO_LARGE
    assert list(tmp_path.iterdir()) == []


def test_download_direct(tmp_path):
    """Test a direct URL is streamed to a temp file."""

    def handler(request):
        return httpx.Response(200, headers={"content-type": "video/webm; codecs=vp9"}, content=b"webm-bytes")

    media = _sources(tmp_path, handler).download_direct("https://cdn.example.com/v/clip.webm?x=1")
    assert media.mime_type == "video/webm"
    assert media.display_name == "clip.webm"
    with open(media.path, "rb") as f:
        assert f.read() == b"webm-bytes"


def test_download_direct_defaults_to_mp4(tmp_path):
    """Test a missing content type is treated as video/mp4."""
    media = _sources(tmp_path, lambda r: httpx.Response(200, content=b"x")).download_direct(
        "https://cdn.example.com/clip"
    )
    assert media.mime_type == "video/mp4"


def test_download_direct_rejects_non_video(tmp_path):
    """Test a non-video content type raises UNSUPPORTED_MEDIA and leaves nothing behind."""

    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/html"}, content=b"<html></html>")

    with pytest.raises(PipelineError) as exc:
        _sources(tmp_path, handler).download_direct("https://example.com/page")
    assert exc.value.kind is ErrorKind.UNSUPPORTED_MEDIA
    assert exc.value.status_code == 400
    assert list(tmp_path.iterdir()) == []


def test_download_direct_too_large(tmp_path):
    """Test streamed bodies larger than the limit are discarded."""

    def handler(request):
        return httpx.Response(200, headers={"content-type": "video/mp4"}, content=b"x" * 2048)

    with pytest.raises(PipelineError) as exc:
        _sources(tmp_path, handler, max_size=1024).download_direct("https://example.com/big.mp4")
    assert exc.value.kind is ErrorKind.PAYLOAD_TOO_LARGE
    assert list(tmp_path.iterdir()) == []


def test_download_direct_http_error(tmp_path):
    """Test non-200 responses map to FETCH_FAILED."""
    with pytest.raises(PipelineError) as exc:
        _sources(tmp_path, lambda r: httpx.Response(404)).download_direct("https://example.com/x.mp4")
    assert exc.value.kind is ErrorKind.FETCH_FAILED


def test_download_direct_invalid_url(tmp_path):
    with pytest.raises(PipelineError) as exc:
        _sources(tmp_path).download_direct("file:///etc/passwd")
    assert exc.value.kind is ErrorKind.INVALID_INPUT


class FakeYoutubeDL:
    def __init__(self, opts):
        self.opts = opts

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def extract_info(self, url, download):
        path = self.opts["outtmpl"] % {"ext": "mp4"}
        with open(path, "wb") as f:
            f.write(b"yt-video")
        return {"title": "Never Gonna", "requested_downloads": [{"filepath": path}]}


class BrokenYoutubeDL(FakeYoutubeDL):
    def extract_info(self, url, download):
        with open(self.opts["outtmpl"] % {"ext": "mp4.part"}, "wb") as f:
            f.write(b"partial")
        raise RuntimeError("Video unavailable")


def test_acquire_dispatches_youtube(tmp_path, monkeypatch):
    """Test YouTube links go through yt-dlp with a progressive mp4 format."""
    monkeypatch.setattr(youtube.yt_dlp, "YoutubeDL", FakeYoutubeDL)
    request = TranslationRequest("es", url=UrlSource("https://youtu.be/dQw4w9WgXcQ"))
    media = _sources(tmp_path).acquire(request)
    assert media.display_name == "Never Gonna"
    assert media.mime_type == "video/mp4"
    assert os.path.exists(media.path)


def test_youtube_failure_cleans_partials(tmp_path, monkeypatch):
    """Test a failed download leaves no partial files."""
    monkeypatch.setattr(youtube.yt_dlp, "YoutubeDL", BrokenYoutubeDL)
    with pytest.raises(PipelineError) as exc:
        youtube.download_youtube_video("https://youtu.be/dQw4w9WgXcQ", str(tmp_path))
    assert exc.value.kind is ErrorKind.FETCH_FAILED
    assert list(tmp_path.iterdir()) == []


class ThreeGpYoutubeDL(FakeYoutubeDL):
    def extract_info(self, url, download):
        path = self.opts["outtmpl"] % {"ext": "3gp"}
        with open(path, "wb") as f:
            f.write(b"3gp-video")
        return {"title": "Old Phone", "requested_downloads": [{"filepath": path}]}


class WebmYoutubeDL(FakeYoutubeDL):
    def extract_info(self, url, download):
        path = self.opts["outtmpl"] % {"ext": "webm"}
        with open(path, "wb") as f:
            f.write(b"webm-video")
        return {"title": "Clip", "requested_downloads": [{"filepath": path}]}


def test_youtube_other_container_is_rejected(tmp_path, monkeypatch):
    """Test a 3gp download is not passed off as mp4 and is discarded."""
    monkeypatch.setattr(youtube.yt_dlp, "YoutubeDL", ThreeGpYoutubeDL)
    request = TranslationRequest("es", url=UrlSource("https://youtu.be/dQw4w9WgXcQ"))
    with pytest.raises(PipelineError) as exc:
        _sources(tmp_path).acquire(request)
    assert exc.value.kind is ErrorKind.UNSUPPORTED_MEDIA
    assert not exc.value.message.startswith("Unsupported video type: video/mp4")
    assert list(tmp_path.iterdir()) == []


def test_youtube_webm_mime_type(tmp_path, monkeypatch):
    monkeypatch.setattr(youtube.yt_dlp, "YoutubeDL", WebmYoutubeDL)
    media = youtube.download_youtube_video("https://youtu.be/dQw4w9WgXcQ", str(tmp_path))
    assert media.mime_type == "video/webm"


def test_youtube_format_only_muxed_mp4_or_webm():
    """Test every format fallback names a container the service accepts."""
    fallbacks = youtube.DEFAULT_FORMAT.split("/")
    assert fallbacks[0] == "18"
    assert all("[ext=mp4]" in f or "[ext=webm]" in f for f in fallbacks[1:])
