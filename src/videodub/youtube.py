"""
YouTube link detection and download with yt-dlp.
"""

import logging
import mimetypes
import uuid
from pathlib import Path
from urllib.parse import parse_qs, urlparse

import yt_dlp

from .errors import ErrorKind, PipelineError
from .io_ffmpeg import ensure_dir
from .models import AcquiredMedia

logger = logging.getLogger("videodub")

YOUTUBE_HOSTS = {
    "youtube.com",
    "www.youtube.com",
    "m.youtube.com",
    "music.youtube.com",
    "gaming.youtube.com",
    "youtube-nocookie.com",
    "www.youtube-nocookie.com",
}
SHORT_HOSTS = {"youtu.be", "www.youtu.be"}
PATH_PREFIXES = ("/shorts/", "/embed/", "/live/", "/v/")

# itag 18 is the 360p progressive mp4; fall back to any muxed mp4, then muxed webm
DEFAULT_FORMAT = (
    "18/best[ext=mp4][vcodec!=none][acodec!=none]/best[ext=webm][vcodec!=none][acodec!=none]"
)

EXT_MIME_TYPES = {"mp4": "video/mp4", "m4v": "video/mp4", "webm": "video/webm"}


def mime_type_for(path: Path) -> str:
    """Mime type from the downloaded file's extension."""
    ext = path.suffix.lower().lstrip(".")
    if ext in EXT_MIME_TYPES:
        return EXT_MIME_TYPES[ext]
    return mimetypes.guess_type(path.name)[0] or "application/octet-stream"


def is_youtube_url(url: str) -> bool:
    """True for watch, shorts, embed, live and youtu.be video links."""
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https"):
        return False
    host = (parsed.hostname or "").lower()
    if host in SHORT_HOSTS:
        return len(parsed.path.strip("/")) > 0
    if host not in YOUTUBE_HOSTS:
        return False
    if parsed.path == "/watch":
        return bool(parse_qs(parsed.query).get("v"))
    return any(parsed.path.startswith(p) and len(parsed.path) > len(p) for p in PATH_PREFIXES)


def build_ydl_options(outtmpl: str, video_format: str = DEFAULT_FORMAT) -> dict:
    return {
        "quiet": True,
        "noprogress": True,
        "noplaylist": True,
        "format": video_format,
        "outtmpl": outtmpl,
        "overwrites": True,
        "retries": 3,
    }


def _remove_partials(temp_dir: str, stem: str) -> None:
    for leftover in Path(temp_dir).glob(f"{stem}*"):
        try:
            leftover.unlink()
        except OSError as e:
            logger.warning("Failed to cleanup partial download %s: %s", leftover, e)


def download_youtube_video(url: str, temp_dir: str) -> AcquiredMedia:
    """Download a YouTube video into ``temp_dir`` as a single muxed file."""
    ensure_dir(temp_dir)
    stem = f"youtube-{uuid.uuid4().hex}"
    opts = build_ydl_options(str(Path(temp_dir) / f"{stem}.%(ext)s"))

    try:
        with yt_dlp.YoutubeDL(opts) as ydl:
            info = ydl.extract_info(url, download=True)
    except Exception as e:
        _remove_partials(temp_dir, stem)
        raise PipelineError(ErrorKind.FETCH_FAILED, f"Failed to download YouTube video: {e}") from e

    info = info or {}
    requested = info.get("requested_downloads") or []
    if requested and requested[0].get("filepath"):
        filepath = Path(requested[0]["filepath"])
    elif info.get("_filename"):
        filepath = Path(info["_filename"])
    else:
        filepath = None

    if filepath is None or not filepath.exists():
        _remove_partials(temp_dir, stem)
        raise PipelineError(ErrorKind.FETCH_FAILED, "Failed to download YouTube video: no file produced")

    mime_type = mime_type_for(filepath)
    title = info.get("title") or "YouTube Video"
    logger.info("Downloaded YouTube video '%s' -> %s", title, filepath)
    return AcquiredMedia(path=str(filepath), mime_type=mime_type, display_name=title)
