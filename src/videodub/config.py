"""
Runtime configuration read from the environment (and an optional .env file).
"""

import logging
import os
import pathlib
import tempfile
from dataclasses import dataclass, field

from dotenv import load_dotenv

logger = logging.getLogger("videodub")

SUPPORTED_VIDEO_TYPES = (
    "video/mp4",
    "video/webm",
    "video/avi",
    "video/mov",
    "video/quicktime",
)

FEATURES = (
    "YouTube video support",
    "Direct URL video support",
    "File upload support",
    "Automatic timestamping",
    "Multi-language translation",
    "Dubbed audio track",
)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %d", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default


@dataclass
class Settings:
    """Service settings. Defaults match the public GET /translate document."""

    gemini_api_key: str | None = None
    default_model: str = "gemini-2.5-flash"
    fallback_models: list[str] = field(default_factory=lambda: ["gemini-2.0-flash"])
    max_file_size: int = 100 * 1024 * 1024
    supported_video_types: tuple[str, ...] = SUPPORTED_VIDEO_TYPES
    poll_interval: float = 2.0
    max_poll_attempts: int = 60
    cache_ttl: float = 24 * 60 * 60
    cache_backend: str = "memory"
    redis_url: str | None = None
    tts_provider: str = "gtts"
    openai_api_key: str | None = None
    openai_tts_model: str = "gpt-4o-mini-tts"
    openai_tts_voice: str = "alloy"
    ffmpeg_binary: str = "ffmpeg"
    temp_dir: str = field(default_factory=tempfile.gettempdir)
    download_timeout: float = 60.0

    @property
    def processing_timeout(self) -> float:
        """Upper bound (seconds) spent waiting for Gemini to process an upload."""
        return self.poll_interval * self.max_poll_attempts

    def describe(self) -> dict:
        """Static capability document served by GET /translate."""
        return {
            "status": "operational",
            "message": "Gemini Video Translation API",
            "models": {
                "default": self.default_model,
                "fallback": list(self.fallback_models),
            },
            "limits": {
                "maxFileSize": f"{self.max_file_size // (1024 * 1024)}MB",
                "supportedFormats": list(self.supported_video_types),
                "processingTimeout": f"{int(self.processing_timeout)}s",
            },
            "features": list(FEATURES),
        }


def load_settings() -> Settings:
    """Build settings from the environment after loading .env."""
    # Look for .env in the project root (parent of src directory)
    project_root = pathlib.Path(__file__).parent.parent.parent
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    else:
        # Fallback: try loading from current directory
        load_dotenv()

    api_key = os.getenv("GEMINI_API_KEY") or None
    if not api_key:
        logger.warning("Missing GEMINI_API_KEY environment variable")

    fallback = os.getenv("GEMINI_FALLBACK_MODELS", "gemini-2.0-flash")
    return Settings(
        gemini_api_key=api_key,
        default_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        fallback_models=[m.strip() for m in fallback.split(",") if m.strip()],
        max_file_size=_env_int("MAX_FILE_SIZE_MB", 100) * 1024 * 1024,
        poll_interval=_env_float("POLL_INTERVAL_SECONDS", 2.0),
        max_poll_attempts=_env_int("MAX_POLL_ATTEMPTS", 60),
        cache_ttl=_env_float("CACHE_TTL_SECONDS", 24 * 60 * 60),
        cache_backend=os.getenv("CACHE_BACKEND", "memory").lower(),
        redis_url=os.getenv("REDIS_URL") or None,
        tts_provider=os.getenv("TTS_PROVIDER", "gtts").lower(),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_tts_model=os.getenv("OPENAI_TTS_MODEL", "gpt-4o-mini-tts"),
        openai_tts_voice=os.getenv("OPENAI_TTS_VOICE", "alloy"),
        ffmpeg_binary=os.getenv("FFMPEG_BINARY", "ffmpeg"),
        temp_dir=os.getenv("VIDEODUB_TEMP_DIR") or tempfile.gettempdir(),
        download_timeout=_env_float("DOWNLOAD_TIMEOUT_SECONDS", 60.0),
    )
