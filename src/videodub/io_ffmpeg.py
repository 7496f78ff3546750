"""
Audio/video muxing with the ffmpeg command-line tool.
"""

import logging
import os
import subprocess
import tempfile
import uuid
from pathlib import Path

from .errors import ErrorKind, PipelineError

logger = logging.getLogger("videodub")


def run(cmd: list[str], *, check: bool = True) -> str:
    """Run a command and return its combined stdout/stderr."""
    logger.debug("Running: %s", " ".join(map(str, cmd)))
    proc = subprocess.run(
        cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True, check=False
    )
    if proc.returncode != 0 and check:
        logger.error("Command failed with code %d: %s", proc.returncode, proc.stdout)
        msg = f"Command failed with code {proc.returncode}"
        raise RuntimeError(msg)
    return proc.stdout


def ensure_dir(path: str) -> None:
    """Ensure directory exists."""
    if path:
        Path(path).mkdir(parents=True, exist_ok=True)


def replace_audio_cmd(ffmpeg: str, input_video: str, audio: str, output_video: str) -> list[str]:
    """ffmpeg command copying the first input's video and encoding the second's audio.

    ``-shortest`` ends the output with whichever stream finishes first.
    """
    return [
        ffmpeg,
        "-y",
        "-i",
        input_video,
        "-i",
        audio,
        "-map",
        "0:v:0",
        "-map",
        "1:a:0",
        "-c:v",
        "copy",
        "-c:a",
        "aac",
        "-shortest",
        output_video,
    ]


class MediaMuxer:
    """Replaces a video's audio track; blocks until ffmpeg exits."""

    def __init__(self, ffmpeg_binary: str = "ffmpeg", temp_dir: str | None = None) -> None:
        self.ffmpeg_binary = ffmpeg_binary
        self.temp_dir = temp_dir or tempfile.gettempdir()

    def remux(self, video_path: str, audio_path: str) -> str:
        ensure_dir(self.temp_dir)
        output_path = os.path.join(self.temp_dir, f"dubbed-{uuid.uuid4().hex}.mp4")
        cmd = replace_audio_cmd(self.ffmpeg_binary, video_path, audio_path, output_path)
        try:
            run(cmd)
        except FileNotFoundError as e:
            raise PipelineError(
                ErrorKind.MUX_FAILED, f"ffmpeg is not installed or not on PATH ({self.ffmpeg_binary})"
            ) from e
        except (RuntimeError, OSError) as e:
            # ffmpeg may leave a truncated output behind
            Path(output_path).unlink(missing_ok=True)
            raise PipelineError(ErrorKind.MUX_FAILED, f"Failed to merge audio and video: {e}") from e
        logger.info("Muxed dubbed video -> %s", output_path)
        return output_path
