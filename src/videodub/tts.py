"""
Text-to-speech synthesis with gTTS (Google Translate voice) or OpenAI.
"""

import logging
import os
import re
import tempfile
import uuid
from collections.abc import Callable
from functools import lru_cache
from pathlib import Path

from gtts import gTTS
from gtts.lang import tts_langs
from openai import OpenAI

from .errors import ErrorKind, PipelineError

logger = logging.getLogger("videodub")

# Synthesize one chunk of text in a language, returning encoded mp3 bytes.
ChunkSynth = Callable[[str, str], bytes]

GTTS_MAX_CHARS = 200
OPENAI_MAX_CHARS = 4000

_TIMESTAMP_RE = re.compile(r"\[\d{1,2}:\d{2}(?::\d{2})?\]\s*")
_SENTENCE_END_RE = re.compile(r"(?<=[.!?…。！？])\s+")

# gTTS uses a few legacy or region-qualified codes
GTTS_LANG_ALIASES = {"he": "iw", "zh": "zh-CN"}


@lru_cache(maxsize=1)
def _gtts_lookup() -> dict[str, str]:
    """Lowercased gTTS language codes and names -> the code gTTS expects."""
    langs = tts_langs()
    lookup = {name.lower(): code for code, name in langs.items()}
    lookup.update({code.lower(): code for code in langs})
    return lookup


def gtts_language(lang: str) -> str | None:
    """Code gTTS accepts for ``lang`` (a code or name in any case), or None."""
    key = lang.strip().lower()
    lookup = _gtts_lookup()
    alias = GTTS_LANG_ALIASES.get(key)
    if alias and alias.lower() in lookup:
        return lookup[alias.lower()]
    return lookup.get(key)


def gtts_supports(lang: str) -> bool:
    return gtts_language(lang) is not None


def speech_text(translation: str) -> str:
    """Drop ``[MM:SS]`` markers and blank lines so they are not read aloud."""
    lines = (_TIMESTAMP_RE.sub("", line).strip() for line in translation.splitlines())
    return "\n".join(line for line in lines if line)


def split_text(text: str, max_chars: int) -> list[str]:
    """Split text into chunks of at most ``max_chars``, preferring sentence ends."""
    pieces: list[str] = []
    for line in text.splitlines():
        pieces.extend(p for p in _SENTENCE_END_RE.split(line.strip()) if p)

    chunks: list[str] = []
    current = ""
    for piece in pieces:
        while len(piece) > max_chars:
            cut = piece.rfind(" ", 0, max_chars)
            if cut <= 0:
                cut = max_chars
            head, piece = piece[:cut].strip(), piece[cut:].strip()
            if current:
                chunks.append(current)
                current = ""
            chunks.append(head)
        if not piece:
            continue
        candidate = f"{current} {piece}" if current else piece
        if len(candidate) <= max_chars:
            current = candidate
        else:
            chunks.append(current)
            current = piece
    if current:
        chunks.append(current)
    return chunks


def make_synth_gtts(slow: bool = False, tld: str = "com") -> ChunkSynth:
    """Create gTTS synthesis function."""

    def _synth(text: str, lang: str) -> bytes:
        code = gtts_language(lang)
        if code is None:
            raise ValueError(f"Language not supported: {lang}")
        return b"".join(gTTS(text=text, lang=code, slow=slow, tld=tld).stream())

    return _synth


def make_synth_openai(client: OpenAI, tts_model: str, voice: str) -> ChunkSynth:
    """Create OpenAI TTS synthesis function. The voice speaks whatever language the text is in."""
    if client is None:
        raise RuntimeError("OpenAI client is not initialized (missing OPENAI_API_KEY)")

    def _synth(text: str, lang: str) -> bytes:
        resp = client.audio.speech.create(
            model=tts_model,
            voice=voice,
            input=text,
            response_format="mp3",
        )
        return resp.content

    return _synth


class SpeechSynthesizer:
    """Turns translated text into a single local mp3 file."""

    def __init__(
        self,
        synth: ChunkSynth,
        max_chars: int = GTTS_MAX_CHARS,
        temp_dir: str | None = None,
        language_check: Callable[[str], bool] | None = None,
    ) -> None:
        self.synth = synth
        self.max_chars = max_chars
        self.temp_dir = temp_dir or tempfile.gettempdir()
        self.language_check = language_check

    def supports_language(self, lang: str) -> bool:
        """Whether the voice can speak ``lang``; providers without a list accept anything."""
        return self.language_check is None or self.language_check(lang)

    def synthesize(self, text: str, target_language: str) -> str:
        chunks = split_text(speech_text(text), self.max_chars)
        if not chunks:
            raise PipelineError(ErrorKind.SYNTHESIS_FAILED, "No speakable text in translation")

        logger.info("Synthesizing %d TTS chunk(s) in '%s'", len(chunks), target_language)
        audio: list[bytes] = []
        for i, chunk in enumerate(chunks, 1):
            try:
                audio.append(self.synth(chunk, target_language))
            except Exception as e:
                logger.error("TTS failed on chunk %d/%d: %s", i, len(chunks), e)
                raise PipelineError(
                    ErrorKind.SYNTHESIS_FAILED, f"Failed to generate audio from text: {e}"
                ) from e

        Path(self.temp_dir).mkdir(parents=True, exist_ok=True)
        out_path = os.path.join(self.temp_dir, f"tts-{uuid.uuid4().hex}.mp3")
        try:
            with open(out_path, "wb") as f:
                for data in audio:
                    f.write(data)
        except OSError as e:
            Path(out_path).unlink(missing_ok=True)
            raise PipelineError(ErrorKind.SYNTHESIS_FAILED, f"Failed to write TTS audio: {e}") from e
        return out_path


def build_synthesizer(
    provider: str,
    *,
    temp_dir: str | None = None,
    openai_api_key: str | None = None,
    openai_model: str = "gpt-4o-mini-tts",
    openai_voice: str = "alloy",
) -> SpeechSynthesizer:
    """Create the synthesizer for the configured provider."""
    if provider == "openai":
        if not openai_api_key:
            raise RuntimeError("OPENAI_API_KEY is not set. Put it in .env or environment.")
        synth = make_synth_openai(OpenAI(api_key=openai_api_key), openai_model, openai_voice)
        return SpeechSynthesizer(synth, max_chars=OPENAI_MAX_CHARS, temp_dir=temp_dir)
    if provider != "gtts":
        logger.warning("Unknown TTS_PROVIDER=%r - using gtts", provider)
    return SpeechSynthesizer(
        make_synth_gtts(), max_chars=GTTS_MAX_CHARS, temp_dir=temp_dir, language_check=gtts_supports
    )
