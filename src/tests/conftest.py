"""
Shared fixtures: a pipeline wired to in-memory fakes of Gemini, TTS and ffmpeg.
"""

import os
import uuid
from types import SimpleNamespace

import httpx
import pytest

from videodub.cache import TranslationCache
from videodub.config import Settings
from videodub.errors import ErrorKind, PipelineError
from videodub.io_ffmpeg import MediaMuxer
from videodub.pipeline import TranslationPipeline
from videodub.sources import MediaSources
from videodub.translation import GeminiTranslator
from videodub.tts import SpeechSynthesizer


class FakeFiles:
    """Stands in for ``genai.Client().files``."""

    def __init__(self, states=("ACTIVE",)):
        self.states = list(states)
        self.uploads = []
        self.gets = 0
        self.deleted = []
        self.fail_upload = False
        self.fail_get = False
        self.fail_delete = False

    def upload(self, file, config):
        if self.fail_upload:
            raise ConnectionError("upload refused")
        self.uploads.append((file, config))
        return SimpleNamespace(
            name="files/abc123",
            uri="https://generativelanguage.googleapis.com/v1beta/files/abc123",
            mime_type=config["mime_type"],
            state="PROCESSING",
        )

    def get(self, name):
        if self.fail_get:
            raise ConnectionError("status check failed")
        state = self.states[min(self.gets, len(self.states) - 1)]
        self.gets += 1
        return SimpleNamespace(name=name, state=state)

    def delete(self, name):
        self.deleted.append(name)
        if self.fail_delete:
            raise ConnectionError("delete refused")


class FakeModels:
    def __init__(self, text="[00:01] Hola"):
        self.text = text
        self.calls = []
        self.fail = False

    def generate_content(self, model, contents):
        self.calls.append((model, contents))
        if self.fail:
            raise RuntimeError("model overloaded")
        return SimpleNamespace(text=self.text)


class FakeGenaiClient:
    def __init__(self, states=("ACTIVE",), text="[00:01] Hola"):
        self.files = FakeFiles(states)
        self.models = FakeModels(text)


class FakeSynth:
    """ChunkSynth recording the chunks it was asked to speak."""

    def __init__(self):
        self.chunks = []
        self.fail = False

    def __call__(self, text, lang):
        if self.fail:
            raise ConnectionError("tts unavailable")
        self.chunks.append((text, lang))
        return f"<{text}>".encode()


class FakeMuxer(MediaMuxer):
    """Writes a placeholder output instead of calling ffmpeg."""

    def __init__(self, temp_dir):
        super().__init__("ffmpeg", temp_dir)
        self.calls = []
        self.fail = False

    def remux(self, video_path, audio_path):
        self.calls.append((video_path, audio_path))
        if self.fail:
            raise PipelineError(ErrorKind.MUX_FAILED, "Failed to merge audio and video: boom")
        out = os.path.join(self.temp_dir, f"dubbed-{uuid.uuid4().hex}.mp4")
        with open(out, "wb") as f:
            f.write(b"dubbed-video")
        return out


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def workdir(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def settings(workdir):
    return Settings(gemini_api_key="test-key", temp_dir=str(workdir), poll_interval=0.0)


@pytest.fixture
def genai_client():
    return FakeGenaiClient()


@pytest.fixture
def synth():
    return FakeSynth()


@pytest.fixture
def muxer(workdir):
    return FakeMuxer(str(workdir))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TranslationCache(ttl=24 * 60 * 60, clock=clock)


@pytest.fixture
def make_pipeline(settings, genai_client, synth, muxer, cache):
    """Factory so tests can swap the HTTP transport or drop the translator."""

    def _make(transport=None, translator=True, sleeps=None):
        http_client = httpx.Client(transport=transport) if transport is not None else None
        sleep = sleeps.append if sleeps is not None else (lambda _s: None)
        return TranslationPipeline(
            settings=settings,
            cache=cache,
            sources=MediaSources(
                temp_dir=settings.temp_dir,
                supported_types=settings.supported_video_types,
                max_file_size=settings.max_file_size,
                http_client=http_client,
            ),
            translator=GeminiTranslator(
                genai_client,
                model=settings.default_model,
                poll_interval=settings.poll_interval,
                max_poll_attempts=settings.max_poll_attempts,
                sleep=sleep,
            )
            if translator
            else None,
            synthesizer=SpeechSynthesizer(synth, max_chars=200, temp_dir=settings.temp_dir),
            muxer=muxer,
        )

    return _make


@pytest.fixture
def pipeline(make_pipeline):
    return make_pipeline()
