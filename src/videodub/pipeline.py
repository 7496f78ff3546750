"""
Request orchestration: validate, acquire, cache, translate, dub, clean up.

Stages run strictly one after another. Blocking stages are pushed to the
thread pool so a long Gemini poll does not stall the event loop, and the
client connection is checked between stages so an abandoned request stops
issuing remote calls. Whatever the outcome, local temp files are deleted and
the uploaded Gemini file is released exactly once.
"""

import base64
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from fastapi.concurrency import run_in_threadpool

from .cache import TranslationCache, build_cache, generate_cache_key
from .config import Settings
from .errors import ErrorKind, PipelineError
from .io_ffmpeg import MediaMuxer
from .models import CacheEntry, RemoteMedia, TranslationRequest, TranslationResult
from .sources import MediaSources
from .translation import GeminiTranslator, resolve_language
from .tts import SpeechSynthesizer, build_synthesizer

logger = logging.getLogger("videodub")

DisconnectCheck = Callable[[], Awaitable[bool]]


def encode_data_url(path: str, mime_type: str = "video/mp4") -> str:
    data = Path(path).read_bytes()
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


class TempFiles:
    """Local files owned by one request."""

    def __init__(self) -> None:
        self.paths: list[str] = []

    def add(self, path: str) -> str:
        self.paths.append(path)
        return path

    def cleanup(self) -> None:
        """Delete every tracked file; failures are logged and swallowed."""
        for path in self.paths:
            try:
                Path(path).unlink(missing_ok=True)
                logger.info("Cleaned up temp file: %s", path)
            except OSError as e:
                logger.warning("Failed to cleanup temp file: %s (%s)", path, e)
        self.paths.clear()


class TranslationPipeline:
    def __init__(
        self,
        settings: Settings,
        cache: TranslationCache,
        sources: MediaSources,
        translator: GeminiTranslator | None,
        synthesizer: SpeechSynthesizer,
        muxer: MediaMuxer,
    ) -> None:
        self.settings = settings
        self.cache = cache
        self.sources = sources
        self.translator = translator
        self.synthesizer = synthesizer
        self.muxer = muxer

    def validate(self, request: TranslationRequest) -> str:
        """Reject a request before anything touches disk; return the resolved language code."""
        if self.translator is None:
            raise PipelineError(ErrorKind.CONFIGURATION, "Gemini API key not configured")
        if not request.target_language or not request.target_language.strip():
            raise PipelineError(ErrorKind.INVALID_INPUT, "Target language is required")
        language = resolve_language(request.target_language)
        if not self.synthesizer.supports_language(language):
            raise PipelineError(
                ErrorKind.INVALID_INPUT, f"Unsupported target language: {request.target_language.strip()}"
            )
        if request.upload is None and request.url is None:
            raise PipelineError(ErrorKind.INVALID_INPUT, "Either a file or video URL must be provided")
        if request.upload is not None:
            self.sources.validate_upload(request.upload)
        return language

    async def _stage(
        self, name: str, is_disconnected: DisconnectCheck | None, fn: Callable[..., Any], *args: Any
    ) -> Any:
        if is_disconnected is not None and await is_disconnected():
            logger.info("Client disconnected before stage '%s'; stopping", name)
            raise PipelineError(ErrorKind.CANCELLED, f"Request cancelled by client before {name}")
        logger.debug("Stage: %s", name)
        return await run_in_threadpool(fn, *args)

    async def run(
        self, request: TranslationRequest, is_disconnected: DisconnectCheck | None = None
    ) -> TranslationResult:
        """Process one translation request end to end."""
        temp = TempFiles()
        remote: RemoteMedia | None = None
        try:
            language = self.validate(request)

            media = await self._stage("acquire", is_disconnected, self.sources.acquire, request)
            temp.add(media.path)

            key = generate_cache_key(request.source_identity, language)
            cached = await run_in_threadpool(self.cache.get, key)
            if cached is not None:
                logger.info("Returning cached result for: %s", key)
                return TranslationResult(
                    result=cached.translation,
                    video_url=cached.video_url,
                    file_name=media.display_name,
                    target_language=language,
                    cached=True,
                )

            translator = self.translator
            remote = await self._stage(
                "upload", is_disconnected, translator.upload, media.path, media.mime_type, media.display_name
            )
            await self._stage("await_ready", is_disconnected, translator.await_ready, remote)
            text = await self._stage("translate", is_disconnected, translator.translate, remote, language)
            logger.info("Translation completed successfully")

            audio_path = await self._stage("synthesize", is_disconnected, self.synthesizer.synthesize, text, language)
            temp.add(audio_path)
            dubbed_path = await self._stage("mux", is_disconnected, self.muxer.remux, media.path, audio_path)
            temp.add(dubbed_path)

            video_url = await run_in_threadpool(encode_data_url, dubbed_path)
            entry = CacheEntry(translation=text, video_url=video_url, timestamp=self.cache.now())
            await run_in_threadpool(self.cache.put, key, entry)
            return TranslationResult(
                result=text,
                video_url=video_url,
                file_name=media.display_name,
                target_language=language,
            )
        finally:
            if remote is not None:
                await run_in_threadpool(self.translator.release, remote)
            temp.cleanup()


def build_pipeline(settings: Settings) -> TranslationPipeline:
    """Wire the production components from settings."""
    translator = None
    if settings.gemini_api_key:
        translator = GeminiTranslator.from_api_key(
            settings.gemini_api_key,
            model=settings.default_model,
            poll_interval=settings.poll_interval,
            max_poll_attempts=settings.max_poll_attempts,
        )

    try:
        synthesizer = build_synthesizer(
            settings.tts_provider,
            temp_dir=settings.temp_dir,
            openai_api_key=settings.openai_api_key,
            openai_model=settings.openai_tts_model,
            openai_voice=settings.openai_tts_voice,
        )
    except RuntimeError as e:
        logger.warning("%s - falling back to gtts", e)
        synthesizer = build_synthesizer("gtts", temp_dir=settings.temp_dir)

    return TranslationPipeline(
        settings=settings,
        cache=build_cache(settings.cache_backend, settings.cache_ttl, settings.redis_url),
        sources=MediaSources(
            temp_dir=settings.temp_dir,
            supported_types=settings.supported_video_types,
            max_file_size=settings.max_file_size,
            timeout=settings.download_timeout,
        ),
        translator=translator,
        synthesizer=synthesizer,
        muxer=MediaMuxer(settings.ffmpeg_binary, settings.temp_dir),
    )
