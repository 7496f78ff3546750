"""
Timestamped translation of a video's spoken content with Gemini.

The video is uploaded to the Gemini Files API, polled until the service has
finished processing it, then passed to a model together with a translation
prompt. Uploaded files are deleted afterwards to free remote storage.
"""

import logging
import time
from collections.abc import Callable

from google import genai
from google.genai import types

from .errors import ErrorKind, PipelineError
from .models import RemoteMedia

logger = logging.getLogger("videodub")

STATE_ACTIVE = "ACTIVE"
STATE_FAILED = "FAILED"

TRANSLATION_PROMPT = """Translate the spoken content of this video to {language}.

Requirements:
- Provide timestamps for each segment of dialogue
- Format: [MM:SS] Translated text
- Include ALL spoken dialogue and narration
- Maintain the original meaning and context
- Use natural, fluent language in {language}

Please be thorough and accurate in your translation."""


LANGUAGE_NAMES = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "zh": "Chinese (Simplified)",
    "ja": "Japanese",
    "ko": "Korean",
    "ru": "Russian",
    "hi": "Hindi",
    "ar": "Arabic",
    "nl": "Dutch",
    "pl": "Polish",
    "tr": "Turkish",
    "vi": "Vietnamese",
    "th": "Thai",
    "id": "Indonesian",
    "sv": "Swedish",
    "da": "Danish",
    "fi": "Finnish",
    "no": "Norwegian",
    "cs": "Czech",
    "el": "Greek",
    "he": "Hebrew",
    "uk": "Ukrainian",
}

# lowercased name -> code
_NAME_TO_CODE = {name.lower(): code for code, name in LANGUAGE_NAMES.items()}
_NAME_TO_CODE.update({"chinese": "zh", "mandarin": "zh"})


def resolve_language(value: str) -> str:
    """Map a language code or known name, in any case, to its code.

    ``"ES"`` and ``"Spanish"`` both give ``"es"``. Anything else is returned
    stripped but otherwise unchanged.
    """
    value = value.strip()
    key = value.lower()
    if key in LANGUAGE_NAMES:
        return key
    return _NAME_TO_CODE.get(key, value)


def get_language_name(language_code: str) -> str:
    """Get human-readable language name from language code.

    Unknown values are returned unchanged so callers may pass a full name.
    """
    return LANGUAGE_NAMES.get(language_code.strip().lower(), language_code.strip())


def build_prompt(target_language: str) -> str:
    return TRANSLATION_PROMPT.format(language=get_language_name(target_language))


def _state_name(state) -> str:
    """Normalize a FileState enum / string / None to its bare name."""
    if state is None:
        return "PROCESSING"
    name = getattr(state, "name", None) or str(state)
    return name.rsplit(".", 1)[-1].upper()


def _to_remote(file) -> RemoteMedia:
    return RemoteMedia(
        name=file.name,
        uri=file.uri,
        mime_type=file.mime_type,
        state=_state_name(getattr(file, "state", None)),
    )


class GeminiTranslator:
    """Upload, poll, translate and release against the Gemini API."""

    def __init__(
        self,
        client: genai.Client,
        model: str = "gemini-2.5-flash",
        poll_interval: float = 2.0,
        max_poll_attempts: int = 60,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.model = model
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self.sleep = sleep

    @classmethod
    def from_api_key(cls, api_key: str, **kwargs) -> "GeminiTranslator":
        return cls(genai.Client(api_key=api_key), **kwargs)

    def upload(self, local_path: str, mime_type: str, display_name: str) -> RemoteMedia:
        logger.info("Uploading file to Gemini: %s", display_name)
        try:
            file = self.client.files.upload(
                file=local_path,
                config={"mime_type": mime_type, "display_name": display_name},
            )
        except Exception as e:
            raise PipelineError(ErrorKind.UPLOAD_FAILED, f"Failed to upload video to Gemini: {e}") from e
        media = _to_remote(file)
        logger.info("File uploaded successfully: %s", media.name)
        return media

    def await_ready(self, media: RemoteMedia) -> None:
        """Block until the uploaded file is ACTIVE.

        Makes at most ``max_poll_attempts`` status requests, sleeping
        ``poll_interval`` seconds after each non-terminal one.
        """
        for attempt in range(self.max_poll_attempts):
            try:
                record = self.client.files.get(name=media.name)
            except Exception as e:
                raise PipelineError(
                    ErrorKind.REMOTE_PROCESSING_FAILED, f"Could not check video processing status: {e}"
                ) from e
            media.state = _state_name(getattr(record, "state", None))
            logger.info(
                "Processing attempt %d/%d, state: %s", attempt + 1, self.max_poll_attempts, media.state
            )
            if media.state == STATE_ACTIVE:
                logger.info("File processing completed successfully")
                return
            if media.state == STATE_FAILED:
                raise PipelineError(
                    ErrorKind.REMOTE_PROCESSING_FAILED, "Video processing failed on Gemini servers"
                )
            self.sleep(self.poll_interval)

        raise PipelineError(
            ErrorKind.TIMEOUT, "Video processing timeout - file took too long to process"
        )

    def translate(self, media: RemoteMedia, target_language: str) -> str:
        logger.info("Generating translation with model: %s", self.model)
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=[
                    types.Part.from_uri(file_uri=media.uri, mime_type=media.mime_type),
                    build_prompt(target_language),
                ],
            )
            text = response.text
        except Exception as e:
            logger.error("Translation failed with model %s: %s", self.model, e)
            raise PipelineError(
                ErrorKind.GENERATION_FAILED, f"Failed to generate translation: {e}"
            ) from e

        if not text or not text.strip():
            raise PipelineError(
                ErrorKind.GENERATION_FAILED, "Failed to generate translation: Empty response from model"
            )
        return text

    def release(self, media: RemoteMedia) -> None:
        """Delete the uploaded file; failures are only logged."""
        try:
            self.client.files.delete(name=media.name)
            logger.info("File deleted from Gemini storage: %s", media.name)
        except Exception as e:
            logger.warning("Could not delete file from Gemini (%s): %s", media.name, e)
