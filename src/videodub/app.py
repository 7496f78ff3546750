"""
HTTP boundary: the FastAPI application.
"""

import logging
import os

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from . import __version__
from .config import Settings, load_settings
from .errors import PipelineError, internal_error_response
from .models import TranslationRequest, UploadSource, UrlSource
from .pipeline import TranslationPipeline, build_pipeline

logger = logging.getLogger("videodub")


def upload_source(file: UploadFile | None) -> UploadSource | None:
    """Wrap a posted file without reading it; an empty file field counts as absent.

    The multipart parser has already spooled the body, so its size is known
    and the pipeline can reject it before copying a byte.
    """
    if file is None or not file.filename:
        return None
    size = file.size
    if size is None:
        size = file.file.seek(0, os.SEEK_END)
        file.file.seek(0)
    return UploadSource(
        filename=file.filename,
        mime_type=(file.content_type or "").lower(),
        size=size,
        stream=file.file,
    )


def create_app(
    settings: Settings | None = None, pipeline: TranslationPipeline | None = None
) -> FastAPI:
    """Build the application. Missing credentials never stop it from starting."""
    settings = settings or load_settings()
    pipeline = pipeline or build_pipeline(settings)

    app = FastAPI(title="Gemini Video Translation API", version=__version__)
    app.state.settings = settings
    app.state.pipeline = pipeline

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    @app.get("/translate")
    async def translate_info() -> JSONResponse:
        return JSONResponse(settings.describe())

    @app.post("/translate")
    async def translate(
        request: Request,
        file: UploadFile | None = File(None),
        videoUrl: str | None = Form(None),
        targetLanguage: str | None = Form(None),
    ) -> JSONResponse:
        try:
            upload = upload_source(file)
            url = videoUrl.strip() if videoUrl and videoUrl.strip() else None
            if upload is not None:
                logger.info("Processing uploaded file: %s, size: %d bytes", upload.filename, upload.size)
            job = TranslationRequest(
                target_language=targetLanguage or "",
                upload=upload,
                url=UrlSource(url) if upload is None and url else None,
            )
            result = await pipeline.run(job, request.is_disconnected)
        except PipelineError as e:
            logger.error("Error processing video translation: %r", e)
            return JSONResponse(e.to_response(), status_code=e.status_code)
        except Exception as e:
            logger.exception("Unexpected error processing video translation")
            return JSONResponse(internal_error_response(e), status_code=500)
        finally:
            if file is not None:
                await file.close()
        return JSONResponse(result.to_response())

    return app
