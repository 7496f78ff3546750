"""
Command-line interface: serve the API or translate one video locally.
"""

import argparse
import asyncio
import base64
import logging
import mimetypes
import sys
from pathlib import Path

import uvicorn

from .config import load_settings
from .errors import PipelineError
from .models import TranslationRequest, UploadSource, UrlSource
from .pipeline import build_pipeline

logger = logging.getLogger("videodub")


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    ap = argparse.ArgumentParser(description="Video translation and dubbing service")
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    sub = ap.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Auto-reload on code changes (development)")

    tr = sub.add_parser("translate", help="Translate and dub one video without the HTTP server")
    src = tr.add_mutually_exclusive_group(required=True)
    src.add_argument("--file", help="Local video file")
    src.add_argument("--url", help="Direct video URL or YouTube link")
    tr.add_argument(
        "--lang", required=True, help="Target language code (e.g. 'es') or known name (e.g. 'Spanish')"
    )
    tr.add_argument("--output", default="output_dubbed.mp4", help="Where to write the dubbed video")
    tr.add_argument("--text-output", default=None, help="Also write the translated text here")

    return ap.parse_args(argv)


def request_from_args(args: argparse.Namespace) -> TranslationRequest:
    if args.file:
        path = Path(args.file)
        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return TranslationRequest(
            target_language=args.lang,
            upload=UploadSource(
                filename=path.name,
                mime_type=mime_type,
                size=path.stat().st_size,
                stream=open(path, "rb"),
            ),
        )
    return TranslationRequest(target_language=args.lang, url=UrlSource(args.url))


def decode_data_url(data_url: str) -> bytes:
    _, _, payload = data_url.partition(";base64,")
    return base64.b64decode(payload)


def run_translate(args: argparse.Namespace) -> int:
    pipeline = build_pipeline(load_settings())
    request = request_from_args(args)
    try:
        result = asyncio.run(pipeline.run(request))
    except PipelineError as e:
        logger.error("%s (%s)", e.message, e.kind.value)
        return 1
    finally:
        if request.upload is not None:
            request.upload.stream.close()

    Path(args.output).write_bytes(decode_data_url(result.video_url))
    logger.info("Done (dubbed) -> %s", args.output)
    if args.text_output:
        Path(args.text_output).write_text(result.result, encoding="utf-8")
        logger.info("Saved translation -> %s", args.text_output)
    else:
        print(result.result)
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    if args.command == "serve":
        uvicorn.run(
            "videodub.app:create_app",
            factory=True,
            host=args.host,
            port=args.port,
            reload=args.reload,
            log_level="debug" if args.verbose else "info",
        )
        return

    sys.exit(run_translate(args))


if __name__ == "__main__":
    main()
