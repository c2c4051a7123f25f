"""Application entry point and FastAPI app factory."""

from __future__ import annotations

import logging
import sys
import traceback
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config.settings import settings
from .controllers import audio
from .domain.models import PipelineError
from .middleware import StructuredLoggingMiddleware, TelemetryMiddleware
from .pipelines.audio import ValidationError

logger = logging.getLogger(__name__)


def _rotating_handler(path_value: str, max_bytes: int, fmt: str) -> RotatingFileHandler:
    log_path = Path(path_value)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_path,
        maxBytes=max_bytes,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def _configure_logging() -> None:
    """Ensure structured middleware logs stream to stdout and file."""

    logging.getLogger().handlers.clear()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(
        logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.addHandler(stdout_handler)
    root_logger.addHandler(
        _rotating_handler(
            settings.log_file,
            1_000_000,
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        )
    )
    root_logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)

    middleware_logger = logging.getLogger("wikatalk.middleware.structured")
    middleware_logger.handlers.clear()
    middleware_stdout = logging.StreamHandler(sys.stdout)
    middleware_stdout.setFormatter(logging.Formatter("%(message)s"))
    middleware_logger.addHandler(middleware_stdout)
    middleware_logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)
    middleware_logger.propagate = False

    # Stage transitions also go to the root handlers.
    pipeline_logger = logging.getLogger("wikatalk.pipelines.audio")
    pipeline_logger.handlers.clear()
    pipeline_logger.addHandler(
        _rotating_handler(
            settings.pipeline_log_file,
            500_000,
            "%(asctime)s | %(levelname)s | %(message)s",
        )
    )

    translation_logger = logging.getLogger("wikatalk.logs.translation")
    translation_logger.handlers.clear()
    translation_logger.addHandler(
        _rotating_handler(
            settings.translation_log_file,
            500_000,
            "%(asctime)s | %(levelname)s | %(message)s",
        )
    )
    translation_logger.setLevel(logging.INFO)
    translation_logger.propagate = False

    noisy_loggers = [
        "botocore",
        "boto3",
        "urllib3",
        "s3transfer",
        "httpx",
        "httpcore",
        "multipart",
    ]
    for name in noisy_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def _error_body(message: str, exc: BaseException | None = None) -> dict[str, Any]:
    """Build the `{success, message[, stack]}` error payload."""

    body: dict[str, Any] = {"success": False, "message": message}
    if exc is not None and settings.debug:
        body["stack"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return body


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    _configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        description="WikaTalk voice recording ingestion and translation API",
    )

    app.add_middleware(TelemetryMiddleware)
    app.add_middleware(StructuredLoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    app.include_router(audio.router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        """Root endpoint."""

        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "status": "operational",
        }

    @app.get("/health", include_in_schema=False)
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""

        return {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
        }

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Expose application metrics for Prometheus scraping."""

        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content=_error_body(exc.message))

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        return JSONResponse(
            status_code=400,
            content=_error_body(_first_validation_message(exc)),
        )

    @app.exception_handler(PipelineError)
    async def pipeline_exception_handler(request: Request, exc: PipelineError):
        return JSONResponse(status_code=500, content=_error_body(exc.message, exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(str(exc.detail)),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_body("Failed to process audio", exc),
        )

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "wikatalk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
