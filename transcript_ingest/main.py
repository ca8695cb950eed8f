"""
Transcript Ingest - FastAPI Main Application
"""

import re
import secrets
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Optional

import structlog
import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from transcript_ingest.config import Settings, load_settings
from transcript_ingest.core.exceptions import ConfigurationError, PipelineError
from transcript_ingest.core.logging import get_logger, setup_logging
from transcript_ingest.models.responses import (
    ErrorResponse, HealthCheckResponse, RateLimitResponse, TranscriptionResponse
)
from transcript_ingest.services.pipeline import TranscriptionPipeline, build_pipeline

logger = get_logger(__name__)

# Prometheus metrics
request_count = Counter('http_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'status'])
request_duration = Histogram('http_request_duration_seconds', 'HTTP request duration')
audio_processing_duration = Histogram('audio_processing_duration_seconds', 'Audio processing duration')

SUCCESS_MESSAGE = "Transcription saved to Firestore successfully!"
PROCESSING_ERROR_MESSAGE = "Error processing audio file."
LANGUAGE_PATTERN = re.compile(r"^[a-z]{2,3}$")

SECURITY_HEADERS = {
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
}

router = APIRouter()


def get_pipeline(request: Request) -> TranscriptionPipeline:
    return request.app.state.pipeline


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _content_type_accepted(content_type: Optional[str], accepted: list) -> bool:
    if not content_type:
        return False
    media_type = content_type.split(";")[0].strip().lower()
    for pattern in accepted:
        if pattern.endswith("/*"):
            if media_type.startswith(pattern[:-1]):
                return True
        elif media_type == pattern:
            return True
    return False


def _error_response(status_code: int, message: str, request_id: str, headers: Optional[dict] = None) -> JSONResponse:
    body = ErrorResponse(
        error=HTTPStatus(status_code).phrase.lower().replace(" ", "_").replace("-", "_"),
        message=message,
        request_id=request_id,
        timestamp=datetime.now(timezone.utc),
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json"),
        headers={**(headers or {}), "X-Request-ID": request_id},
    )


def _route_label(request: Request) -> str:
    """Matched route template, so scanned paths cannot grow the label set."""
    route = request.scope.get("route")
    return getattr(route, "path", "unmatched")


async def _read_body(request: Request, limit: int, limit_mb: int) -> bytes:
    """Reads the body chunk by chunk and stops with 413 once `limit` is passed."""
    chunks = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"Audio exceeds the {limit_mb} MB limit.",
            )
        chunks.append(chunk)
    return b"".join(chunks)


async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


async def track_requests(request: Request, call_next):
    """Assigns a request id, binds it to the log context and records Prometheus metrics."""
    request_id = secrets.token_urlsafe(16)
    request.state.request_id = request_id
    started = time.perf_counter()

    with structlog.contextvars.bound_contextvars(request_id=request_id):
        try:
            response = await call_next(request)
        except Exception as e:
            request_count.labels(method=request.method, endpoint=_route_label(request), status=500).inc()
            logger.error(f"Request failed before a response was produced: {e}", exc_info=True)
            return _error_response(500, "An internal error occurred", request_id)

    elapsed = time.perf_counter() - started
    request_count.labels(method=request.method, endpoint=_route_label(request), status=response.status_code).inc()
    request_duration.observe(elapsed)
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Processing-Time"] = f"{elapsed:.3f}s"
    return response


# Health check endpoints
@router.get("/", response_class=PlainTextResponse)
async def root():
    """Static liveness check"""
    return "Transcription service is running."


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(request: Request, settings: Settings = Depends(get_settings)):
    """Service health check"""

    started_at = getattr(request.app.state, "started_at", time.time())
    return HealthCheckResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=settings.api_version,
        uptime_seconds=int(time.time() - started_at),
        details={
            "transcoding": settings.transcode_target_format or "disabled",
            "pipeline_order": settings.pipeline_order.value,
            "transcription_model": settings.transcription_model,
        },
    )


# Prometheus metrics endpoint
@router.get("/metrics")
async def metrics(settings: Settings = Depends(get_settings)):
    """Prometheus metrics"""
    if not settings.enable_metrics:
        raise HTTPException(status_code=404, detail="Metrics disabled")

    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Main endpoint for audio transcription
@router.post(
    "/transcribe",
    response_model=TranscriptionResponse,
    responses={
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        415: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        429: {"model": RateLimitResponse},
        500: {"content": {"text/plain": {}}, "description": "Processing failed"},
    },
)
async def transcribe_audio(
    request: Request,
    language: Optional[str] = Query(default=None, description="ISO 639-1 language code"),
    settings: Settings = Depends(get_settings),
    pipeline: TranscriptionPipeline = Depends(get_pipeline),
):
    """
    Receives raw audio bytes, transcribes them and stores the transcript.
    Scratch files are removed before the response is sent.
    """
    request_id = request.state.request_id

    # --- Input Validation ---
    content_type = request.headers.get("content-type")
    if not _content_type_accepted(content_type, settings.accepted_content_types):
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=f"Unsupported content type '{content_type}'. Send raw audio as application/octet-stream.",
        )

    declared_length = request.headers.get("content-length")
    if declared_length and declared_length.isdigit() and int(declared_length) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Audio exceeds the {settings.max_upload_mb} MB limit.",
        )

    # An empty ?language= falls back to the default like a missing one
    language = (language or "").strip().lower() or None
    if language is not None and not LANGUAGE_PATTERN.match(language):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid language code '{language}'.",
        )

    audio_data = await _read_body(request, settings.max_upload_bytes, settings.max_upload_mb)
    if not audio_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No audio data.")

    logger.info(f"Using language: {language or settings.default_language}")

    start_time = time.time()
    try:
        result = await pipeline.run(audio_data, language=language, request_id=request_id)
    except PipelineError as e:
        logger.error(f"Request {request_id} failed during {e.stage}: {e}", cause=repr(e.cause))
        return PlainTextResponse(PROCESSING_ERROR_MESSAGE, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    except Exception as e:
        logger.error(f"Request {request_id} failed unexpectedly: {e}", exc_info=True)
        return PlainTextResponse(PROCESSING_ERROR_MESSAGE, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    finally:
        audio_processing_duration.observe(time.time() - start_time)

    return TranscriptionResponse(transcription=result.transcription, message=SUCCESS_MESSAGE)


def create_app(
    settings: Optional[Settings] = None,
    pipeline: Optional[TranscriptionPipeline] = None,
) -> FastAPI:
    """
    Builds the application. Without an injected pipeline the real clients
    are constructed during startup.
    """
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Transcript Ingest starting",
            environment=settings.environment.value,
            version=settings.api_version,
            pipeline_order=settings.pipeline_order.value,
        )
        if app.state.pipeline is None:
            app.state.pipeline = build_pipeline(settings)
        app.state.started_at = time.time()

        yield

        logger.info("Transcript Ingest shutting down")

    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.environment == "development" else None,
        redoc_url="/redoc" if settings.environment == "development" else None,
        debug=settings.debug,
    )
    app.state.settings = settings
    app.state.pipeline = pipeline

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    # Rate limiting
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[f"{settings.rate_limit_requests} per {settings.rate_limit_window} seconds"],
        enabled=settings.rate_limit_enabled,
    )
    for endpoint in (root, health_check, metrics):
        limiter.exempt(endpoint)
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)

    app.middleware("http")(add_security_headers)
    app.middleware("http")(track_requests)

    # Plain function: SlowAPIMiddleware calls the registered handler directly
    @app.exception_handler(RateLimitExceeded)
    def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        body = RateLimitResponse(
            message="Too many requests. Please try again later.",
            retry_after=settings.rate_limit_window,
            limit=settings.rate_limit_requests,
            window=settings.rate_limit_window,
            timestamp=datetime.now(timezone.utc),
        )
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=body.model_dump(mode="json"),
            headers={"Retry-After": str(settings.rate_limit_window)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        request_id = getattr(request.state, "request_id", "unknown")
        return _error_response(exc.status_code, str(exc.detail), request_id, exc.headers)

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error(f"Unhandled error: {exc}", request_id=request_id, exc_info=exc)
        return _error_response(500, "An unexpected error occurred", request_id)

    app.include_router(router)
    return app


def run() -> None:
    """
    Process entry point. Exits with status 1 before binding the port
    when configuration or cloud credentials are missing.
    """
    try:
        settings = load_settings()
    except ConfigurationError as e:
        setup_logging()
        logger.error(f"API keys or Firebase configuration are missing: {e}")
        sys.exit(1)

    setup_logging(settings.environment.value, settings.log_level)

    try:
        pipeline = build_pipeline(settings)
    except ConfigurationError as e:
        logger.error(f"Could not initialize cloud clients: {e}")
        sys.exit(1)

    app = create_app(settings, pipeline)
    logger.info(f"Server running at http://{settings.api_host}:{settings.api_port}")
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
