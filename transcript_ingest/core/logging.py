"""
Structured logging setup for the Transcript Ingest Service
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import structlog


def setup_logging(environment: str = "development", log_level: str = "INFO"):
    """Configures structured logging"""

    timestamper = structlog.processors.TimeStamper(fmt="ISO")

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        timestamper,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if environment == "development":
        # Development: colored console output
        processors.extend([
            structlog.dev.ConsoleRenderer(colors=True)
        ])
    else:
        # Production: JSON output
        processors.extend([
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer()
        ])

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = None):
    """Returns a configured logger"""
    return structlog.get_logger(name or __name__)


class AuditLogger:
    """
    Emits one structured event per provider call, finished run and failure.
    Disabled instances drop every event.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.logger = get_logger("audit")

    def _emit(self, event: str, level: str = "info", **fields):
        if not self.enabled:
            return
        fields["timestamp"] = datetime.now(timezone.utc).isoformat()
        getattr(self.logger, level)(event, **fields)

    def log_transcription_request(self, request_id: str, provider: str, model: str, language: str, attempt: int, **kwargs):
        self._emit(
            "transcription_request",
            request_id=request_id,
            provider=provider,
            model=model,
            language=language,
            attempt=attempt,
            **kwargs
        )

    def log_audio_processing(
        self,
        request_id: str,
        audio_size_bytes: int,
        language: str,
        model_used: str,
        processing_time_ms: int,
        audio_duration: Optional[float] = None,
        **kwargs
    ):
        """Logs a completed pipeline run"""
        self._emit(
            "audio_processing",
            request_id=request_id,
            size_bytes=audio_size_bytes,
            duration_seconds=audio_duration,
            language=language,
            model=model_used,
            elapsed_ms=processing_time_ms,
            **kwargs
        )

    def log_error(self, request_id: str, error_type: str, error_message: str, stage: Optional[str] = None, **kwargs):
        """Logs a pipeline run aborted at `stage`"""
        self._emit(
            "error_event",
            level="error",
            request_id=request_id,
            stage=stage,
            error_type=error_type,
            error_message=error_message,
            **kwargs
        )
