"""
Speech-to-Text Service
Uses OpenAI Whisper for transcription with bounded, back-to-back retries.
"""

from pathlib import Path
from typing import Optional, Union

from openai import AsyncOpenAI
from tenacity import AsyncRetrying, RetryError, stop_after_attempt, wait_none

from transcript_ingest.core.exceptions import TranscriptionError
from transcript_ingest.core.logging import AuditLogger, get_logger

logger = get_logger(__name__)


class EmptyTranscriptError(Exception):
    """The provider answered but recognized no speech."""


class STTService:
    """Service for Speech-to-Text transcription using OpenAI Whisper."""

    provider = "openai"

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "whisper-1",
        max_attempts: int = 3,
        timeout: Optional[float] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.client = client
        self.model = model
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.audit_logger = audit_logger or AuditLogger(enabled=False)

    async def transcribe(
        self,
        path: Union[str, Path],
        language: str,
        request_id: str = "-",
    ) -> str:
        """
        Transcribes the audio file at `path` and returns the text.
        Every attempt re-opens the file; attempts run back-to-back.
        """
        attempts = 0
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_none(),
            before_sleep=lambda retry_state: logger.warning(
                f"Retrying Whisper API call, attempt {retry_state.attempt_number + 1}/{self.max_attempts}...",
                error=str(retry_state.outcome.exception()),
            ),
        )

        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    text = await self._transcribe_once(path, language, request_id, attempts)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            logger.error(
                f"Whisper transcription failed after {attempts} attempt(s): {last_error}",
                request_id=request_id,
            )
            raise TranscriptionError(str(path), attempts, last_error) from last_error

        if not text or not text.strip():
            logger.error("Whisper returned an empty transcript", request_id=request_id)
            raise TranscriptionError(str(path), attempts, EmptyTranscriptError("empty transcript"))

        logger.info(f"Transcription success: {len(text)} characters", request_id=request_id)
        return text

    async def _transcribe_once(self, path: Union[str, Path], language: str, request_id: str, attempt: int) -> str:
        self.audit_logger.log_transcription_request(
            request_id=request_id,
            provider=self.provider,
            model=self.model,
            language=language,
            attempt=attempt,
        )
        with open(path, "rb") as audio_file:
            kwargs = {}
            if self.timeout is not None:
                kwargs["timeout"] = self.timeout
            response = await self.client.audio.transcriptions.create(
                file=audio_file,
                model=self.model,
                language=language,
                **kwargs,
            )
        return response.text
