"""
Pipeline Orchestrator
Stage -> (convert) -> upload/transcribe -> persist, with scratch cleanup on every path.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from prometheus_client import Counter

from transcript_ingest.config import PipelineOrder, Settings
from transcript_ingest.core import clients
from transcript_ingest.core.exceptions import PipelineError
from transcript_ingest.core.logging import AuditLogger, get_logger
from transcript_ingest.models.records import AudioObjectRef
from transcript_ingest.services.audio_processor import AudioProcessor
from transcript_ingest.services.audio_store import AudioStore
from transcript_ingest.services.scratch_store import ScratchStore
from transcript_ingest.services.stt_service import STTService
from transcript_ingest.services.transcoder import FFmpegTranscoder, Transcoder
from transcript_ingest.services.transcript_repository import TranscriptRepository

logger = get_logger(__name__)

pipeline_failures = Counter(
    'pipeline_failures_total', 'Pipeline runs aborted, by failing stage', ['stage']
)


class PipelineStage(str, Enum):
    RECEIVED = "received"
    STAGED = "staged"
    CONVERTED = "converted"
    UPLOADED = "uploaded"
    TRANSCRIBED = "transcribed"
    PERSISTED = "persisted"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class PipelineResult:
    record_id: str
    transcription: str
    language: str
    audio_ref: AudioObjectRef
    stage: PipelineStage = PipelineStage.COMPLETED


class TranscriptionPipeline:
    """Runs one upload through the ingest pipeline."""

    def __init__(
        self,
        scratch_store: ScratchStore,
        stt_service: STTService,
        audio_store: AudioStore,
        repository: TranscriptRepository,
        transcoder: Optional[Transcoder] = None,
        target_format: Optional[str] = None,
        order: PipelineOrder = PipelineOrder.UPLOAD_FIRST,
        default_language: str = "es",
        audio_processor: Optional[AudioProcessor] = None,
        infer_extension: bool = False,
        audit_logger: Optional[AuditLogger] = None,
    ):
        if (transcoder is None) != (target_format is None):
            raise ValueError("transcoder and target_format must be configured together")
        self.scratch_store = scratch_store
        self.stt_service = stt_service
        self.audio_store = audio_store
        self.repository = repository
        self.transcoder = transcoder
        self.target_format = target_format
        self.order = order
        self.default_language = default_language
        self.audio_processor = audio_processor or AudioProcessor(scratch_store.default_extension)
        self.infer_extension = infer_extension
        self.audit_logger = audit_logger or AuditLogger(enabled=False)

    async def run(
        self,
        payload: bytes,
        language: Optional[str] = None,
        request_id: str = "-",
    ) -> PipelineResult:
        """
        Processes one upload. Scratch files are gone by the time this
        returns or raises; errors from any stage propagate as PipelineError.
        """
        language = language or self.default_language
        log = logger.bind(request_id=request_id)
        start_time = time.time()
        stage = PipelineStage.RECEIVED
        log.info(f"Pipeline {stage.value}", size_bytes=len(payload), language=language)

        def advance(next_stage: PipelineStage) -> PipelineStage:
            log.info(f"Pipeline {next_stage.value}")
            return next_stage

        try:
            with self.scratch_store.scope() as scratch:
                extension = self.audio_processor.infer_extension(payload) if self.infer_extension else None
                audio_path = scratch.write(payload, extension)
                stage = advance(PipelineStage.STAGED)

                if self.transcoder is not None:
                    converted_path = scratch.sibling(audio_path, self.target_format)
                    audio_path = await self.transcoder.convert(audio_path, self.target_format, converted_path)
                    stage = advance(PipelineStage.CONVERTED)

                # mutagen parses the file synchronously
                audio_duration, _ = await asyncio.to_thread(self.audio_processor.extract_metadata, str(audio_path))

                if self.order == PipelineOrder.UPLOAD_FIRST:
                    audio_ref = await self.audio_store.upload(audio_path)
                    stage = advance(PipelineStage.UPLOADED)
                    transcription = await self.stt_service.transcribe(audio_path, language, request_id=request_id)
                    stage = advance(PipelineStage.TRANSCRIBED)
                else:
                    transcription = await self.stt_service.transcribe(audio_path, language, request_id=request_id)
                    stage = advance(PipelineStage.TRANSCRIBED)
                    audio_ref = await self.audio_store.upload(audio_path)
                    stage = advance(PipelineStage.UPLOADED)

                record_id = await self.repository.save(transcription, language, audio_ref)
                stage = advance(PipelineStage.PERSISTED)

        except PipelineError as e:
            self._record_failure(request_id, stage, e.stage, e)
            raise
        except Exception as e:
            log.error(f"Unexpected pipeline error after stage '{stage.value}': {e}", exc_info=True)
            self._record_failure(request_id, stage, "unexpected", e)
            raise

        self.audit_logger.log_audio_processing(
            request_id=request_id,
            audio_size_bytes=len(payload),
            language=language,
            model_used=self.stt_service.model,
            processing_time_ms=int((time.time() - start_time) * 1000),
            audio_duration=audio_duration,
            record_id=record_id,
            audio_ref=audio_ref.uri,
        )
        advance(PipelineStage.COMPLETED)
        return PipelineResult(
            record_id=record_id,
            transcription=transcription,
            language=language,
            audio_ref=audio_ref,
        )

    def _record_failure(self, request_id: str, reached: PipelineStage, failed_stage: str, error: Exception):
        logger.error(
            f"Pipeline {PipelineStage.FAILED.value} during {failed_stage}",
            request_id=request_id,
            last_completed_stage=reached.value,
            error=str(error),
        )
        pipeline_failures.labels(stage=failed_stage).inc()
        self.audit_logger.log_error(
            request_id=request_id,
            error_type=type(error).__name__,
            error_message=str(error),
            stage=failed_stage,
        )


def build_pipeline(settings: Settings) -> TranscriptionPipeline:
    """Wires the pipeline with the real provider, storage and database clients."""
    audit_logger = AuditLogger(enabled=settings.audit_log_enabled)
    firebase_app = clients.init_firebase(settings)

    transcoder = None
    if settings.transcoding_enabled:
        transcoder = FFmpegTranscoder(
            ffmpeg_bin=settings.ffmpeg_binary,
            sample_rate=settings.transcode_sample_rate,
            channels=settings.transcode_channels,
            timeout=settings.transcode_timeout,
        )

    return TranscriptionPipeline(
        scratch_store=ScratchStore(settings.scratch_dir, settings.scratch_default_extension),
        stt_service=STTService(
            client=clients.build_openai_client(settings),
            model=settings.transcription_model,
            max_attempts=settings.transcription_max_attempts,
            timeout=settings.transcription_timeout,
            audit_logger=audit_logger,
        ),
        audio_store=AudioStore(clients.get_bucket(firebase_app), settings.storage_key_prefix),
        repository=TranscriptRepository(clients.get_firestore(firebase_app), settings.firestore_collection),
        transcoder=transcoder,
        target_format=settings.transcode_target_format,
        order=settings.pipeline_order,
        default_language=settings.default_language,
        audio_processor=AudioProcessor(settings.scratch_default_extension),
        infer_extension=settings.infer_scratch_extension,
        audit_logger=audit_logger,
    )
