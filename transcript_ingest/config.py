"""
Central configuration for the Transcript Ingest Service
"""

from enum import Enum
from typing import List, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from transcript_ingest.core.exceptions import ConfigurationError


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class PipelineOrder(str, Enum):
    """Relative order of the blob upload and the transcription call."""
    UPLOAD_FIRST = "upload_first"
    TRANSCRIBE_FIRST = "transcribe_first"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Environment
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # API Configuration
    api_title: str = Field(default="Transcript Ingest API")
    api_description: str = Field(default="Audio upload, transcription and transcript storage")
    api_version: str = Field(default="1.0.0")
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=3000)

    # Speech-to-Text provider
    openai_api_key: str = Field(...)
    openai_base_url: Optional[str] = Field(default=None)
    transcription_model: str = Field(default="whisper-1")
    transcription_timeout: float = Field(default=30.0)  # seconds, per attempt
    transcription_max_attempts: int = Field(default=3, ge=1)
    default_language: str = Field(default="es")

    # Cloud identity / storage backend
    firebase_project_id: str = Field(...)
    firebase_client_email: str = Field(...)
    firebase_private_key: str = Field(...)
    firebase_bucket_name: str = Field(...)
    firestore_collection: str = Field(default="transcriptions")
    storage_key_prefix: str = Field(default="audio/")

    # Upload handling
    max_upload_mb: int = Field(default=10)
    scratch_dir: str = Field(default="uploads")
    scratch_default_extension: str = Field(default="webm")
    infer_scratch_extension: bool = Field(default=False)
    accepted_content_types: List[str] = Field(
        default=["application/octet-stream", "audio/*"]
    )

    # Transcoding (disabled unless a target format is configured)
    transcode_target_format: Optional[str] = Field(default=None)
    ffmpeg_binary: str = Field(default="ffmpeg")
    transcode_sample_rate: int = Field(default=16000)
    transcode_channels: int = Field(default=1)
    transcode_timeout: float = Field(default=120.0)

    pipeline_order: PipelineOrder = PipelineOrder.UPLOAD_FIRST

    # Rate Limiting
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_requests: int = Field(default=30)
    rate_limit_window: int = Field(default=60)  # seconds

    # CORS Configuration
    cors_origins: List[str] = Field(default=["*"])
    cors_allow_credentials: bool = Field(default=False)
    cors_allow_methods: List[str] = Field(default=["GET", "POST"])
    cors_allow_headers: List[str] = Field(default=["*"])

    # Monitoring
    enable_metrics: bool = Field(default=True)

    # Audit Logging
    audit_log_enabled: bool = Field(default=True)

    @field_validator("firebase_private_key")
    @classmethod
    def _expand_newlines(cls, value: str) -> str:
        # Keys pasted into .env files carry literal "\n" sequences
        return value.replace("\\n", "\n")

    @field_validator("transcode_target_format")
    @classmethod
    def _normalize_format(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().lstrip(".").lower()
        return value or None

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @property
    def transcoding_enabled(self) -> bool:
        return self.transcode_target_format is not None


def load_settings(**overrides) -> Settings:
    """
    Loads settings from the environment.
    Raises ConfigurationError naming every missing or invalid value.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        missing = [".".join(str(part) for part in err["loc"]).upper() for err in e.errors()]
        raise ConfigurationError(
            f"Missing or invalid configuration: {', '.join(missing)}",
            missing=missing,
        ) from e
