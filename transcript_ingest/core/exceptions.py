"""
Error taxonomy for the ingest pipeline
"""

from typing import Optional


class ConfigurationError(Exception):
    """Raised at startup when required configuration is missing or invalid."""

    def __init__(self, message: str, missing: Optional[list[str]] = None):
        self.missing = missing or []
        super().__init__(message)


class PipelineError(Exception):
    """Base class for request-scoped failures that abort the pipeline."""

    stage = "unknown"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class StorageWriteError(PipelineError):
    """Raised when the upload cannot be written to the scratch directory."""

    stage = "staging"

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        self.path = path
        super().__init__(f"Failed to write scratch file '{path}'", cause)


class ConversionError(PipelineError):
    """Raised when the external transcoder fails."""

    stage = "conversion"

    def __init__(self, path: str, reason: str, cause: Optional[BaseException] = None):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to convert '{path}': {reason}", cause)


class UploadError(PipelineError):
    """Raised when the audio cannot be uploaded to blob storage."""

    stage = "upload"

    def __init__(self, object_name: str, cause: Optional[BaseException] = None):
        self.object_name = object_name
        super().__init__(f"Failed to upload '{object_name}' to storage", cause)


class TranscriptionError(PipelineError):
    """Raised when the provider did not return a usable transcript."""

    stage = "transcription"

    def __init__(self, path: str, attempts: int, cause: Optional[BaseException] = None):
        self.path = path
        self.attempts = attempts
        super().__init__(f"Failed to transcribe '{path}' after {attempts} attempt(s)", cause)


class PersistenceError(PipelineError):
    """Raised when the transcript record cannot be written."""

    stage = "persistence"

    def __init__(self, collection: str, cause: Optional[BaseException] = None):
        self.collection = collection
        super().__init__(f"Failed to save transcript to collection '{collection}'", cause)
