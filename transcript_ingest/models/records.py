"""
Pydantic models for persisted data
"""

from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class AudioObjectRef(BaseModel):
    """Reference to an audio object in durable blob storage"""
    model_config = ConfigDict(frozen=True)

    scheme: str = Field(default="gs", description="Storage URI scheme")
    bucket: str = Field(min_length=1, description="Bucket name")
    key: str = Field(min_length=1, description="Object key inside the bucket")

    @property
    def uri(self) -> str:
        return f"{self.scheme}://{self.bucket}/{self.key}"

    def __str__(self) -> str:
        return self.uri


class TranscriptRecord(BaseModel):
    """A stored transcript with its metadata"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Generated document id")
    transcription: str = Field(description="Transcribed text")
    language: str = Field(description="Language code used for transcription")
    audio_ref: AudioObjectRef = Field(description="Durable copy of the source audio")
    timestamp: datetime = Field(description="UTC save time")

    def to_document(self) -> dict:
        """Fields as written to the document store (the id is the document key)."""
        return {
            "transcription": self.transcription,
            "language": self.language,
            "fileURL": self.audio_ref.uri,
            "timestamp": self.timestamp.isoformat(),
        }
