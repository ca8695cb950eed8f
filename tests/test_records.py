"""Tests for the persisted data models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from transcript_ingest.models.records import AudioObjectRef, TranscriptRecord


class TestAudioObjectRef:
    def test_uri(self):
        ref = AudioObjectRef(bucket="b", key="audio/x.webm")
        assert ref.uri == "gs://b/audio/x.webm"
        assert str(ref) == ref.uri

    def test_is_immutable(self):
        ref = AudioObjectRef(bucket="b", key="k")
        with pytest.raises(ValidationError):
            ref.key = "other"


def test_transcript_record_document():
    timestamp = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    record = TranscriptRecord(
        id="abc",
        transcription="hola",
        language="es",
        audio_ref=AudioObjectRef(bucket="b", key="audio/x.webm"),
        timestamp=timestamp,
    )

    assert record.to_document() == {
        "transcription": "hola",
        "language": "es",
        "fileURL": "gs://b/audio/x.webm",
        "timestamp": "2024-05-01T12:30:00+00:00",
    }
