"""Tests for the Firebase Storage audio store."""

import asyncio

import pytest

from conftest import FakeBucket
from transcript_ingest.core.exceptions import UploadError
from transcript_ingest.services.audio_store import AudioStore


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "temp_123_abcd1234.webm"
    path.write_bytes(b"\x1a\x45\xdf\xa3 audio")
    return path


def test_upload_returns_storage_reference(audio_file):
    bucket = FakeBucket("test-bucket")
    store = AudioStore(bucket, "audio/")

    ref = asyncio.run(store.upload(audio_file))

    assert ref.uri == "gs://test-bucket/audio/temp_123_abcd1234.webm"
    assert ref.bucket == "test-bucket"
    assert bucket.objects[ref.key] == audio_file.read_bytes()


def test_upload_sets_content_type_from_extension(tmp_path):
    bucket = FakeBucket()
    wav = tmp_path / "temp_1.wav"
    wav.write_bytes(b"RIFF")

    ref = asyncio.run(AudioStore(bucket).upload(wav))

    assert bucket.content_types[ref.key] == "audio/wav"


def test_key_uses_prefix_and_basename():
    store = AudioStore(FakeBucket(), "recordings/")
    assert store.key_for("/tmp/uploads/temp_9.ogg") == "recordings/temp_9.ogg"


def test_bucket_failure_raises_upload_error(audio_file):
    error = ConnectionError("503 Service Unavailable")
    store = AudioStore(FakeBucket(error=error))

    with pytest.raises(UploadError) as exc_info:
        asyncio.run(store.upload(audio_file))

    assert exc_info.value.stage == "upload"
    assert exc_info.value.cause is error
