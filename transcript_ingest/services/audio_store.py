"""
Durable Audio Store
Keeps the (possibly transcoded) upload in Firebase Storage.
"""

import asyncio
from pathlib import Path
from typing import Union

from google.cloud.storage import Bucket

from transcript_ingest.core.exceptions import UploadError
from transcript_ingest.core.logging import get_logger
from transcript_ingest.models.records import AudioObjectRef
from transcript_ingest.services.audio_processor import AudioProcessor

logger = get_logger(__name__)


class AudioStore:
    """Uploads audio files to a storage bucket under a deterministic key."""

    def __init__(self, bucket: Bucket, key_prefix: str = "audio/"):
        self.bucket = bucket
        self.key_prefix = key_prefix

    def key_for(self, path: Union[str, Path]) -> str:
        return f"{self.key_prefix}{Path(path).name}"

    async def upload(self, path: Union[str, Path]) -> AudioObjectRef:
        destination = self.key_for(path)
        content_type = AudioProcessor.content_type_for(Path(path).suffix)
        try:
            blob = self.bucket.blob(destination)
            # google-cloud-storage is blocking; keep the event loop free
            await asyncio.to_thread(blob.upload_from_filename, str(path), content_type=content_type)
        except Exception as e:
            logger.error(f"Storage upload failed for {destination}: {e}", exc_info=True)
            raise UploadError(destination, e) from e

        ref = AudioObjectRef(scheme="gs", bucket=self.bucket.name, key=destination)
        logger.info(f"File uploaded to Firebase Storage at {ref.uri}")
        return ref
