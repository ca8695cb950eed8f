"""
Transcript Repository
Stores transcripts as Firestore documents.
"""

import asyncio
from datetime import datetime, timezone

from google.cloud.firestore import Client as FirestoreClient

from transcript_ingest.core.exceptions import PersistenceError
from transcript_ingest.core.logging import get_logger
from transcript_ingest.models.records import AudioObjectRef, TranscriptRecord

logger = get_logger(__name__)


class TranscriptRepository:

    def __init__(self, db: FirestoreClient, collection: str = "transcriptions"):
        self.db = db
        self.collection = collection

    async def save(self, transcript: str, language: str, audio_ref: AudioObjectRef) -> str:
        """Writes a new transcript document and returns its generated id."""
        try:
            doc_ref = self.db.collection(self.collection).document()
            record = TranscriptRecord(
                id=doc_ref.id,
                transcription=transcript,
                language=language,
                audio_ref=audio_ref,
                timestamp=datetime.now(timezone.utc),
            )
            await asyncio.to_thread(doc_ref.set, record.to_document())
        except Exception as e:
            logger.error(f"Firestore write to '{self.collection}' failed: {e}", exc_info=True)
            raise PersistenceError(self.collection, e) from e

        logger.info(f"Transcription saved to Firestore as {self.collection}/{record.id}")
        return record.id
