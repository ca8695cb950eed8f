"""
Process-wide clients for the external services.
Built once at startup and injected into the pipeline.
"""

import firebase_admin
import httpx
from firebase_admin import credentials, firestore, storage
from openai import AsyncOpenAI

from transcript_ingest.config import Settings
from transcript_ingest.core.exceptions import ConfigurationError
from transcript_ingest.core.logging import get_logger

logger = get_logger(__name__)

FIREBASE_APP_NAME = "transcript-ingest"


def build_openai_client(settings: Settings) -> AsyncOpenAI:
    """
    Creates the Whisper client. SDK-level retries are disabled; the
    STT service owns the retry policy.
    """
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        timeout=httpx.Timeout(settings.transcription_timeout, connect=5.0),
        max_retries=0,
    )


def init_firebase(settings: Settings) -> firebase_admin.App:
    """Initializes (or reuses) the Firebase app for Storage and Firestore."""
    try:
        return firebase_admin.get_app(FIREBASE_APP_NAME)
    except ValueError:
        pass

    try:
        cred = credentials.Certificate({
            "type": "service_account",
            "project_id": settings.firebase_project_id,
            "client_email": settings.firebase_client_email,
            "private_key": settings.firebase_private_key,
            "token_uri": "https://oauth2.googleapis.com/token",
        })
    except ValueError as e:
        raise ConfigurationError(f"Invalid Firebase service account credentials: {e}") from e

    app = firebase_admin.initialize_app(
        cred,
        {"storageBucket": settings.firebase_bucket_name, "projectId": settings.firebase_project_id},
        name=FIREBASE_APP_NAME,
    )
    logger.info(f"Firebase initialized for project {settings.firebase_project_id}")
    return app


def get_bucket(app: firebase_admin.App):
    return storage.bucket(app=app)


def get_firestore(app: firebase_admin.App):
    return firestore.client(app=app)
