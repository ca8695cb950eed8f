"""
Transcript Ingest - Audio Transcription Ingest Microservice

A FastAPI-based service that accepts short audio uploads, optionally
normalizes them with ffmpeg, transcribes them with OpenAI Whisper and
persists the transcript in Firestore next to a Firebase Storage copy
of the audio.
"""

__version__ = "1.0.0"
