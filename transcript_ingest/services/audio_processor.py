"""
Audio payload inspection
"""

from typing import Any, Dict, Optional, Tuple

from mutagen import File as MutagenFile

from transcript_ingest.core.logging import get_logger

logger = get_logger(__name__)

# Leading bytes of the container formats we expect from browsers and recorders
SIGNATURES = {
    b'\x1a\x45\xdf\xa3': "audio/webm",  # EBML (WebM/Matroska)
    b'OggS': "audio/ogg",
    b'RIFF': "audio/wav",
    b'fLaC': "audio/flac",
    b'ID3': "audio/mpeg",  # MP3 with ID3 tag
    b'\xff\xfb': "audio/mpeg",  # MP3 frame
    b'\xff\xf3': "audio/mpeg",
    b'\xff\xf2': "audio/mpeg",
}

EXTENSIONS = {
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/wav": "wav",
    "audio/flac": "flac",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
}


class AudioProcessor:
    """Detects payload formats and reads audio metadata"""

    def __init__(self, default_extension: str = "webm"):
        self.default_extension = default_extension.lstrip(".")

    @staticmethod
    def detect_content_type(audio_data: bytes) -> Optional[str]:
        """Detects the content type from the file signature, None if unknown."""
        # MP4/M4A carries 'ftyp' after the box size
        if b'ftyp' in audio_data[4:12]:
            return "audio/mp4"

        for signature, content_type in SIGNATURES.items():
            if audio_data.startswith(signature):
                return content_type
        return None

    def infer_extension(self, audio_data: bytes) -> str:
        """Maps the detected content type to a file extension."""
        content_type = self.detect_content_type(audio_data)
        if content_type is None:
            logger.warning(
                f"Could not detect audio type. Falling back to '.{self.default_extension}'."
            )
            return self.default_extension
        logger.debug(f"Detected content type: {content_type}")
        return EXTENSIONS[content_type]

    @staticmethod
    def content_type_for(extension: str) -> str:
        """Reverse lookup used when uploading to blob storage."""
        extension = extension.lstrip(".").lower()
        for content_type, ext in EXTENSIONS.items():
            if ext == extension:
                return content_type
        return "application/octet-stream"

    def extract_metadata(self, file_path: str) -> Tuple[Optional[float], Dict[str, Any]]:
        """Extracts duration and stream info using mutagen. Never raises."""
        try:
            audio = MutagenFile(file_path)
            if audio is None:
                return None, {}

            duration = getattr(audio.info, 'length', None)
            metadata = {
                "duration_seconds": duration,
                "bitrate": getattr(audio.info, 'bitrate', None),
                "sample_rate": getattr(audio.info, 'sample_rate', None),
                "channels": getattr(audio.info, 'channels', None),
            }
            return (float(duration) if duration is not None else None), metadata
        except Exception as e:
            logger.warning(f"Could not extract metadata using mutagen: {e}")
            return None, {}
