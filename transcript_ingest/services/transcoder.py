"""
Transcoder
Normalizes uploads with the ffmpeg CLI before upload and transcription.
"""

import asyncio
from pathlib import Path
from typing import List, Optional, Protocol, Union

from transcript_ingest.core.exceptions import ConversionError
from transcript_ingest.core.logging import get_logger

logger = get_logger(__name__)


class Transcoder(Protocol):
    async def convert(
        self,
        input_path: Path,
        target_format: str,
        output_path: Optional[Path] = None,
    ) -> Path:
        ...


class FFmpegTranscoder:
    """Wraps the ffmpeg CLI. Default output: 16 kHz mono in the target container."""

    def __init__(
        self,
        ffmpeg_bin: str = "ffmpeg",
        sample_rate: int = 16000,
        channels: int = 1,
        timeout: float = 120.0,
        extra_args: Optional[List[str]] = None,
    ):
        self.ffmpeg_bin = ffmpeg_bin
        self.sample_rate = sample_rate
        self.channels = channels
        self.timeout = timeout
        self.extra_args = [str(a) for a in extra_args or []]

    def build_command(self, src: Path, dst: Path) -> List[str]:
        return [
            self.ffmpeg_bin,
            "-y",
            "-i",
            str(src),
            "-ac",
            str(self.channels),
            "-ar",
            str(self.sample_rate),
            *self.extra_args,
            str(dst),
        ]

    async def convert(
        self,
        input_path: Union[str, Path],
        target_format: str,
        output_path: Optional[Union[str, Path]] = None,
    ) -> Path:
        """
        Converts `input_path` into `target_format` and returns the new file.
        Suspends the caller until ffmpeg exits; cannot be cancelled midway.
        """
        src = Path(input_path)
        target_format = target_format.lstrip(".")
        dst = Path(output_path) if output_path is not None else src.with_name(f"{src.stem}.{target_format}")

        if not src.exists():
            raise ConversionError(str(src), "input file does not exist")

        cmd = self.build_command(src, dst)
        logger.info(f"Converting {src.name} to {target_format} with ffmpeg")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"Could not start ffmpeg ({self.ffmpeg_bin}): {e}")
            raise ConversionError(str(src), f"could not start {self.ffmpeg_bin}", e) from e

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            await self._terminate(proc)
            logger.error(f"ffmpeg conversion timed out after {self.timeout}s", input=str(src))
            raise ConversionError(str(src), f"timed out after {self.timeout} seconds", e) from e
        except asyncio.CancelledError:
            # The caller is gone; ffmpeg must not write into a released scratch scope
            await self._terminate(proc)
            logger.warning("ffmpeg conversion cancelled", input=str(src))
            raise

        if proc.returncode != 0:
            lines = stderr.decode(errors="ignore").strip().splitlines()
            reason = lines[-1] if lines else "unknown error"
            logger.error(
                "ffmpeg conversion failed",
                input=str(src),
                returncode=proc.returncode,
                error=reason,
            )
            raise ConversionError(str(src), f"ffmpeg exited with {proc.returncode}: {reason}")

        if not dst.exists():
            raise ConversionError(str(src), "output file was not created")

        logger.info(f"Audio converted to {dst}", size_bytes=dst.stat().st_size)
        return dst

    @staticmethod
    async def _terminate(proc: asyncio.subprocess.Process) -> None:
        """Kills and reaps the child if it is still running."""
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        await proc.wait()
