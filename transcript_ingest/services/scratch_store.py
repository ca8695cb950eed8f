"""
Scratch Store
Per-request temporary files on local disk.
"""

import os
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Union

from transcript_ingest.core.exceptions import StorageWriteError
from transcript_ingest.core.logging import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


class ScratchStore:
    """Creates uniquely named scratch files and removes them again."""

    def __init__(self, scratch_dir: PathLike, default_extension: str = "webm"):
        self.scratch_dir = Path(scratch_dir).expanduser()
        self.default_extension = default_extension.lstrip(".")

    def reserve(self, extension: Optional[str] = None) -> Path:
        """
        Returns a fresh path under the scratch directory without creating it.
        Names start with the arrival time in nanoseconds; the random suffix
        keeps concurrent requests from ever sharing a path.
        """
        ext = (extension or self.default_extension).lstrip(".")
        name = f"temp_{time.time_ns()}_{uuid.uuid4().hex[:8]}.{ext}"
        return self.scratch_dir / name

    def write(self, data: bytes, extension: Optional[str] = None) -> Path:
        """Writes the payload to a new scratch file and returns its path."""
        path = self.reserve(extension)
        try:
            self.scratch_dir.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            logger.error(f"Failed to write scratch file {path}: {e}", exc_info=True)
            # A partially written file must not outlive the failure
            self.remove(path)
            raise StorageWriteError(str(path), e) from e

        logger.info(f"File saved temporarily at {path}", size_bytes=len(data))
        return path

    def remove(self, path: Optional[PathLike]) -> None:
        """Deletes a scratch file. Missing files and OS errors are only logged."""
        if not path:
            return
        try:
            os.unlink(path)
            logger.info(f"Temporary file {path} deleted.")
        except FileNotFoundError:
            logger.info(f"Temporary file {path} already absent.")
        except OSError as e:
            logger.error(f"Error cleaning up file {path}: {e}")

    @contextmanager
    def scope(self) -> Iterator["ScratchScope"]:
        """Yields a scope whose files are removed on every exit path."""
        scratch = ScratchScope(self)
        try:
            yield scratch
        finally:
            scratch.release()


class ScratchScope:
    """Tracks the scratch paths of a single request."""

    def __init__(self, store: ScratchStore):
        self._store = store
        self.paths: List[Path] = []

    def write(self, data: bytes, extension: Optional[str] = None) -> Path:
        path = self._store.write(data, extension)
        self.paths.append(path)
        return path

    def sibling(self, path: Path, extension: str) -> Path:
        """Reserves `<stem>.<extension>` next to an existing scratch file."""
        extension = extension.lstrip(".")
        sibling = path.with_name(f"{path.stem}.{extension}")
        if sibling == path:
            sibling = path.with_name(f"{path.stem}_converted.{extension}")
        self.paths.append(sibling)
        return sibling

    def release(self) -> None:
        # Newest first: converted output before the original upload
        while self.paths:
            self._store.remove(self.paths.pop())
