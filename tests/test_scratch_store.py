"""Tests for the scratch file store."""

import pytest

from transcript_ingest.core.exceptions import StorageWriteError
from transcript_ingest.services.scratch_store import ScratchStore


class TestWrite:
    def test_creates_directory_lazily(self, scratch_dir):
        store = ScratchStore(scratch_dir)
        assert not scratch_dir.exists()

        path = store.write(b"audio")

        assert scratch_dir.is_dir()
        assert path.parent == scratch_dir
        assert path.read_bytes() == b"audio"

    def test_uses_default_extension(self, scratch_dir):
        path = ScratchStore(scratch_dir, default_extension="webm").write(b"x")
        assert path.suffix == ".webm"
        assert path.name.startswith("temp_")

    def test_explicit_extension_wins(self, scratch_dir):
        path = ScratchStore(scratch_dir).write(b"x", extension=".ogg")
        assert path.suffix == ".ogg"

    def test_names_are_unique(self, scratch_dir):
        store = ScratchStore(scratch_dir)
        paths = {store.write(b"x") for _ in range(50)}
        assert len(paths) == 50

    def test_write_failure_raises_storage_write_error(self, tmp_path):
        # A regular file where the directory should be makes mkdir fail
        blocker = tmp_path / "uploads"
        blocker.write_bytes(b"not a directory")
        store = ScratchStore(blocker)

        with pytest.raises(StorageWriteError) as exc_info:
            store.write(b"audio")

        assert exc_info.value.stage == "staging"
        assert isinstance(exc_info.value.cause, OSError)


class TestRemove:
    def test_removes_file(self, scratch_dir):
        store = ScratchStore(scratch_dir)
        path = store.write(b"x")

        store.remove(path)

        assert not path.exists()

    def test_missing_file_is_not_an_error(self, scratch_dir):
        store = ScratchStore(scratch_dir)
        path = store.write(b"x")
        store.remove(path)

        store.remove(path)
        store.remove(scratch_dir / "never-created.webm")

    def test_none_is_ignored(self, scratch_dir):
        ScratchStore(scratch_dir).remove(None)

    def test_os_errors_are_swallowed(self, scratch_dir):
        store = ScratchStore(scratch_dir)
        # Unlinking a directory raises IsADirectoryError/PermissionError
        directory = scratch_dir / "nested"
        directory.mkdir(parents=True)

        store.remove(directory)

        assert directory.exists()


class TestScope:
    def test_removes_everything_on_success(self, scratch_dir, leftovers):
        store = ScratchStore(scratch_dir)

        with store.scope() as scratch:
            original = scratch.write(b"audio")
            converted = scratch.sibling(original, "wav")
            converted.write_bytes(b"converted")
            assert leftovers() == sorted([original.name, converted.name])

        assert leftovers() == []

    def test_removes_everything_on_error(self, scratch_dir, leftovers):
        store = ScratchStore(scratch_dir)

        with pytest.raises(RuntimeError):
            with store.scope() as scratch:
                scratch.write(b"audio")
                raise RuntimeError("stage failed")

        assert leftovers() == []

    def test_reserved_but_unused_paths_are_fine(self, scratch_dir, leftovers):
        store = ScratchStore(scratch_dir)

        with store.scope() as scratch:
            original = scratch.write(b"audio")
            reserved = scratch.sibling(original, "wav")
            assert not reserved.exists()

        assert leftovers() == []

    def test_cleanup_error_does_not_mask_primary_error(self, scratch_dir, monkeypatch):
        store = ScratchStore(scratch_dir)

        def broken_unlink(path):
            raise PermissionError("read-only filesystem")

        with pytest.raises(ValueError, match="primary"):
            with store.scope() as scratch:
                scratch.write(b"audio")
                monkeypatch.setattr("transcript_ingest.services.scratch_store.os.unlink", broken_unlink)
                raise ValueError("primary")

    def test_sibling_never_collides_with_source(self, scratch_dir):
        store = ScratchStore(scratch_dir)

        with store.scope() as scratch:
            original = scratch.write(b"audio", "wav")
            sibling = scratch.sibling(original, "wav")

        assert sibling != original
        assert sibling.suffix == ".wav"
        assert sibling.stem.startswith(original.stem)
