"""
Tests for report image storage
"""
import pytest

import sys
sys.path.insert(0, '.')

from src.core.exceptions import InvalidInputError
from src.media.image_store import LocalImageStore


class TestLocalImageStore:
    """Test suite for local image storage."""

    def setup_method(self):
        self.data = b"\x89PNG\r\n\x1a\nimage-bytes"

    def test_creates_upload_dir(self, tmp_path):
        store = LocalImageStore(tmp_path / "nested" / "uploads")
        assert store.upload_dir.is_dir()

    def test_store_and_resolve(self, tmp_path):
        store = LocalImageStore(tmp_path)

        reference = store.store(self.data, "Report.PNG")

        assert reference.startswith("/uploads/")
        assert reference.endswith(".png")
        assert store.resolve(reference).read_bytes() == self.data

    def test_names_are_unique(self, tmp_path):
        store = LocalImageStore(tmp_path)

        first = store.store(self.data, "a.jpg")
        second = store.store(self.data, "a.jpg")

        assert first != second

    def test_missing_filename_has_no_extension(self, tmp_path):
        store = LocalImageStore(tmp_path)

        reference = store.store(self.data)

        assert "." not in reference.rsplit("/", 1)[-1]

    def test_empty_file_rejected(self, tmp_path):
        store = LocalImageStore(tmp_path)

        with pytest.raises(InvalidInputError):
            store.store(b"", "empty.jpg")
        assert list(tmp_path.iterdir()) == []

    def test_delete(self, tmp_path):
        store = LocalImageStore(tmp_path)
        reference = store.store(self.data, "a.jpg")

        assert store.delete(reference) is True
        assert not store.resolve(reference).exists()
        assert store.delete(reference) is False

    @pytest.mark.parametrize("reference", [
        "",
        "photo.jpg",
        "/static/photo.jpg",
        "/uploads/../secret.txt",
        "/uploads/sub/photo.jpg",
    ])
    def test_rejects_foreign_references(self, tmp_path, reference):
        store = LocalImageStore(tmp_path / "uploads")

        assert store.resolve(reference) is None
        assert store.delete(reference) is False

    def test_delete_does_not_escape_upload_dir(self, tmp_path):
        outside = tmp_path / "secret.txt"
        outside.write_text("keep me")
        store = LocalImageStore(tmp_path / "uploads")

        assert store.delete("/uploads/../secret.txt") is False
        assert outside.exists()
