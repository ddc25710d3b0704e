"""
Local-disk storage for images attached to incident reports.
"""

import logging
import uuid
from pathlib import Path
from typing import Optional, Union

from src.core.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads/"


class LocalImageStore:
    """
    Stores uploaded images under a directory.

    References returned by ``store`` are opaque URL paths of the form
    ``/uploads/<uuid><ext>``.
    """

    def __init__(self, upload_dir: Union[str, Path] = "uploads"):
        """
        Initialize image store.

        Args:
            upload_dir: Directory for stored files (created if missing)
        """
        self.upload_dir = Path(upload_dir).resolve()
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def store(self, data: bytes, filename: Optional[str] = None) -> str:
        """
        Save image bytes.

        Args:
            data: File content
            filename: Original filename, used only for its extension

        Returns:
            Reference string for the stored image
        """
        if not data:
            raise InvalidInputError("File is empty")

        extension = Path(filename).suffix.lower() if filename else ""
        name = f"{uuid.uuid4()}{extension}"
        (self.upload_dir / name).write_bytes(data)

        logger.info(f"Stored image {name} ({len(data)} bytes)")
        return URL_PREFIX + name

    def resolve(self, reference: str) -> Optional[Path]:
        """Map a reference back to a path inside the upload directory."""
        if not reference or not reference.startswith(URL_PREFIX):
            return None
        path = (self.upload_dir / reference[len(URL_PREFIX):]).resolve()
        if path.parent != self.upload_dir:
            return None
        return path

    def delete(self, reference: str) -> bool:
        """
        Remove a stored image.

        Returns:
            True if a file was deleted
        """
        path = self.resolve(reference)
        if path is None or not path.exists():
            return False
        try:
            path.unlink()
        except OSError as e:
            logger.error(f"Failed to delete image {reference}: {e}")
            return False
        return True
