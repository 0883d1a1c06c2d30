"""
Listing Image Service - Local Storage Service
Flat directory of listing images on local disk
"""
import logging
import os
from pathlib import Path
from typing import Optional

from app.config import get_settings

logger = logging.getLogger(__name__)


class ListingImageStorage:
    """Local file storage for listing images."""

    def __init__(self, listings_path: Optional[Path] = None, public_url_prefix: Optional[str] = None):
        """Initialize the storage rooted at the listings directory."""
        settings = get_settings()
        self.listings_path = Path(listings_path) if listings_path else settings.listings_path
        self.public_url_prefix = (public_url_prefix or settings.public_url_prefix).rstrip("/")

    def ensure_directory(self) -> Path:
        """Create the listings directory if it does not exist."""
        if not self.listings_path.exists():
            self.listings_path.mkdir(parents=True, exist_ok=True, mode=0o755)
            logger.info(f"Created listings directory: {self.listings_path}")
        return self.listings_path

    def get_path(self, filename: str) -> Path:
        """
        Get the actual file path for an image (for serving).
        """
        return self.listings_path / filename

    def public_url(self, filename: str) -> str:
        """Public path of an image, suitable for a listing record."""
        return f"{self.public_url_prefix}/{filename}"

    def write(self, filename: str, data: bytes) -> Path:
        """
        Write image bytes under the given name, replacing any existing file.
        """
        path = self.get_path(filename)
        with open(path, "wb") as f:
            f.write(data)
        return path

    def exists(self, filename: str) -> bool:
        """
        Check if an image exists as a regular file.
        """
        return self.get_path(filename).is_file()

    def delete(self, filename: str) -> bool:
        """
        Delete an image from local storage.
        """
        path = self.get_path(filename)
        if path.exists():
            os.remove(path)
            return True
        return False
