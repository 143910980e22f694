"""Background image loading for session items."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence, Tuple

from PyQt6.QtCore import QThread, pyqtSignal
from PyQt6.QtGui import QImage, QImageReader

from ..core.errors import ImageLoadError

logger = logging.getLogger(__name__)

# Supported image extensions
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".gif", ".webp"}


def load_image(source: str) -> QImage:
    """
    Read and decode an image file.

    Args:
        source: Path to the image

    Returns:
        The decoded image

    Raises:
        ImageLoadError: If the file is missing or cannot be decoded
    """
    path = Path(source)
    if not path.is_file():
        raise ImageLoadError(source, "file not found")

    reader = QImageReader(str(path))
    reader.setAutoTransform(True)
    image = reader.read()
    if image.isNull():
        raise ImageLoadError(source, reader.errorString())
    return image


def is_image_file(source: str) -> bool:
    """Check if a path has a supported image extension."""
    return Path(source).suffix.lower() in IMAGE_EXTENSIONS


def get_image_files(directory: Path) -> List[str]:
    """
    Get image file paths in a directory, sorted by name.

    Args:
        directory: Directory to scan

    Returns:
        List of full paths as strings
    """
    directory = Path(directory)
    if not directory.is_dir():
        return []

    return sorted(
        str(f) for f in directory.iterdir()
        if f.is_file() and f.suffix.lower() in IMAGE_EXTENSIONS
    )


class ImageLoader(QThread):
    """
    Background thread decoding item images.

    Emits ``image_loaded`` or ``image_failed`` for every requested item so
    the session can mark it ready or unusable.
    """

    # Signal emitted when an image is decoded (item index, image)
    image_loaded = pyqtSignal(int, QImage)

    # Signal emitted when an image cannot be used (item index, reason)
    image_failed = pyqtSignal(int, str)

    # Signal for progress updates (current, total)
    progress = pyqtSignal(int, int)

    def __init__(self, requests: Sequence[Tuple[int, str]]) -> None:
        """
        Initialize the image loader.

        Args:
            requests: (item index, image source) pairs, loaded in order
        """
        super().__init__()
        self.requests = list(requests)
        self._is_running = True

    def run(self) -> None:
        """Load images in the background thread."""
        total = len(self.requests)

        for done, (index, source) in enumerate(self.requests, start=1):
            if not self._is_running:
                logger.info("Image loading cancelled")
                break

            try:
                image = load_image(source)
            except ImageLoadError as e:
                logger.error(str(e))
                self.image_failed.emit(index, e.reason)
            else:
                self.image_loaded.emit(index, image)

            self.progress.emit(done, total)

        logger.info(f"Image loading complete: {total} requested")

    def stop(self) -> None:
        """Request the loader to stop."""
        self._is_running = False
