"""
Preview Service - Single Responsibility: generate local image previews.

Previews are small JPEG thumbnails written to a private temp directory and
deleted again when their item leaves the queue.
"""
from pathlib import Path
from typing import Optional
import logging
import shutil
import tempfile

from PIL import Image, UnidentifiedImageError

from ..models import UploadConfig
from ..protocols import IPreviewGenerator

logger = logging.getLogger(__name__)


class PreviewService(IPreviewGenerator):
    """Service for generating and releasing thumbnails with Pillow."""

    def __init__(self, config: Optional[UploadConfig] = None, cache_dir: Optional[Path] = None):
        self._config = config or UploadConfig()
        self._cache_dir = cache_dir
        self._owns_dir = cache_dir is None
        self._counter = 0

    def _dir(self) -> Path:
        if self._cache_dir is None:
            self._cache_dir = Path(tempfile.mkdtemp(prefix="report-previews-"))
        self._cache_dir.mkdir(parents=True, exist_ok=True)
        return self._cache_dir

    def create(self, path: Path) -> Optional[Path]:
        """
        Create a thumbnail for an image.

        Args:
            path: Source image

        Returns:
            Path of the thumbnail, or None if the image cannot be read
        """
        self._counter += 1
        target = self._dir() / f"{self._counter:05d}-{Path(path).stem}.jpg"
        size = self._config.preview_size
        try:
            with Image.open(path) as img:
                img.thumbnail((size, size), Image.Resampling.BICUBIC)
                img.convert("RGB").save(target, "JPEG", quality=85)
        except (OSError, UnidentifiedImageError) as e:
            logger.debug(f"Could not create preview for {Path(path).name}: {e}")
            return None
        return target

    def release(self, preview: Optional[Path]) -> None:
        if preview is None:
            return
        try:
            Path(preview).unlink(missing_ok=True)
        except OSError as e:
            logger.debug(f"Could not remove preview {preview}: {e}")

    def close(self) -> None:
        """Remove the temp directory if this service created it."""
        if self._owns_dir and self._cache_dir is not None:
            shutil.rmtree(self._cache_dir, ignore_errors=True)
            self._cache_dir = None
