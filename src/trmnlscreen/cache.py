"""On-disk cache of the currently displayed screen image."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Final, Protocol

from trmnlscreen.api.errors import DownloadError
from trmnlscreen.api.models import ScreenDescriptor
from trmnlscreen.constants import DEFAULT_USER_AGENT

logger: Final = logging.getLogger(__name__)


class ImageDownloader(Protocol):
    """The part of FetchClient the cache needs."""

    def download_image(self, url: str, destination: Path, user_agent: str) -> Path: ...


class ImageCache:
    """Decides whether a screen image must be downloaded and evicts old ones.

    The cache is keyed on the descriptor's filename: the TRMNL server
    changes it whenever the rendered screen changes. At most one image owned
    by the cache exists on disk once a resolve has settled. A new image is
    always downloaded before the previous one is removed, so a failed or
    interrupted download leaves the old image displayable.
    """

    def __init__(
        self,
        downloader: ImageDownloader,
        image_dir: Path,
        on_download: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            downloader: Client performing the actual download
            image_dir: Directory holding the cached image
            on_download: Called with the filename before a download starts
        """
        self.downloader = downloader
        self.image_dir = image_dir
        self.on_download = on_download
        self.last_image_path: Path | None = None
        self.last_image_filename: str | None = None

    def path_for(self, filename: str) -> Path:
        return self.image_dir / filename

    def resolve(self, descriptor: ScreenDescriptor, user_agent: str = DEFAULT_USER_AGENT) -> Path:
        """Return a local path holding the descriptor's image.

        Args:
            descriptor: Screen descriptor from the API
            user_agent: User-Agent for the image request

        Returns:
            Path to the image file

        Raises:
            DownloadError: If the image had to be downloaded and that failed
        """
        filename = descriptor.image_filename
        image_path = self.path_for(filename)

        if filename == self.last_image_filename:
            if image_path.is_file():
                logger.info("Image unchanged, using cached file: %s", image_path)
                return image_path
            logger.warning("Cached image %s is missing, downloading again", image_path)
        else:
            logger.info("Image changed, downloading: %s", filename)

        if self.on_download is not None:
            self.on_download(filename)

        try:
            self.image_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DownloadError(
                f"Cannot create image directory: {exc}", original_error=exc
            ) from exc
        self.downloader.download_image(descriptor.image_url, image_path, user_agent)

        previous = self.last_image_path
        if previous is not None and previous != image_path:
            self._remove(previous)

        self.last_image_path = image_path
        self.last_image_filename = filename
        return image_path

    def restore(self, filename: str | None) -> bool:
        """Adopt an image left on disk by a previous run.

        Args:
            filename: Cached filename recorded in the persisted state

        Returns:
            True if the file still exists and is now the cached image
        """
        if not filename:
            return False
        path = self.path_for(filename)
        if not path.is_file():
            logger.debug("Previously cached image %s is gone", path)
            return False
        self.last_image_path = path
        self.last_image_filename = filename
        return True

    def cleanup(self) -> None:
        """Delete the cached image and forget it."""
        if self.last_image_path is not None:
            self._remove(self.last_image_path)
        self.last_image_path = None
        self.last_image_filename = None

    @staticmethod
    def _remove(path: Path) -> None:
        logger.info("Removing old image file: %s", path)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.warning("Could not delete old image file (does not exist): %s", path)
        except OSError as exc:
            logger.warning("Could not delete old image file %s: %s", path, exc)
