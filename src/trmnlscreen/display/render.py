"""Full-screen rendering of downloaded screen images."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Final

from PIL import Image, ImageOps

from trmnlscreen.display.protocols import Display
from trmnlscreen.settings.application import RefreshType

logger: Final = logging.getLogger(__name__)


def calculate_dimensions(
    original_width: int, original_height: int, max_width: int, max_height: int
) -> tuple[int, int]:
    """Calculate dimensions while preserving aspect ratio.

    Args:
        original_width: Original image width
        original_height: Original image height
        max_width: Maximum allowed width
        max_height: Maximum allowed height

    Returns:
        Tuple of (width, height) that fits within max dimensions
    """
    ratio = min(max_width / original_width, max_height / original_height)
    return (max(1, int(original_width * ratio)), max(1, int(original_height * ratio)))


class ImageRenderer:
    """Decodes an image with Pillow and pushes it full-screen to a Display.

    The previously shown image stays on screen until the replacement has been
    decoded successfully, so a broken download never blanks the panel.
    """

    def __init__(self, display: Display) -> None:
        self.display = display
        self.current_image: Path | None = None

    def build_frame(self, image_path: Path) -> Image.Image:
        """Load ``image_path`` and fit it, centred on white, to the screen.

        Raises:
            OSError: If the file cannot be read or decoded
            SyntaxError: If Pillow finds a broken PNG chunk while loading
        """
        width, height = self.display.get_dimensions()
        with Image.open(image_path) as img:
            img.load()
            grey = ImageOps.exif_transpose(img).convert("L")

        if grey.size == (width, height):
            return grey

        size = calculate_dimensions(grey.width, grey.height, width, height)
        resized = grey.resize(size, Image.Resampling.LANCZOS)
        frame = Image.new("L", (width, height), 255)
        frame.paste(resized, ((width - size[0]) // 2, (height - size[1]) // 2))
        return frame

    def display_image(self, image_path: Path, refresh_type: RefreshType = RefreshType.UI) -> bool:
        """Render an image full-screen.

        Args:
            image_path: Image to show
            refresh_type: E-ink refresh mode handed to the display

        Returns:
            True if shown, False if decoding or the display failed
        """
        logger.info("Rendering image %s", image_path)
        try:
            frame = self.build_frame(image_path)
        except Exception as exc:
            logger.error("Failed to render image %s: %s", image_path, exc)
            return False

        logger.info("Applying refresh type: %s", refresh_type.value)
        try:
            self.display.show_frame(frame, refresh_type)
        except Exception as exc:
            logger.error("Display rejected frame: %s", exc)
            return False

        self.current_image = image_path
        logger.info("Image displayed")
        return True

    def close(self) -> None:
        """Take the current image off the screen."""
        if self.current_image is None:
            return
        try:
            self.display.clear()
        except (OSError, RuntimeError) as exc:
            logger.error("Error clearing display: %s", exc)
        self.current_image = None
