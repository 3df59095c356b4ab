"""Display driver that writes each frame to a PNG file.

Useful for framebuffer bridges and e-ink daemons that watch a file, and
for previewing on a desktop.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Final

from PIL import Image

from trmnlscreen.settings.application import RefreshType

logger: Final = logging.getLogger(__name__)


class FileDisplay:
    """Writes frames atomically to ``output_path``."""

    def __init__(self, output_path: Path, width: int, height: int) -> None:
        """Initialize the file display.

        Args:
            output_path: PNG file receiving each frame
            width: Screen width in pixels
            height: Screen height in pixels
        """
        self.output_path = output_path
        self.width = width
        self.height = height
        self.last_refresh_type: RefreshType | None = None

    def show_frame(self, frame: Image.Image, refresh_type: RefreshType = RefreshType.UI) -> None:
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.output_path.with_name(self.output_path.name + ".tmp")
        frame.save(tmp_path, format="PNG")
        os.replace(tmp_path, self.output_path)
        self.last_refresh_type = refresh_type
        logger.debug("Frame written to %s (%s refresh)", self.output_path, refresh_type.value)

    def get_dimensions(self) -> tuple[int, int]:
        return (self.width, self.height)

    def clear(self) -> None:
        self.show_frame(Image.new("L", (self.width, self.height), 255), RefreshType.FULL)
