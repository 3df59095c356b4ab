"""Display rendering for the e-ink screen."""

from trmnlscreen.display.file import FileDisplay
from trmnlscreen.display.protocols import Display, MockDisplay, MockRenderer, Renderer
from trmnlscreen.display.render import ImageRenderer

__all__ = [
    "Display",
    "FileDisplay",
    "ImageRenderer",
    "MockDisplay",
    "MockRenderer",
    "Renderer",
]
