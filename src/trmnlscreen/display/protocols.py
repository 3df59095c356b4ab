# src/trmnlscreen/display/protocols.py
from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from PIL import Image

from trmnlscreen.settings.application import RefreshType


@runtime_checkable
class Display(Protocol):
    """Protocol defining the interface for display devices.

    This protocol abstracts the hardware-specific details of the panel so the
    renderer can push frames to an e-ink controller, a framebuffer bridge or
    a file without knowing which.
    """

    def show_frame(self, frame: Image.Image, refresh_type: RefreshType = RefreshType.UI) -> None:
        """Push a full-screen frame to the panel.

        Args:
            frame: Greyscale image matching ``get_dimensions()``
            refresh_type: E-ink refresh mode to use
        """
        ...

    def get_dimensions(self) -> tuple[int, int]:
        """Return the width and height of the display in pixels."""
        ...

    def clear(self) -> None:
        """Clear the display to white."""
        ...


@runtime_checkable
class Renderer(Protocol):
    """Protocol for whatever turns a downloaded image into pixels on screen."""

    def display_image(self, image_path: Path, refresh_type: RefreshType = RefreshType.UI) -> bool:
        """Render an image full-screen.

        Returns:
            True if the image was shown, False if it could not be rendered
        """
        ...

    def close(self) -> None:
        """Take the current image off screen."""
        ...


class MockDisplay:
    """Mock implementation of Display for testing."""

    def __init__(self, width: int = 800, height: int = 600) -> None:
        self.width = width
        self.height = height
        self.frames: list[dict[str, object]] = []
        self.clear_calls: int = 0

    def show_frame(self, frame: Image.Image, refresh_type: RefreshType = RefreshType.UI) -> None:
        """Record the frame without requiring hardware."""
        self.frames.append({"size": frame.size, "mode": frame.mode, "refresh_type": refresh_type})

    def get_dimensions(self) -> tuple[int, int]:
        return (self.width, self.height)

    def clear(self) -> None:
        self.clear_calls += 1


class ErrorSimulatingDisplay(MockDisplay):
    """Display mock that can simulate hardware errors."""

    def __init__(self, fail_on_methods: list[str] | None = None) -> None:
        """Initialize with optional methods that should fail.

        Args:
            fail_on_methods: List of method names that should raise exceptions
        """
        super().__init__()
        self.fail_on_methods = fail_on_methods or []

    def show_frame(self, frame: Image.Image, refresh_type: RefreshType = RefreshType.UI) -> None:
        if "show_frame" in self.fail_on_methods:
            raise RuntimeError("Simulated display hardware failure")
        super().show_frame(frame, refresh_type)

    def clear(self) -> None:
        if "clear" in self.fail_on_methods:
            raise RuntimeError("Simulated display hardware failure")
        super().clear()


class MockRenderer:
    """Mock implementation of Renderer for testing."""

    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.render_calls: list[dict[str, object]] = []
        self.close_calls: int = 0

    def display_image(self, image_path: Path, refresh_type: RefreshType = RefreshType.UI) -> bool:
        """Record the call and report the configured outcome."""
        self.render_calls.append({"image_path": image_path, "refresh_type": refresh_type})
        return self.succeed

    def close(self) -> None:
        self.close_calls += 1
