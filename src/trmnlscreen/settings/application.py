"""Internal application settings: display modes and file locations."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from trmnlscreen.constants import API_KEY_FILE, STATE_FILE


class RefreshType(str, Enum):
    """E-ink refresh modes handed through to the renderer.

    E-ink panels trade speed against ghosting:
    - UI: balanced speed and quality (default)
    - FULL: slowest, clears ghosting
    - FLASHUI: UI refresh with a flash for better contrast
    - PARTIAL: fastest, may leave ghosting
    """

    UI = "ui"
    FULL = "full"
    FLASHUI = "flashui"
    PARTIAL = "partial"


@dataclass
class AppPaths:
    """Application file and directory paths.

    Centralizes where the persisted state, the optional API key file, the
    downloaded screen images and the rendered frame live.
    """

    state_file: Path
    api_key_file: Path
    image_dir: Path
    frame_file: Path

    @classmethod
    def from_base_dir(cls, base_dir: Path) -> AppPaths:
        """Create all paths below a single base directory."""
        return cls(
            state_file=base_dir / STATE_FILE,
            api_key_file=base_dir / API_KEY_FILE,
            image_dir=base_dir / "images",
            frame_file=base_dir / "frame.png",
        )

    @classmethod
    def default(cls) -> AppPaths:
        """Create paths following the XDG base directory layout."""
        config_home = Path(os.environ.get("XDG_CONFIG_HOME", "~/.config")).expanduser()
        data_home = Path(os.environ.get("XDG_DATA_HOME", "~/.local/share")).expanduser()
        config_dir = config_home / "trmnl-screen"
        data_dir = data_home / "trmnl-screen"
        return cls(
            state_file=config_dir / STATE_FILE,
            api_key_file=config_dir / API_KEY_FILE,
            image_dir=data_dir / "images",
            frame_file=data_dir / "frame.png",
        )

    @classmethod
    def for_state_file(cls, state_file: Path) -> AppPaths:
        """Keep the API key file next to an explicitly chosen state file."""
        paths = cls.default()
        paths.state_file = state_file
        paths.api_key_file = state_file.parent / API_KEY_FILE
        return paths
