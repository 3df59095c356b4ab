"""Persistence of user settings and scheduling intent."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Final

import yaml
from pydantic import BaseModel, Field, ValidationError

from trmnlscreen.settings.user import UserSettings, interpolate_env

logger: Final = logging.getLogger(__name__)

STATE_ENV_VAR: Final = "TRMNL_SCREEN_STATE"


class PersistedState(BaseModel):
    """Everything that survives a restart."""

    settings: UserSettings = Field(default_factory=UserSettings)
    auto_refresh_enabled: bool = False
    last_image_filename: str | None = None


class SettingsStore:
    """Reads and flushes the persisted state as YAML.

    The state is loaded once at startup and flushed whenever the user changes
    something, on suspend and on shutdown.
    """

    def __init__(self, path: Path) -> None:
        """Initialize the store.

        Args:
            path: YAML file holding the persisted state
        """
        self.path = path

    @classmethod
    def resolve(cls, path: Path | None = None, default: Path | None = None) -> SettingsStore:
        """Pick the state file: explicit path → environment variable → default.

        Args:
            path: Explicit state file (e.g. from the CLI)
            default: Fallback location when nothing else is configured

        Returns:
            SettingsStore for the chosen file
        """
        if path is None:
            env_path = os.environ.get(STATE_ENV_VAR)
            if env_path:
                path = Path(env_path).expanduser()
            elif default is not None:
                path = default
            else:
                raise FileNotFoundError(
                    f"No state file given. Pass --state or set {STATE_ENV_VAR}."
                )
        return cls(path)

    def load(self) -> PersistedState:
        """Load the persisted state.

        A missing file yields default settings with auto-refresh disabled.

        Returns:
            Validated PersistedState

        Raises:
            RuntimeError: If the file cannot be parsed or is invalid
        """
        if not self.path.exists():
            logger.info("No state file at %s, using defaults", self.path)
            return PersistedState()

        try:
            data = yaml.safe_load(interpolate_env(self.path.read_text(encoding="utf-8")))
        except (OSError, yaml.YAMLError) as exc:
            raise RuntimeError(f"Unable to read state YAML: {exc}") from exc

        try:
            return PersistedState.model_validate(data or {})
        except ValidationError as err:
            raise RuntimeError(f"Invalid configuration:\n{err}") from err

    def flush(self, state: PersistedState) -> None:
        """Write the state to disk, replacing the previous file atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(
            yaml.safe_dump(state.model_dump(mode="json"), sort_keys=False),
            encoding="utf-8",
        )
        os.replace(tmp_path, self.path)
        logger.debug("State flushed to %s", self.path)


def load_api_key_file(path: Path) -> str | None:
    """Read an API key dropped next to the state file.

    Args:
        path: Location of apikey.txt

    Returns:
        The stripped key, or None if the file is missing or blank
    """
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.warning("Could not read API key file %s: %s", path, exc)
        return None

    api_key = content.strip()
    if not api_key:
        return None
    logger.info("API key loaded from %s", path)
    return api_key
