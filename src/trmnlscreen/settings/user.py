"""User-configurable settings persisted in the state file."""

from __future__ import annotations

import os
import re
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from trmnlscreen.constants import (
    DEFAULT_BASE_URL,
    DEFAULT_DEVICE_ID_HEADER,
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_USER_AGENT,
)
from trmnlscreen.settings.application import RefreshType

# Load environment variables from .env file(s)
load_dotenv()


def interpolate_env(content: str) -> str:
    """Replace ``${NAME}`` placeholders with environment variable values."""
    return re.sub(r"\$\{(\w+)\}", lambda m: os.getenv(m.group(1), ""), content)


class UserSettings(BaseModel):
    """Settings for the remote display API and local behaviour.

    Mutated only by the configuration surface (CLI/menu) and by the fetch
    cycle when the server supplies its own refresh interval.
    """

    # Remote API
    api_key: str | None = Field(None, description="TRMNL device API key (access-token)")
    base_url: str = Field(DEFAULT_BASE_URL, description="Base URL of the TRMNL server")
    user_agent: str = Field(DEFAULT_USER_AGENT, description="User-Agent sent with requests")

    # Refresh behaviour
    refresh_interval: int = Field(
        DEFAULT_REFRESH_INTERVAL, gt=0, description="Seconds between scheduled refreshes"
    )
    use_server_refresh_rate: bool = Field(
        False, description="Replace refresh_interval with the server's refresh_rate"
    )
    max_retry_delay: int | None = Field(
        None, gt=0, description="Cap for retry backoff (defaults to refresh_interval)"
    )
    refresh_type: RefreshType = Field(RefreshType.UI, description="E-ink refresh mode")
    show_notifications: bool = Field(True, description="Show non-error notifications")

    # Device identification (configurable for BYOS servers)
    mac_header_name: str | None = Field(None, description="Header carrying the device id")
    mac_address: str | None = Field(None, description="Manual device id override")

    # Screen
    display_width: int = Field(1072, gt=0, description="Width of the screen in pixels")
    display_height: int = Field(1448, gt=0, description="Height of the screen in pixels")

    model_config = {"validate_assignment": True}

    # ---- validators ----
    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("api_key", "mac_header_name", "mac_address", mode="before")
    @classmethod
    def empty_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    # ---- convenience ----
    @property
    def device_id_header(self) -> str:
        """Name of the header carrying the device identifier."""
        return self.mac_header_name or DEFAULT_DEVICE_ID_HEADER

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    @property
    def retry_cap(self) -> int:
        """Maximum retry delay in seconds."""
        return self.max_retry_delay or self.refresh_interval
