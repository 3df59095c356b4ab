"""Models for the TRMNL display API."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any

from pydantic import BaseModel, field_validator

from trmnlscreen.constants import DEFAULT_IMAGE, IMAGE_EXTENSION


class ScreenDescriptor(BaseModel):
    """Decoded response of ``GET /api/display``.

    Produced per fetch and consumed immediately; never persisted. Extra
    fields sent by the server (firmware flags, status...) are ignored.
    """

    image_url: str
    filename: str | None = None
    refresh_rate: int | None = None

    @field_validator("image_url")
    @classmethod
    def require_image_url(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("image_url must not be empty")
        return v.strip()

    @field_validator("refresh_rate", mode="before")
    @classmethod
    def positive_refresh_rate(cls, v: Any) -> int | None:
        """Ignore refresh rates that are missing, non-numeric or not positive."""
        if v is None or isinstance(v, bool):
            return None
        try:
            rate = int(v)
        except (TypeError, ValueError):
            return None
        return rate if rate > 0 else None

    @property
    def image_filename(self) -> str:
        """Local file name for the image, always a bare name ending in .png."""
        name = PurePosixPath(self.filename or DEFAULT_IMAGE).name or DEFAULT_IMAGE
        if not name.endswith(IMAGE_EXTENSION):
            name += IMAGE_EXTENSION
        return name


@dataclass(frozen=True)
class DeviceContext:
    """Device information sent with every metadata request."""

    battery_percentage: int
    width: int
    height: int
    device_id: str
    device_id_header: str
    rssi: int = 0
