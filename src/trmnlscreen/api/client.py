"""HTTP client for the TRMNL display API."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Final

import requests
import urllib3
from pydantic import ValidationError

from trmnlscreen.api.errors import (
    ApiError,
    ConfigurationError,
    DownloadError,
    NetworkError,
    ProtocolError,
)
from trmnlscreen.api.models import DeviceContext, ScreenDescriptor
from trmnlscreen.constants import DISPLAY_ENDPOINT
from trmnlscreen.settings import UserSettings

logger: Final = logging.getLogger(__name__)

# Target devices often ship outdated trust stores, so certificate
# verification is relaxed for both the API and image hosts.
VERIFY_TLS: Final = False
if not VERIFY_TLS:
    urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

CHUNK_SIZE: Final = 64 * 1024


class FetchClient:
    """Client for the two network operations of a fetch cycle.

    Fetches the screen descriptor from ``{base_url}/api/display`` and
    downloads the referenced image. Outcomes are mapped onto the
    FetchError hierarchy; both operations are idempotent and safe to retry.
    """

    def __init__(self, timeout: float = 30.0) -> None:
        """Initialize the client.

        Args:
            timeout: Timeout for each HTTP request in seconds
        """
        self.timeout = timeout

    @staticmethod
    def build_headers(settings: UserSettings, device: DeviceContext) -> dict[str, str]:
        """Build the authenticated request headers for the display endpoint."""
        return {
            "access-token": settings.api_key or "",
            "battery-voltage": str(device.battery_percentage),
            "png-width": str(device.width),
            "png-height": str(device.height),
            "rssi": str(device.rssi),
            device.device_id_header: device.device_id,
            "User-Agent": settings.user_agent,
        }

    def fetch_metadata(self, settings: UserSettings, device: DeviceContext) -> ScreenDescriptor:
        """Retrieve the current screen descriptor.

        Args:
            settings: User settings with API key, base URL and user agent
            device: Battery, screen and identifier information for the headers

        Returns:
            Validated ScreenDescriptor

        Raises:
            ConfigurationError: When no API key is configured
            NetworkError: When no response was received
            ApiError: When the server answered with a non-200 status
            ProtocolError: When the body is not a valid descriptor
        """
        if not settings.has_api_key:
            raise ConfigurationError("No API key configured")

        url = settings.base_url + DISPLAY_ENDPOINT
        logger.info("Fetching screen from %s", url)
        logger.debug("Screen dimensions: %dx%d", device.width, device.height)

        try:
            resp = requests.get(
                url,
                headers=self.build_headers(settings, device),
                timeout=self.timeout,
                verify=VERIFY_TLS,
            )
        except requests.RequestException as exc:
            logger.error("Request to %s failed: %s", url, exc)
            raise NetworkError(f"Failed to reach TRMNL API: {exc}", exc) from exc

        logger.debug("HTTP status code: %s", resp.status_code)
        if resp.status_code != 200:
            body = self._json_or_none(resp)
            logger.error("API returned HTTP %s", resp.status_code)
            raise ApiError.from_status(resp.status_code, body)

        logger.debug("Received response: %s", resp.text[:200])
        try:
            raw = json.loads(resp.text)
        except ValueError as exc:
            logger.error("Failed to parse JSON response: %s", exc)
            raise ProtocolError("Response is not valid JSON", exc) from exc

        if not isinstance(raw, dict):
            raise ProtocolError(f"Expected a JSON object, got {type(raw).__name__}")

        try:
            return ScreenDescriptor.model_validate(raw)
        except ValidationError as exc:
            logger.error("Invalid screen descriptor: %s", exc)
            raise ProtocolError("Response has no usable image_url", exc) from exc

    def download_image(self, url: str, destination: Path, user_agent: str) -> Path:
        """Stream an image to ``destination``.

        A partially written destination is removed on any failure so that a
        corrupt file never becomes the cached screen.

        Args:
            url: Image URL from the descriptor
            destination: File to write
            user_agent: User-Agent header value

        Returns:
            The destination path

        Raises:
            DownloadError: On transport failure, non-200 status or write error
        """
        logger.info("Downloading image from %s", url)
        try:
            resp = requests.get(
                url,
                headers={"User-Agent": user_agent},
                timeout=self.timeout,
                verify=VERIFY_TLS,
                stream=True,
            )
        except requests.RequestException as exc:
            logger.error("Image download failed: %s", exc)
            destination.unlink(missing_ok=True)
            raise DownloadError(f"Image download failed: {exc}", original_error=exc) from exc

        try:
            if resp.status_code != 200:
                logger.error("Image download failed - HTTP %s", resp.status_code)
                destination.unlink(missing_ok=True)
                raise DownloadError(
                    f"Image download failed (HTTP {resp.status_code})", code=resp.status_code
                )

            destination.parent.mkdir(parents=True, exist_ok=True)
            try:
                with destination.open("wb") as fh:
                    for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            fh.write(chunk)
            except (requests.RequestException, OSError) as exc:
                logger.error("Image download interrupted: %s", exc)
                destination.unlink(missing_ok=True)
                raise DownloadError(
                    f"Image download interrupted: {exc}", original_error=exc
                ) from exc
        finally:
            resp.close()

        logger.info("Image downloaded successfully to %s", destination)
        return destination

    @staticmethod
    def _json_or_none(resp: requests.Response) -> Dict[str, Any] | None:
        try:
            body = resp.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None
