"""Shared constants for the TRMNL screen fetcher."""

from typing import Final

from trmnlscreen import __version__

# Exponential backoff after failed fetches (seconds)
BASE_DELAY: Final = 60
MIN_DELAY: Final = 60

# Refresh timing (seconds)
DEFAULT_REFRESH_INTERVAL: Final = 1800
DEBOUNCE_DELAY: Final = 25
# Some devices report "connected" before requests can go out
NETWORK_STABILIZE_DELAY: Final = 2

# Remote API
DEFAULT_BASE_URL: Final = "https://trmnl.app"
DISPLAY_ENDPOINT: Final = "/api/display"
DEFAULT_USER_AGENT: Final = f"trmnl-screen/{__version__}"
DEFAULT_DEVICE_ID_HEADER: Final = "ID"
DEFAULT_DEVICE_ID: Final = "00:00:00:00:00:00"

# Files
DEFAULT_IMAGE: Final = "trmnl_screen.png"
IMAGE_EXTENSION: Final = ".png"
API_KEY_FILE: Final = "apikey.txt"
STATE_FILE: Final = "trmnl.yaml"
