"""TRMNL display API client, descriptor models and errors."""

from trmnlscreen.api.client import FetchClient
from trmnlscreen.api.errors import (
    ApiError,
    AuthenticationError,
    ClientError,
    ConfigurationError,
    DownloadError,
    FetchError,
    NetworkError,
    NotFoundError,
    ProtocolError,
    ServerError,
)
from trmnlscreen.api.models import DeviceContext, ScreenDescriptor

__all__ = [
    "ApiError",
    "AuthenticationError",
    "ClientError",
    "ConfigurationError",
    "DeviceContext",
    "DownloadError",
    "FetchClient",
    "FetchError",
    "NetworkError",
    "NotFoundError",
    "ProtocolError",
    "ScreenDescriptor",
    "ServerError",
]
