"""Exception classes for TRMNL API interactions.

This module defines the hierarchy of errors raised by the fetch client.
Every one of them is recoverable: the fetch cycle turns them into a user
notification plus a backoff retry.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class FetchError(Exception):
    """Error while fetching the screen descriptor or image.

    Includes a machine-readable code (HTTP status, or 0 when no response
    was received) and actionable guidance for the user.
    """

    guidance: str = "Unexpected error"

    def __init__(
        self,
        code: int,
        message: str,
        guidance: Optional[str] = None,
        response: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize the exception.

        Args:
            code: HTTP status code or 0 when no response reached us
            message: Human-readable error message
            guidance: What the user should check (defaults per class)
            response: Optional decoded response body for debugging
        """
        super().__init__(f"[{code}] {message}")
        self.code: int = code
        self.message: str = message
        if guidance is not None:
            self.guidance = guidance
        self.response: Optional[Dict[str, Any]] = response


class ConfigurationError(FetchError):
    """Raised when the request cannot be built from the current settings."""

    guidance = "Please configure your TRMNL API key first."

    def __init__(self, message: str) -> None:
        super().__init__(0, message)


class NetworkError(FetchError):
    """Raised when a transport issue prevents any response."""

    guidance = "Network error - check WiFi connection"

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        """Initialize with network error details.

        Args:
            message: Description of the network error
            original_error: The original exception that was caught
        """
        super().__init__(0, message)
        self.original_error = original_error


class ApiError(FetchError):
    """Raised when the server answered with a non-success status."""

    @property
    def is_client_error(self) -> bool:
        """True for 400-499 status codes."""
        return 400 <= self.code < 500

    @property
    def is_server_error(self) -> bool:
        """True for 500-599 status codes."""
        return self.code >= 500

    @classmethod
    def from_status(
        cls, status_code: int, response: Optional[Dict[str, Any]] = None
    ) -> ApiError:
        """Create the error matching an HTTP status.

        Args:
            status_code: HTTP status code
            response: Decoded response body, if any

        Returns:
            Appropriate ApiError subclass
        """
        body = response or {}
        message = body.get("message") or f"API request failed (HTTP {status_code})"
        if status_code in (401, 403):
            return AuthenticationError(status_code, message, response=response)
        if status_code == 404:
            return NotFoundError(status_code, message, response=response)
        if status_code >= 500:
            return ServerError(status_code, message, response=response)
        if 400 <= status_code < 500:
            return ClientError(status_code, message, f"HTTP {status_code}", response)
        return cls(status_code, message, f"HTTP {status_code}", response)


class AuthenticationError(ApiError):
    """Raised when the API key is missing, wrong or revoked (401/403)."""

    guidance = "Check API key in settings"


class NotFoundError(ApiError):
    """Raised when the endpoint does not exist (404)."""

    guidance = "Endpoint not found - verify base URL"


class ClientError(ApiError):
    """Raised for other 4xx responses."""

    pass


class ServerError(ApiError):
    """Raised for 5xx responses."""

    guidance = "Server error - try again later"


class ProtocolError(FetchError):
    """Raised when the response body is not the expected JSON descriptor."""

    guidance = "Unexpected response from server"

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        """Initialize with parsing error details.

        Args:
            message: Description of the parsing error
            original_error: The original exception that was caught
        """
        super().__init__(0, message)
        self.original_error = original_error


class DownloadError(FetchError):
    """Raised when the screen image cannot be downloaded or written."""

    guidance = "Image download failed - check WiFi connection"

    def __init__(
        self, message: str, code: int = 0, original_error: Optional[Exception] = None
    ) -> None:
        super().__init__(code, message)
        self.original_error = original_error
