"""
Domain errors raised by the library services.

Each error carries the HTTP status code the API layer answers with, so a
service failure maps directly onto a ``{message, error?}`` response.
"""

from typing import Optional


class LibraryError(Exception):
    """Base class for expected, client-facing failures."""

    status_code: int = 500

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error


class InvalidInputError(LibraryError):
    """Missing or malformed input, duplicates and rejected uploads."""
    status_code = 400


class AuthenticationError(LibraryError):
    """No credential supplied."""
    status_code = 401


class PermissionDeniedError(LibraryError):
    """Invalid or expired credential, or insufficient role."""
    status_code = 403


class NotFoundError(LibraryError):
    """Requested record or file does not exist (or is not downloadable)."""
    status_code = 404


class RateLimitExceededError(LibraryError):
    """Client exceeded its request budget for the current window."""
    status_code = 429
