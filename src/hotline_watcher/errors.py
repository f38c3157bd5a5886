"""
Exception types shared across the worker.
"""

from typing import Optional


class WatcherError(Exception):
    """Base exception for hotline watcher errors."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class CodecError(WatcherError):
    """Raised when a payload cannot be encoded or decoded."""


class EventDecodeError(WatcherError):
    """Raised when a queue message is not a well-formed event."""


class DirectoryError(WatcherError):
    """Raised when the subscription directory cannot answer a lookup."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, original_error=original_error)
        self.status_code = status_code


class SecretsError(WatcherError):
    """Raised when queue or API credentials are missing or invalid."""
