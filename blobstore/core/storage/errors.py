"""
Error taxonomy for blob storage operations.

Every failure the facade can surface is one of these. Callers catch
BlobStoreError for "anything storage-related" or a specific subclass
when they care about the reason (e.g. NotFoundError -> 404).
"""

from typing import Optional


class BlobStoreError(Exception):
    """Base class for all blob storage errors."""
    pass


class ConfigurationError(BlobStoreError):
    """Raised when required configuration is missing or invalid."""
    pass


class ValidationError(BlobStoreError, ValueError):
    """Raised when a caller-supplied argument breaks an input contract."""
    pass


class StoreError(BlobStoreError):
    """
    Raised when the backend rejects or fails a request.

    The original exception is kept on `cause` (and chained via
    `raise ... from`) so nothing about the failure is lost.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class NotFoundError(BlobStoreError):
    """Raised when a requested key does not exist."""

    def __init__(self, bucket: str, location: str) -> None:
        self.bucket = bucket
        self.location = location
        super().__init__(f"Object not found: {bucket}/{location}")


class DecodeError(BlobStoreError):
    """Raised when stored bytes do not match the requested format."""

    def __init__(self, location: str, format_name: str, reason: str) -> None:
        self.location = location
        self.format = format_name
        super().__init__(f"Could not decode {location} as {format_name}: {reason}")
