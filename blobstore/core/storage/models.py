"""
Value objects for blob storage.

These models describe what gets stored and how, with no knowledge of
boto3 or HTTP. Validation happens at construction time so an invalid
option never reaches the backend.
"""

import io
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .errors import ValidationError


MIB = 1024 * 1024

# S3 rejects non-final parts smaller than this
MIN_PART_SIZE = 5 * MIB
MAX_PARTS = 10_000

DEFAULT_CONCURRENCY = 4
DEFAULT_PART_SIZE = 5 * MIB
DEFAULT_URL_EXPIRY = 3600

OCTET_STREAM = "application/octet-stream"


class Format(Enum):
    """How an object's bytes should be interpreted."""
    RAW = "raw"
    JSON = "json"
    NAMED_FILE = "named_file"


@dataclass
class NamedFile:
    """
    A file payload with the metadata an upload form would carry.

    `size` follows the buffer when not given explicitly.
    """
    name: str
    buffer: bytes
    size: int = -1
    mimetype: str = OCTET_STREAM

    def __post_init__(self) -> None:
        if self.size < 0:
            self.size = len(self.buffer)

    @property
    def stream(self) -> io.BytesIO:
        """Fresh readable stream over the buffer."""
        return io.BytesIO(self.buffer)


@dataclass(frozen=True)
class UploadOptions:
    """
    Sizing for multipart uploads.

    concurrency: parts in flight at once
    part_size: bytes per part (the final part may be smaller)
    leave_parts_on_error: keep uploaded parts for manual cleanup
        instead of aborting the multipart upload
    """
    concurrency: int = DEFAULT_CONCURRENCY
    part_size: int = DEFAULT_PART_SIZE
    leave_parts_on_error: bool = False

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValidationError("concurrency must be at least 1")
        if self.part_size < MIN_PART_SIZE:
            raise ValidationError(
                f"part_size must be at least {MIN_PART_SIZE} bytes"
            )


@dataclass(frozen=True)
class UploadProgress:
    """Bytes acknowledged by the backend so far for one upload."""
    location: str
    loaded: int
    total: Optional[int] = None
    part: Optional[int] = None


@dataclass(frozen=True)
class UploadResult:
    """Completion descriptor for a finished upload."""
    location: str
    bucket: str
    etag: Optional[str]
    version_id: Optional[str] = None
    parts: int = 1


@dataclass(frozen=True)
class CompletedPart:
    part_number: int
    etag: str


@dataclass
class ListPage:
    """One page of a prefix listing. Keys may be None if the backend omits them."""
    keys: list[Optional[str]] = field(default_factory=list)
    next_token: Optional[str] = None


@dataclass(frozen=True)
class SignedUrlRequest:
    """A key or absolute URL to sign, plus validity in seconds."""
    target: str
    expires_in: int = DEFAULT_URL_EXPIRY

    def __post_init__(self) -> None:
        if not self.target:
            raise ValidationError("target cannot be empty")
        if self.expires_in <= 0:
            raise ValidationError("expires_in must be positive")


def validate_location(location: Any) -> str:
    """Return the location if usable as a key, otherwise raise."""
    if not isinstance(location, str) or not location:
        raise ValidationError("location cannot be empty")
    return location
