"""
Conversion between payload formats and stored bytes.

Pure functions, no backend access. The facade calls `encode` before an
upload and `decode` after a download.
"""

import io
import json
from typing import Any, BinaryIO, Optional, Union

from .errors import DecodeError, ValidationError
from .models import OCTET_STREAM, Format, NamedFile


Payload = Union[bytes, BinaryIO]

UNKNOWN_NAME = "unknown"


def encode(value: Any, fmt: Format) -> Payload:
    """
    Turn a value into something the uploader can send.

    RAW streams are passed through untouched so the upload can start
    before the whole payload has been read.
    """
    if fmt is Format.RAW:
        if isinstance(value, (bytearray, memoryview)):
            return bytes(value)
        if isinstance(value, io.TextIOBase):
            raise ValidationError("RAW stream must yield bytes, got a text stream")
        if isinstance(value, bytes) or hasattr(value, "read"):
            return value
        raise ValidationError(
            f"RAW payload must be bytes or a binary stream, got {type(value).__name__}"
        )

    if fmt is Format.JSON:
        try:
            return json.dumps(value).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Payload is not JSON serializable: {e}") from e

    if fmt is Format.NAMED_FILE:
        if not isinstance(value, NamedFile):
            raise ValidationError(
                f"NAMED_FILE payload must be a NamedFile, got {type(value).__name__}"
            )
        return value.buffer

    raise ValidationError(f"Unsupported format: {fmt!r}")


def decode(data: bytes, fmt: Format, location: str) -> Any:
    """
    Turn stored bytes back into a value.

    A malformed JSON body raises DecodeError; it is never swallowed.
    """
    if fmt is Format.RAW:
        return data

    if fmt is Format.JSON:
        try:
            return json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecodeError(location, fmt.value, str(e)) from e

    if fmt is Format.NAMED_FILE:
        return NamedFile(
            name=file_name(location),
            buffer=data,
            size=len(data),
            mimetype=OCTET_STREAM,
        )

    raise ValidationError(f"Unsupported format: {fmt!r}")


def empty_value(fmt: Format, location: str) -> Any:
    """Decoded value for an object that exists but has no body."""
    if fmt is Format.JSON:
        return None
    return decode(b"", fmt, location)


def file_name(location: str) -> str:
    """Last path segment of a location, or 'unknown'."""
    return location.rsplit("/", 1)[-1] or UNKNOWN_NAME


def content_type_for(value: Any, fmt: Optional[Format]) -> Optional[str]:
    if fmt is Format.JSON:
        return "application/json"
    if fmt is Format.NAMED_FILE and isinstance(value, NamedFile):
        return value.mimetype
    return None
