"""
Blob storage logic.

Contains the facade, the payload codec, the multipart uploader, and
the backend capability protocol.
"""

from .errors import (
    BlobStoreError,
    ConfigurationError,
    DecodeError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from .facade import BlobStore
from .models import (
    Format,
    ListPage,
    NamedFile,
    SignedUrlRequest,
    UploadOptions,
    UploadProgress,
    UploadResult,
)
from .store import ObjectStore

__all__ = [
    "BlobStore",
    "BlobStoreError",
    "ConfigurationError",
    "DecodeError",
    "Format",
    "ListPage",
    "NamedFile",
    "NotFoundError",
    "ObjectStore",
    "SignedUrlRequest",
    "StoreError",
    "UploadOptions",
    "UploadProgress",
    "UploadResult",
    "ValidationError",
]
