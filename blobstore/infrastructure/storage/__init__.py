"""
Object storage integration.

Supports AWS S3 and S3-compatible endpoints (MinIO, R2) via boto3.
Includes an in-memory store for local development without credentials.
"""

from .client import (
    FALLBACK_REGION,
    InMemoryObjectStore,
    S3Config,
    S3ObjectStore,
    create_object_store,
)

__all__ = [
    "FALLBACK_REGION",
    "InMemoryObjectStore",
    "S3Config",
    "S3ObjectStore",
    "create_object_store",
]
