"""
FastAPI dependency injection.

The blob store is built once at startup (see main.lifespan) and kept on
app.state, so every request shares one backend client. Routes receive
it through BlobStoreDep instead of constructing their own, which also
lets tests swap in an in-memory store with dependency_overrides.
"""

import logging
from typing import Annotated

from fastapi import Depends, Request

from ..config.settings import Settings, get_settings
from ..core.storage.facade import BlobStore
from ..core.storage.models import UploadOptions
from ..infrastructure.storage.client import S3Config, create_object_store

logger = logging.getLogger(__name__)


def build_s3_config(settings: Settings) -> S3Config:
    """Translate settings into S3Config. Raises ConfigurationError if incomplete."""
    return S3Config(
        access_key_id=settings.aws_access_key_id,
        secret_access_key=settings.aws_secret_access_key,
        bucket_name=settings.aws_s3_bucket_name,
        bucket_region=settings.aws_s3_region,
        default_region=settings.aws_default_region,
        endpoint_url=settings.aws_endpoint_url,
        session_token=settings.aws_session_token,
    )


def build_blob_store(settings: Settings) -> BlobStore:
    """
    Create the process-wide BlobStore.

    In mock mode the in-memory store is used and credentials are not
    required.
    """
    upload_options = UploadOptions(
        concurrency=settings.s3_upload_concurrency,
        part_size=settings.s3_upload_part_size,
        leave_parts_on_error=settings.s3_leave_parts_on_error,
    )

    if settings.s3_mock_mode:
        store = create_object_store(
            mock_mode=True,
            mock_bucket=settings.aws_s3_bucket_name or "local-bucket",
        )
        logger.info("Created in-memory blob store")
    else:
        store = create_object_store(config=build_s3_config(settings))
        logger.info("Created S3 blob store")

    return BlobStore(store, upload_options=upload_options)


def get_blob_store(request: Request) -> BlobStore:
    """Provide the shared BlobStore created at startup."""
    return request.app.state.blob_store


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

BlobStoreDep = Annotated[BlobStore, Depends(get_blob_store)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
