"""
Blob store facade.

The public surface for object storage: create, find_one, find_all,
signed URLs, and remove. It composes an ObjectStore backend with the
codec and the multipart uploader, and logs every operation with enough
context to debug it without reproducing the failure.

The facade holds no state of its own beyond the shared backend, so one
instance can serve any number of concurrent callers.
"""

import logging
from typing import Any, Optional
from urllib.parse import urlsplit

from . import codec
from .errors import BlobStoreError, NotFoundError, StoreError, ValidationError
from .models import (
    DEFAULT_URL_EXPIRY,
    Format,
    SignedUrlRequest,
    UploadOptions,
    UploadResult,
    validate_location,
)
from .store import ObjectStore
from .upload import MultipartUploader, ProgressCallback

logger = logging.getLogger(__name__)


class BlobStore:
    """
    CRUD-style helpers over one bucket.

    Errors already in the BlobStoreError taxonomy pass through as-is;
    anything else a backend raises on upload is wrapped in StoreError.
    """

    def __init__(
        self,
        store: ObjectStore,
        upload_options: Optional[UploadOptions] = None,
    ) -> None:
        self._store = store
        self._upload_options = upload_options or UploadOptions()

    @property
    def bucket(self) -> str:
        return self._store.bucket

    async def create(
        self,
        location: str,
        payload: Any,
        format: Optional[Format] = None,
        options: Optional[UploadOptions] = None,
        params: Optional[dict[str, Any]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> UploadResult:
        """
        Write a payload to the bucket.

        Args:
            location: key to write
            payload: bytes, a binary stream, or a value matching `format`
            format: encode the payload before upload (RAW if omitted)
            options: multipart sizing, defaults to the facade's options
            params: extra request parameters (ContentType, Metadata, ACL, ...)
            on_progress: called with UploadProgress as parts are acknowledged
        """
        self._check_location("create", location)
        options = options or self._upload_options

        logger.debug(
            "Create",
            extra={
                "operation": "create",
                "location": location,
                "format": format.value if format else None,
                "concurrency": options.concurrency,
                "part_size": options.part_size,
            }
        )

        request_params: dict[str, Any] = {}
        content_type = codec.content_type_for(payload, format)
        if content_type:
            request_params["ContentType"] = content_type
        request_params.update(params or {})

        uploader = MultipartUploader(
            self._store,
            location,
            options,
            params=request_params,
            on_progress=on_progress,
        )

        try:
            body = codec.encode(payload, format or Format.RAW)
            result = await uploader.upload(body)
        except BlobStoreError as e:
            self._log_failure("create", location, e)
            raise
        except Exception as e:
            self._log_failure("create", location, e)
            raise StoreError(f"Upload of {location} failed: {e}", cause=e) from e

        logger.info(
            "Created object",
            extra={
                "operation": "create",
                "location": location,
                "bucket": result.bucket,
                "etag": result.etag,
                "parts": result.parts,
            }
        )
        return result

    async def find_all(self, prefix: str, single_page: bool = False) -> list[str]:
        """
        List object names under a prefix, relative to it.

        Follows continuation tokens to the end unless `single_page` is set,
        in which case only the first page the backend returns is used.
        """
        logger.debug(
            "Find all",
            extra={"operation": "find_all", "prefix": prefix, "single_page": single_page}
        )

        names: list[str] = []
        token: Optional[str] = None

        try:
            while True:
                page = await self._store.list_page(prefix, token)
                for key in page.keys:
                    if not key:
                        logger.warning(
                            "Listed object has no key, skipping",
                            extra={"operation": "find_all", "prefix": prefix}
                        )
                        continue
                    names.append(key[len(prefix):] if key.startswith(prefix) else key)

                token = page.next_token
                if single_page or not token:
                    break
        except BlobStoreError as e:
            self._log_failure("find_all", prefix, e)
            raise

        logger.debug(
            "Find all complete",
            extra={"operation": "find_all", "prefix": prefix, "count": len(names)}
        )
        return names

    async def find_one(self, location: str, format: Format = Format.RAW) -> Any:
        """
        Read and decode one object.

        A missing key raises NotFoundError. An existing key with an empty
        body returns the empty value for the format (b"", None, or an
        empty NamedFile).
        """
        self._check_location("find_one", location)

        logger.debug(
            "Find one",
            extra={"operation": "find_one", "location": location, "format": format.value}
        )

        try:
            data = await self._store.get_object(location)
        except NotFoundError as e:
            logger.warning(
                "Object not found",
                extra={"operation": "find_one", "location": location, "bucket": e.bucket}
            )
            raise
        except BlobStoreError as e:
            self._log_failure("find_one", location, e)
            raise

        if not data:
            logger.warning(
                "Object has an empty body",
                extra={"operation": "find_one", "location": location}
            )
            return codec.empty_value(format, location)

        try:
            return codec.decode(data, format, location)
        except BlobStoreError as e:
            self._log_failure("find_one", location, e)
            raise

    async def exists(self, location: str) -> bool:
        self._check_location("exists", location)
        try:
            await self._store.head_object(location)
        except NotFoundError:
            return False
        except BlobStoreError as e:
            self._log_failure("exists", location, e)
            raise
        return True

    async def get_signed_url_for_location(
        self,
        location: str,
        expires_in: int = DEFAULT_URL_EXPIRY,
    ) -> str:
        """Time-limited read URL for a key in this bucket."""
        operation = "get_signed_url_for_location"
        self._check_location(operation, location)
        request = self._signed_url_request(operation, location, expires_in)

        logger.debug(
            "Get signed URL",
            extra={
                "operation": "get_signed_url_for_location",
                "location": location,
                "expires_in": request.expires_in,
            }
        )

        try:
            url = await self._store.presign_location(request.target, request.expires_in)
        except BlobStoreError as e:
            self._log_failure("get_signed_url_for_location", location, e)
            raise

        logger.debug(
            "Signed URL generated",
            extra={"operation": "get_signed_url_for_location", "location": location}
        )
        return url

    async def get_signed_url_for_url(
        self,
        url: str,
        expires_in: int = DEFAULT_URL_EXPIRY,
    ) -> str:
        """Time-limited read URL for a previously returned absolute object URL."""
        operation = "get_signed_url_for_url"
        request = self._signed_url_request(operation, url, expires_in)

        parts = urlsplit(request.target)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            error = ValidationError(f"Not an absolute object URL: {url}")
            self._log_failure(operation, url, error)
            raise error

        logger.debug(
            "Get signed URL for object URL",
            extra={
                "operation": "get_signed_url_for_url",
                "url": url,
                "expires_in": request.expires_in,
            }
        )

        try:
            return await self._store.presign_url(request.target, request.expires_in)
        except BlobStoreError as e:
            self._log_failure("get_signed_url_for_url", url, e)
            raise

    async def remove(self, location: str) -> dict[str, Any]:
        """Delete an object. Deleting a missing key is not an error."""
        self._check_location("remove", location)

        logger.debug("Delete", extra={"operation": "remove", "location": location})

        try:
            response = await self._store.delete_object(location)
        except BlobStoreError as e:
            self._log_failure("remove", location, e)
            raise

        logger.info("Deleted object", extra={"operation": "remove", "location": location})
        return response

    def _check_location(self, operation: str, location: Any) -> None:
        try:
            validate_location(location)
        except ValidationError as e:
            self._log_failure(operation, location, e)
            raise

    def _signed_url_request(self, operation: str, target: str, expires_in: int) -> SignedUrlRequest:
        try:
            return SignedUrlRequest(target=target, expires_in=expires_in)
        except ValidationError as e:
            self._log_failure(operation, target, e)
            raise

    def _log_failure(self, operation: str, location: str, error: BaseException) -> None:
        logger.error(
            f"{operation} failed: {error}",
            extra={
                "operation": operation,
                "location": location,
                "bucket": self._store.bucket,
                "error": str(error),
                "error_type": type(error).__name__,
            }
        )
