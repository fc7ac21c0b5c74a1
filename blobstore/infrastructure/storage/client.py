"""
Object storage backends.

S3ObjectStore talks to AWS S3 (or any S3-compatible endpoint such as
MinIO or R2) through boto3. InMemoryObjectStore keeps objects in a
dict, enabling local development and tests without provisioning a
bucket.

Both implement the ObjectStore protocol from core.storage, so the
facade never sees boto3 types or botocore exceptions.
"""

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import quote, urlsplit

import boto3
from botocore.auth import S3SigV4QueryAuth
from botocore.awsrequest import AWSRequest
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ...core.storage.errors import ConfigurationError, NotFoundError, StoreError
from ...core.storage.models import CompletedPart, ListPage
from ...core.storage.store import ObjectStore
from ...core.storage.upload import content_md5

logger = logging.getLogger(__name__)


# used when neither the bucket nor the environment names a region
FALLBACK_REGION = "eu-west-2"

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}

# host used for object URLs handed out by the in-memory store
MEMORY_HOST = "memory.localhost"


@dataclass(frozen=True)
class S3Config:
    """
    Configuration for S3 or an S3-compatible endpoint.

    Required fields are checked at construction, so a misconfigured
    process fails at startup rather than on the first request.
    """
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    bucket_region: Optional[str] = None
    default_region: Optional[str] = None
    endpoint_url: Optional[str] = None
    session_token: Optional[str] = None

    def __post_init__(self) -> None:
        missing = [
            name for name, value in (
                ("access_key_id", self.access_key_id),
                ("secret_access_key", self.secret_access_key),
                ("bucket_name", self.bucket_name),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required S3 configuration: {', '.join(missing)}"
            )

    @property
    def region(self) -> str:
        """Bucket region, then default region, then the fallback."""
        return self.bucket_region or self.default_region or FALLBACK_REGION


class S3ObjectStore:
    """
    boto3-backed ObjectStore.

    One session and one client are created here and reused for every
    call. boto3 clients are thread-safe, and every call is pushed onto
    a worker thread with asyncio.to_thread so the event loop keeps
    serving other requests while S3 responds.
    """

    def __init__(self, config: S3Config) -> None:
        self._config = config
        self.bucket = config.bucket_name

        client_options: dict[str, Any] = {"signature_version": "s3v4"}
        if config.endpoint_url:
            # most S3-compatible servers only route path-style requests
            client_options["s3"] = {"addressing_style": "path"}

        self._session = boto3.Session(
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            aws_session_token=config.session_token,
            region_name=config.region,
        )
        self._client = self._session.client(
            "s3",
            endpoint_url=config.endpoint_url,
            config=Config(**client_options),
        )

        logger.info(
            "Initialized S3 object store",
            extra={
                "bucket": config.bucket_name,
                "region": config.region,
                "endpoint": config.endpoint_url,
            }
        )

    async def put_object(
        self,
        key: str,
        body: bytes,
        content_md5: str,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        return await self._call(
            "put_object",
            key,
            self._client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=body,
            ContentMD5=content_md5,
            **params,
        )

    async def create_multipart_upload(self, key: str, params: dict[str, Any]) -> str:
        response = await self._call(
            "create_multipart_upload",
            key,
            self._client.create_multipart_upload,
            Bucket=self.bucket,
            Key=key,
            **params,
        )
        return response["UploadId"]

    async def upload_part(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
        content_md5: str,
    ) -> str:
        response = await self._call(
            "upload_part",
            key,
            self._client.upload_part,
            Bucket=self.bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=body,
            ContentMD5=content_md5,
        )
        return response["ETag"]

    async def complete_multipart_upload(
        self,
        key: str,
        upload_id: str,
        parts: list[CompletedPart],
    ) -> dict[str, Any]:
        return await self._call(
            "complete_multipart_upload",
            key,
            self._client.complete_multipart_upload,
            Bucket=self.bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={
                "Parts": [
                    {"ETag": part.etag, "PartNumber": part.part_number}
                    for part in parts
                ]
            },
        )

    async def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        await self._call(
            "abort_multipart_upload",
            key,
            self._client.abort_multipart_upload,
            Bucket=self.bucket,
            Key=key,
            UploadId=upload_id,
        )

    async def list_page(
        self,
        prefix: str,
        continuation_token: Optional[str] = None,
    ) -> ListPage:
        kwargs: dict[str, Any] = {"Bucket": self.bucket, "Prefix": prefix}
        if continuation_token:
            kwargs["ContinuationToken"] = continuation_token

        response = await self._call(
            "list_objects_v2",
            prefix,
            self._client.list_objects_v2,
            **kwargs,
        )

        next_token = None
        if response.get("IsTruncated"):
            next_token = response.get("NextContinuationToken")

        return ListPage(
            keys=[obj.get("Key") for obj in response.get("Contents", [])],
            next_token=next_token,
        )

    async def get_object(self, key: str) -> bytes:
        def _read() -> bytes:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
            body = response["Body"]
            try:
                return body.read()
            finally:
                body.close()

        return await self._call("get_object", key, _read)

    async def head_object(self, key: str) -> dict[str, Any]:
        return await self._call(
            "head_object",
            key,
            self._client.head_object,
            Bucket=self.bucket,
            Key=key,
        )

    async def delete_object(self, key: str) -> dict[str, Any]:
        try:
            return await self._call(
                "delete_object",
                key,
                self._client.delete_object,
                Bucket=self.bucket,
                Key=key,
            )
        except NotFoundError:
            # S3 answers 204 for missing keys, some compatible servers don't
            logger.debug("Deleted key did not exist", extra={"location": key})
            return {}

    async def presign_location(self, key: str, expires_in: int) -> str:
        return await self._call(
            "generate_presigned_url",
            key,
            self._client.generate_presigned_url,
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires_in,
        )

    async def presign_url(self, url: str, expires_in: int) -> str:
        """
        Sign an arbitrary object URL with SigV4 query parameters.

        Unlike presign_location this doesn't need the key: the URL is
        signed exactly as given, so it works for virtual-hosted and
        path-style URLs alike.
        """
        def _sign() -> str:
            credentials = self._session.get_credentials()
            if credentials is None:
                raise ConfigurationError("No credentials available for signing")

            request = AWSRequest(method="GET", url=url)
            signer = S3SigV4QueryAuth(
                credentials.get_frozen_credentials(),
                "s3",
                self._config.region,
                expires=expires_in,
            )
            signer.add_auth(request)
            return request.url

        return await self._call("presign_url", url, _sign)

    def object_url(self, key: str) -> str:
        """Unsigned absolute URL of an object in this bucket."""
        path = quote(key)
        if self._config.endpoint_url:
            return f"{self._config.endpoint_url.rstrip('/')}/{self.bucket}/{path}"
        return f"https://{self.bucket}.s3.{self._config.region}.amazonaws.com/{path}"

    async def _call(self, operation: str, key: str, method: Callable[..., Any], **kwargs: Any) -> Any:
        """Run a blocking boto3 call off the event loop and translate its errors."""
        try:
            return await asyncio.to_thread(method, **kwargs)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in _NOT_FOUND_CODES:
                raise NotFoundError(self.bucket, key) from e
            raise StoreError(f"S3 {operation} failed for {key}: {e}", cause=e) from e
        except BotoCoreError as e:
            raise StoreError(f"S3 {operation} failed for {key}: {e}", cause=e) from e


# ---------------------------------------------------------------------------
# In-memory store for local development
# ---------------------------------------------------------------------------

class InMemoryObjectStore:
    """
    In-memory ObjectStore.

    Objects live in a dict and "signed URLs" point at a placeholder host
    with an expires_in query parameter. Content-MD5 is verified the way
    S3 does, so checksum handling is exercised even without a real
    bucket. `page_size` can be made small to observe listing pagination.

    Not suitable for production.
    """

    def __init__(self, bucket: str = "local-bucket", page_size: int = 1000) -> None:
        self.bucket = bucket
        self._page_size = page_size
        self._objects: dict[str, bytes] = {}
        self._uploads: dict[str, dict[int, bytes]] = {}
        self._next_upload = 0
        logger.info("Initialized in-memory object store", extra={"bucket": bucket})

    @property
    def pending_uploads(self) -> dict[str, dict[int, bytes]]:
        """Multipart uploads that were neither completed nor aborted."""
        return self._uploads

    async def put_object(
        self,
        key: str,
        body: bytes,
        content_md5: str,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        self._verify_checksum(key, body, content_md5)
        self._objects[key] = bytes(body)
        return {"ETag": _etag(body)}

    async def create_multipart_upload(self, key: str, params: dict[str, Any]) -> str:
        self._next_upload += 1
        upload_id = f"upload-{self._next_upload}"
        self._uploads[upload_id] = {}
        return upload_id

    async def upload_part(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
        content_md5: str,
    ) -> str:
        parts = self._uploads.get(upload_id)
        if parts is None:
            raise StoreError(f"Unknown upload id: {upload_id}")
        self._verify_checksum(key, body, content_md5)
        parts[part_number] = bytes(body)
        return _etag(body)

    async def complete_multipart_upload(
        self,
        key: str,
        upload_id: str,
        parts: list[CompletedPart],
    ) -> dict[str, Any]:
        uploaded = self._uploads.pop(upload_id, None)
        if uploaded is None:
            raise StoreError(f"Unknown upload id: {upload_id}")

        data = b"".join(uploaded[part.part_number] for part in parts)
        self._objects[key] = data

        digests = b"".join(
            hashlib.md5(uploaded[part.part_number]).digest() for part in parts
        )
        return {"ETag": f'"{hashlib.md5(digests).hexdigest()}-{len(parts)}"'}

    async def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        self._uploads.pop(upload_id, None)

    async def list_page(
        self,
        prefix: str,
        continuation_token: Optional[str] = None,
    ) -> ListPage:
        keys = sorted(key for key in self._objects if key.startswith(prefix))
        start = int(continuation_token) if continuation_token else 0
        end = start + self._page_size

        return ListPage(
            keys=list(keys[start:end]),
            next_token=str(end) if end < len(keys) else None,
        )

    async def get_object(self, key: str) -> bytes:
        if key not in self._objects:
            raise NotFoundError(self.bucket, key)
        return self._objects[key]

    async def head_object(self, key: str) -> dict[str, Any]:
        data = await self.get_object(key)
        return {"ContentLength": len(data), "ETag": _etag(data)}

    async def delete_object(self, key: str) -> dict[str, Any]:
        self._objects.pop(key, None)
        return {"ResponseMetadata": {"HTTPStatusCode": 204}}

    async def presign_location(self, key: str, expires_in: int) -> str:
        return f"{self.object_url(key)}?expires_in={expires_in}"

    async def presign_url(self, url: str, expires_in: int) -> str:
        parts = urlsplit(url)
        return f"{parts.scheme}://{parts.netloc}{parts.path}?expires_in={expires_in}"

    def object_url(self, key: str) -> str:
        return f"http://{MEMORY_HOST}/{self.bucket}/{quote(key)}"

    def _verify_checksum(self, key: str, body: bytes, expected: str) -> None:
        if content_md5(body) != expected:
            raise StoreError(f"Content-MD5 mismatch for {key}")


def _etag(body: bytes) -> str:
    return f'"{hashlib.md5(body).hexdigest()}"'


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_object_store(
    config: Optional[S3Config] = None,
    mock_mode: bool = False,
    mock_bucket: str = "local-bucket",
) -> ObjectStore:
    """
    Create an object store based on configuration.

    Args:
        config: S3 configuration (required if not mock_mode)
        mock_mode: If True, return the in-memory store
        mock_bucket: bucket name reported by the in-memory store

    Returns:
        ObjectStore implementation (S3 or in-memory)
    """
    if mock_mode:
        return InMemoryObjectStore(bucket=config.bucket_name if config else mock_bucket)

    if config is None:
        raise ConfigurationError("config is required when not in mock mode")

    return S3ObjectStore(config)
