"""
Capability interface the facade needs from an object-storage backend.

Using a Protocol here means the facade doesn't know or care whether
it's talking to S3, MinIO, or an in-memory fake. Implementations map
their own not-found signal to NotFoundError and any other failure to
StoreError.
"""

from typing import Any, Optional, Protocol

from .models import CompletedPart, ListPage


class ObjectStore(Protocol):
    """Narrow set of backend calls, all scoped to one bucket."""

    bucket: str

    async def put_object(
        self,
        key: str,
        body: bytes,
        content_md5: str,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        """Store a whole object in one request. Returns ETag/VersionId."""
        ...

    async def create_multipart_upload(self, key: str, params: dict[str, Any]) -> str:
        """Start a multipart upload and return its upload id."""
        ...

    async def upload_part(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
        content_md5: str,
    ) -> str:
        """Upload one part and return its ETag."""
        ...

    async def complete_multipart_upload(
        self,
        key: str,
        upload_id: str,
        parts: list[CompletedPart],
    ) -> dict[str, Any]:
        """Finalize a multipart upload. Returns ETag/VersionId."""
        ...

    async def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        """Discard all parts of a multipart upload."""
        ...

    async def list_page(
        self,
        prefix: str,
        continuation_token: Optional[str] = None,
    ) -> ListPage:
        """List one page of keys starting with prefix."""
        ...

    async def get_object(self, key: str) -> bytes:
        """Read a whole object. Raises NotFoundError if missing."""
        ...

    async def head_object(self, key: str) -> dict[str, Any]:
        """Read object metadata. Raises NotFoundError if missing."""
        ...

    async def delete_object(self, key: str) -> dict[str, Any]:
        """Delete an object. Missing keys are not an error."""
        ...

    async def presign_location(self, key: str, expires_in: int) -> str:
        """Signed GET URL for a key in this bucket."""
        ...

    async def presign_url(self, url: str, expires_in: int) -> str:
        """Signed GET URL for an absolute object URL."""
        ...

    def object_url(self, key: str) -> str:
        """Unsigned absolute URL of a key in this bucket."""
        ...
