"""
Multipart upload framing.

Splits a payload into parts, sends them with at most `concurrency`
parts in flight, then finalizes the upload. Payloads that fit in a
single part go out as one put_object request, which is what the SDK
uploaders do as well.

Each request body carries a Content-MD5 so the backend rejects
anything corrupted in transit.
"""

import asyncio
import base64
import hashlib
import logging
from typing import Any, BinaryIO, Callable, Optional, Union

from .errors import ValidationError
from .models import (
    MAX_PARTS,
    CompletedPart,
    UploadOptions,
    UploadProgress,
    UploadResult,
)
from .store import ObjectStore

logger = logging.getLogger(__name__)


ProgressCallback = Callable[[UploadProgress], None]


def content_md5(body: bytes) -> str:
    """Base64 MD5 digest in the form S3 expects for Content-MD5."""
    return base64.b64encode(hashlib.md5(body).digest()).decode("ascii")


class _PartReader:
    """Reads fixed-size parts from bytes or a blocking binary stream."""

    def __init__(self, payload: Union[bytes, BinaryIO], part_size: int) -> None:
        self._part_size = part_size
        self._offset = 0
        if isinstance(payload, bytes):
            self._buffer: Optional[memoryview] = memoryview(payload)
            self._stream: Optional[BinaryIO] = None
            self.total: Optional[int] = len(payload)
        else:
            self._buffer = None
            self._stream = payload
            self.total = None

    async def next_part(self) -> bytes:
        """Next part, or b'' once the payload is exhausted."""
        if self._buffer is not None:
            end = self._offset + self._part_size
            chunk = bytes(self._buffer[self._offset:end])
            self._offset += len(chunk)
            return chunk
        return await asyncio.to_thread(self._read_stream)

    def _read_stream(self) -> bytes:
        # short reads are legal for raw streams, keep reading until full or EOF
        chunks: list[bytes] = []
        remaining = self._part_size
        while remaining > 0:
            data = self._stream.read(remaining)
            if not data:
                break
            if not isinstance(data, (bytes, bytearray, memoryview)):
                raise ValidationError(
                    f"RAW stream must yield bytes, got {type(data).__name__}"
                )
            chunks.append(data)
            remaining -= len(data)
        return b"".join(chunks)


class _ProgressTracker:
    """Accumulates acknowledged bytes and forwards events until closed."""

    def __init__(
        self,
        location: str,
        total: Optional[int],
        callback: Optional[ProgressCallback],
    ) -> None:
        self._location = location
        self._total = total
        self._callback = callback
        self._loaded = 0
        self._closed = False

    def advance(self, size: int, part: Optional[int] = None) -> None:
        if self._closed:
            return
        self._loaded += size
        event = UploadProgress(
            location=self._location,
            loaded=self._loaded,
            total=self._total,
            part=part,
        )
        logger.debug(
            "Upload progress",
            extra={
                "location": self._location,
                "loaded": event.loaded,
                "total": event.total,
                "part": event.part,
            }
        )
        if self._callback is not None:
            self._callback(event)

    def close(self) -> None:
        self._closed = True


class MultipartUploader:
    """
    One upload of one payload to one location.

    Not reusable: create a new uploader per call to BlobStore.create.
    """

    def __init__(
        self,
        store: ObjectStore,
        location: str,
        options: UploadOptions,
        params: Optional[dict[str, Any]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self._store = store
        self._location = location
        self._options = options
        self._params = dict(params or {})
        self._on_progress = on_progress

    async def upload(self, payload: Union[bytes, BinaryIO]) -> UploadResult:
        reader = _PartReader(payload, self._options.part_size)
        progress = _ProgressTracker(self._location, reader.total, self._on_progress)

        try:
            first = await reader.next_part()
            second = b""
            if len(first) == self._options.part_size:
                second = await reader.next_part()

            if not second:
                return await self._put_single(first, progress)
            return await self._put_multipart(reader, [first, second], progress)
        finally:
            progress.close()

    async def _put_single(self, body: bytes, progress: _ProgressTracker) -> UploadResult:
        response = await self._store.put_object(
            self._location,
            body,
            content_md5(body),
            self._params,
        )
        progress.advance(len(body))

        return UploadResult(
            location=self._location,
            bucket=self._store.bucket,
            etag=response.get("ETag"),
            version_id=response.get("VersionId"),
            parts=1,
        )

    async def _put_multipart(
        self,
        reader: _PartReader,
        buffered: list[bytes],
        progress: _ProgressTracker,
    ) -> UploadResult:
        upload_id = await self._store.create_multipart_upload(self._location, self._params)

        logger.debug(
            "Started multipart upload",
            extra={
                "location": self._location,
                "upload_id": upload_id,
                "concurrency": self._options.concurrency,
                "part_size": self._options.part_size,
            }
        )

        slots = asyncio.Semaphore(self._options.concurrency)
        tasks: list[asyncio.Task] = []

        try:
            part_number = 0
            while True:
                # a part is only read once a slot is free, so at most
                # `concurrency` parts are buffered or in flight
                await slots.acquire()
                _raise_first_failure(tasks)

                chunk = buffered.pop(0) if buffered else await reader.next_part()
                if not chunk:
                    slots.release()
                    break

                part_number += 1
                if part_number > MAX_PARTS:
                    slots.release()
                    raise ValidationError(
                        f"Upload exceeds {MAX_PARTS} parts; increase part_size"
                    )

                tasks.append(asyncio.create_task(
                    self._send_part(slots, upload_id, part_number, chunk, progress)
                ))

            parts = await asyncio.gather(*tasks)
            parts = sorted(parts, key=lambda part: part.part_number)

            response = await self._store.complete_multipart_upload(
                self._location,
                upload_id,
                parts,
            )
        except BaseException:
            progress.close()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await self._handle_failed_upload(upload_id)
            raise

        return UploadResult(
            location=self._location,
            bucket=self._store.bucket,
            etag=response.get("ETag"),
            version_id=response.get("VersionId"),
            parts=len(parts),
        )

    async def _send_part(
        self,
        slots: asyncio.Semaphore,
        upload_id: str,
        part_number: int,
        body: bytes,
        progress: _ProgressTracker,
    ) -> CompletedPart:
        try:
            etag = await self._store.upload_part(
                self._location,
                upload_id,
                part_number,
                body,
                content_md5(body),
            )
        finally:
            slots.release()

        progress.advance(len(body), part=part_number)
        return CompletedPart(part_number=part_number, etag=etag)

    async def _handle_failed_upload(self, upload_id: str) -> None:
        if self._options.leave_parts_on_error:
            logger.warning(
                "Multipart upload failed, leaving uploaded parts in place",
                extra={"location": self._location, "upload_id": upload_id}
            )
            return

        try:
            await self._store.abort_multipart_upload(self._location, upload_id)
        except Exception as e:
            # an abort failure never replaces the upload's own error
            logger.error(
                "Failed to abort multipart upload",
                extra={
                    "location": self._location,
                    "upload_id": upload_id,
                    "error": str(e),
                }
            )


def _raise_first_failure(tasks: list[asyncio.Task]) -> None:
    for task in tasks:
        if task.done() and not task.cancelled() and task.exception() is not None:
            raise task.exception()
