"""Shared fixtures: in-memory stores and a facade over them."""

import asyncio
from typing import Optional

import pytest

from blobstore.core.storage.errors import StoreError
from blobstore.core.storage.facade import BlobStore
from blobstore.infrastructure.storage.client import InMemoryObjectStore


class InstrumentedStore(InMemoryObjectStore):
    """
    In-memory store that records part uploads.

    Each upload_part call sleeps briefly so overlapping calls are
    observable, and can be told to fail a given part number.
    """

    def __init__(
        self,
        delay: float = 0.01,
        fail_part: Optional[int] = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.delay = delay
        self.fail_part = fail_part
        self.in_flight = 0
        self.max_in_flight = 0
        self.started_parts: list[int] = []
        self.aborted: list[str] = []

    async def upload_part(self, key, upload_id, part_number, body, content_md5):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.started_parts.append(part_number)
        try:
            await asyncio.sleep(self.delay)
            if part_number == self.fail_part:
                raise StoreError(f"part {part_number} rejected")
            return await super().upload_part(key, upload_id, part_number, body, content_md5)
        finally:
            self.in_flight -= 1

    async def abort_multipart_upload(self, key, upload_id):
        self.aborted.append(upload_id)
        await super().abort_multipart_upload(key, upload_id)


@pytest.fixture
def memory_store():
    return InMemoryObjectStore(bucket="test-bucket")


@pytest.fixture
def blob_store(memory_store):
    return BlobStore(memory_store)


@pytest.fixture
def instrumented_store():
    """Factory for InstrumentedStore with per-test settings."""
    def _make(**kwargs) -> InstrumentedStore:
        kwargs.setdefault("bucket", "test-bucket")
        return InstrumentedStore(**kwargs)
    return _make
