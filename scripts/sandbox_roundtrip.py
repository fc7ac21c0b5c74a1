#!/usr/bin/env python3
"""
Round-trip a file through the configured bucket.

Uploads a file, reads it back as a named file, prints a signed URL,
then deletes it. Useful for checking credentials and bucket
permissions before deploying.

Usage:
    python scripts/sandbox_roundtrip.py --file image.png
    python scripts/sandbox_roundtrip.py --size-mb 12   # random payload, multipart
    python scripts/sandbox_roundtrip.py --mock

Requires:
    - .env file with AWS credentials and AWS_S3_BUCKET_NAME (unless --mock)
"""

import asyncio
import os
import sys
from pathlib import Path

# Add project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from blobstore.api.dependencies import build_blob_store
from blobstore.config.settings import Settings
from blobstore.core.storage import BlobStore, BlobStoreError, Format, NamedFile, UploadProgress


def print_progress(event: UploadProgress) -> None:
    if event.total:
        print(f"  uploaded {event.loaded}/{event.total} bytes")
    else:
        print(f"  uploaded {event.loaded} bytes")


async def roundtrip(blob_store: BlobStore, location: str, data: bytes) -> bool:
    print(f"Uploading {len(data)} bytes to {blob_store.bucket}/{location}")
    result = await blob_store.create(location, data, on_progress=print_progress)
    print(f"[OK] Uploaded: etag={result.etag} parts={result.parts}")

    stored = await blob_store.find_one(location, format=Format.NAMED_FILE)
    if not isinstance(stored, NamedFile) or stored.buffer != data:
        print("[ERR] Retrieved object does not match what was uploaded")
        return False
    print(f"[OK] Retrieved {stored.name}, size: {stored.size} bytes")

    url = await blob_store.get_signed_url_for_location(location, expires_in=300)
    print(f"[OK] Signed URL (5 min): {url}")

    await blob_store.remove(location)
    print(f"[OK] Deleted {location}")
    return True


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Upload, read back and delete a test object')
    parser.add_argument('--file', help='File to upload (random bytes if omitted)')
    parser.add_argument('--size-mb', type=float, default=1.0, help='Size of random payload')
    parser.add_argument('--location', default=None, help='Key to use in the bucket')
    parser.add_argument('--mock', action='store_true', help='Use the in-memory store')
    args = parser.parse_args()

    if args.file:
        if not os.path.exists(args.file):
            print(f"ERROR: Cannot find {args.file}")
            sys.exit(1)
        data = Path(args.file).read_bytes()
        location = args.location or f"sandbox/{Path(args.file).name}"
    else:
        data = os.urandom(int(args.size_mb * 1024 * 1024))
        location = args.location or "sandbox/random.bin"

    settings = Settings(s3_mock_mode=True) if args.mock else Settings()
    missing = settings.validate_required_fields()
    if missing:
        print(f"ERROR: Missing configuration: {', '.join(missing)}")
        sys.exit(1)

    try:
        success = asyncio.run(roundtrip(build_blob_store(settings), location, data))
    except BlobStoreError as e:
        print(f"ERROR: {e}")
        success = False

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
