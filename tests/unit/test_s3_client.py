"""
Unit tests for the S3 backend.

boto3 is replaced with a MagicMock client for the request-shaping and
error-mapping tests. The presigning tests use a real boto3 session with
dummy credentials; signing happens locally, so no network is needed.
"""

import io
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlsplit

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from blobstore.core.storage.errors import ConfigurationError, NotFoundError, StoreError
from blobstore.core.storage.models import CompletedPart
from blobstore.infrastructure.storage.client import (
    FALLBACK_REGION,
    InMemoryObjectStore,
    S3Config,
    S3ObjectStore,
    create_object_store,
)


def make_config(**overrides) -> S3Config:
    values = {
        "access_key_id": "AKIDEXAMPLE",
        "secret_access_key": "secret",
        "bucket_name": "test-bucket",
    }
    values.update(overrides)
    return S3Config(**values)


def client_error(code: str, operation: str = "GetObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def s3_client():
    """MagicMock standing in for the boto3 S3 client."""
    client = MagicMock()
    with patch("blobstore.infrastructure.storage.client.boto3.Session") as session_cls:
        session_cls.return_value.client.return_value = client
        yield client


@pytest.fixture
def s3_store(s3_client):
    return S3ObjectStore(make_config())


# ---------------------------------------------------------------------------
# S3Config Tests
# ---------------------------------------------------------------------------

class TestS3Config:

    @pytest.mark.parametrize("missing", ["access_key_id", "secret_access_key", "bucket_name"])
    def test_required_fields(self, missing):
        """Missing credentials or bucket fail at construction."""
        with pytest.raises(ConfigurationError, match=missing):
            make_config(**{missing: ""})

    def test_bucket_region_wins(self):
        config = make_config(bucket_region="us-east-1", default_region="eu-central-1")
        assert config.region == "us-east-1"

    def test_default_region_is_second_choice(self):
        assert make_config(default_region="eu-central-1").region == "eu-central-1"

    def test_fallback_region(self):
        assert make_config().region == FALLBACK_REGION == "eu-west-2"


# ---------------------------------------------------------------------------
# Client construction
# ---------------------------------------------------------------------------

class TestClientConstruction:

    def test_session_gets_credentials_and_region(self):
        with patch("blobstore.infrastructure.storage.client.boto3.Session") as session_cls:
            S3ObjectStore(make_config(session_token="token", bucket_region="us-west-2"))

        session_cls.assert_called_once_with(
            aws_access_key_id="AKIDEXAMPLE",
            aws_secret_access_key="secret",
            aws_session_token="token",
            region_name="us-west-2",
        )

    def test_endpoint_override_uses_path_style(self):
        with patch("blobstore.infrastructure.storage.client.boto3.Session") as session_cls:
            S3ObjectStore(make_config(endpoint_url="http://localhost:9000"))

        _, kwargs = session_cls.return_value.client.call_args
        assert kwargs["endpoint_url"] == "http://localhost:9000"
        assert kwargs["config"].s3 == {"addressing_style": "path"}
        assert kwargs["config"].signature_version == "s3v4"


# ---------------------------------------------------------------------------
# Request shaping
# ---------------------------------------------------------------------------

class TestRequests:

    async def test_put_object_sends_checksum_and_params(self, s3_store, s3_client):
        s3_client.put_object.return_value = {"ETag": '"abc"'}

        response = await s3_store.put_object(
            "a/b.json",
            b"{}",
            "md5==",
            {"ContentType": "application/json"},
        )

        assert response == {"ETag": '"abc"'}
        s3_client.put_object.assert_called_once_with(
            Bucket="test-bucket",
            Key="a/b.json",
            Body=b"{}",
            ContentMD5="md5==",
            ContentType="application/json",
        )

    async def test_multipart_calls(self, s3_store, s3_client):
        s3_client.create_multipart_upload.return_value = {"UploadId": "up-1"}
        s3_client.upload_part.return_value = {"ETag": '"p1"'}

        upload_id = await s3_store.create_multipart_upload("big.bin", {"ACL": "private"})
        etag = await s3_store.upload_part("big.bin", upload_id, 1, b"data", "md5==")
        await s3_store.complete_multipart_upload(
            "big.bin",
            upload_id,
            [CompletedPart(1, etag), CompletedPart(2, '"p2"')],
        )

        assert upload_id == "up-1"
        assert etag == '"p1"'
        s3_client.create_multipart_upload.assert_called_once_with(
            Bucket="test-bucket", Key="big.bin", ACL="private",
        )
        s3_client.complete_multipart_upload.assert_called_once_with(
            Bucket="test-bucket",
            Key="big.bin",
            UploadId="up-1",
            MultipartUpload={"Parts": [
                {"ETag": '"p1"', "PartNumber": 1},
                {"ETag": '"p2"', "PartNumber": 2},
            ]},
        )

    async def test_abort(self, s3_store, s3_client):
        await s3_store.abort_multipart_upload("big.bin", "up-1")

        s3_client.abort_multipart_upload.assert_called_once_with(
            Bucket="test-bucket", Key="big.bin", UploadId="up-1",
        )

    async def test_list_page_passes_continuation_token(self, s3_store, s3_client):
        s3_client.list_objects_v2.return_value = {
            "Contents": [{"Key": "p/a"}, {"Key": "p/b"}],
            "IsTruncated": True,
            "NextContinuationToken": "next",
        }

        page = await s3_store.list_page("p/", "token-1")

        assert page.keys == ["p/a", "p/b"]
        assert page.next_token == "next"
        s3_client.list_objects_v2.assert_called_once_with(
            Bucket="test-bucket", Prefix="p/", ContinuationToken="token-1",
        )

    async def test_list_page_last_page(self, s3_store, s3_client):
        """No Contents and no truncation means an empty final page."""
        s3_client.list_objects_v2.return_value = {"IsTruncated": False}

        page = await s3_store.list_page("empty/")

        assert page.keys == []
        assert page.next_token is None
        s3_client.list_objects_v2.assert_called_once_with(Bucket="test-bucket", Prefix="empty/")

    async def test_get_object_reads_and_closes_body(self, s3_store, s3_client):
        body = io.BytesIO(b"payload")
        s3_client.get_object.return_value = {"Body": body}

        assert await s3_store.get_object("a.bin") == b"payload"
        assert body.closed


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

class TestErrorMapping:

    @pytest.mark.parametrize("code", ["NoSuchKey", "404", "NotFound"])
    async def test_missing_key_is_not_found(self, s3_store, s3_client, code):
        s3_client.get_object.side_effect = client_error(code)

        with pytest.raises(NotFoundError) as exc_info:
            await s3_store.get_object("missing.json")

        assert exc_info.value.bucket == "test-bucket"
        assert exc_info.value.location == "missing.json"

    async def test_other_client_errors_are_store_errors(self, s3_store, s3_client):
        error = client_error("AccessDenied", "PutObject")
        s3_client.put_object.side_effect = error

        with pytest.raises(StoreError) as exc_info:
            await s3_store.put_object("a.bin", b"x", "md5==", {})

        assert exc_info.value.cause is error
        assert not isinstance(exc_info.value, NotFoundError)

    async def test_transport_errors_are_store_errors(self, s3_store, s3_client):
        s3_client.head_object.side_effect = EndpointConnectionError(endpoint_url="http://s3")

        with pytest.raises(StoreError):
            await s3_store.head_object("a.bin")

    async def test_delete_of_missing_key_succeeds(self, s3_store, s3_client):
        s3_client.delete_object.side_effect = client_error("NoSuchKey", "DeleteObject")

        assert await s3_store.delete_object("gone.bin") == {}


# ---------------------------------------------------------------------------
# Presigning and URLs
# ---------------------------------------------------------------------------

class TestObjectUrl:

    def test_virtual_hosted_url(self, s3_client):
        store = S3ObjectStore(make_config(bucket_region="us-east-1"))
        assert store.object_url("a/b c.json") == (
            "https://test-bucket.s3.us-east-1.amazonaws.com/a/b%20c.json"
        )

    def test_endpoint_url_is_path_style(self, s3_client):
        store = S3ObjectStore(make_config(endpoint_url="http://localhost:9000/"))
        assert store.object_url("a.json") == "http://localhost:9000/test-bucket/a.json"


class TestPresigning:
    """Uses real boto3 signing against a local endpoint."""

    @pytest.fixture
    def real_store(self):
        return S3ObjectStore(make_config(endpoint_url="http://localhost:9000"))

    async def test_presign_location(self, real_store):
        url = await real_store.presign_location("a/b.json", 3600)

        parts = urlsplit(url)
        query = parse_qs(parts.query)
        assert parts.path == "/test-bucket/a/b.json"
        assert query["X-Amz-Expires"] == ["3600"]
        assert "X-Amz-Signature" in query

    async def test_location_and_url_sign_the_same_object(self, real_store):
        location = "a/b.json"

        by_location = urlsplit(await real_store.presign_location(location, 3600))
        by_url = urlsplit(await real_store.presign_url(real_store.object_url(location), 3600))

        assert (by_location.netloc, by_location.path) == (by_url.netloc, by_url.path)
        for signed in (by_location, by_url):
            query = parse_qs(signed.query)
            assert query["X-Amz-Expires"] == ["3600"]
            assert query["X-Amz-Algorithm"] == ["AWS4-HMAC-SHA256"]
            assert "X-Amz-Signature" in query
            assert f"/{FALLBACK_REGION}/s3/" in query["X-Amz-Credential"][0]


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

class TestCreateObjectStore:

    def test_mock_mode_returns_in_memory_store(self):
        store = create_object_store(mock_mode=True)

        assert isinstance(store, InMemoryObjectStore)
        assert store.bucket == "local-bucket"

    def test_mock_mode_keeps_configured_bucket_name(self):
        store = create_object_store(make_config(), mock_mode=True)
        assert store.bucket == "test-bucket"

    def test_requires_config_outside_mock_mode(self):
        with pytest.raises(ConfigurationError):
            create_object_store()

    def test_returns_s3_store(self, s3_client):
        assert isinstance(create_object_store(make_config()), S3ObjectStore)
