"""Tests for storage backends."""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError
from google.api_core.exceptions import Forbidden

from repo_analyzer.core.config import Settings
from repo_analyzer.core.exceptions import NotFoundError, StorageError
from repo_analyzer.storage import get_object_store
from repo_analyzer.storage.gcs import GCSObjectStore
from repo_analyzer.storage.local import LocalObjectStore
from repo_analyzer.storage.memory import MemoryObjectStore
from repo_analyzer.storage.s3 import S3ObjectStore


class TestLocalObjectStore:
    """Tests for local filesystem backend."""

    @pytest.mark.asyncio
    async def test_put_and_get(self, tmp_path):
        backend = LocalObjectStore(
            base_path=tmp_path, base_url="http://localhost:3000", default_bucket="bucket"
        )

        url = await backend.put("bucket", "reports/a.json", b'{"a": 1}', "application/json")

        assert url == "http://localhost:3000/reports/a.json"
        assert (tmp_path / "bucket" / "objects" / "reports" / "a.json").read_bytes() == b'{"a": 1}'

        stored = await backend.get("bucket", "reports/a.json")
        assert stored.data == b'{"a": 1}'
        assert stored.content_type == "application/json"
        assert stored.etag
        assert stored.last_modified is not None

    @pytest.mark.asyncio
    async def test_get_missing(self, tmp_path):
        backend = LocalObjectStore(base_path=tmp_path)

        with pytest.raises(NotFoundError):
            await backend.get("bucket", "missing.txt")

    @pytest.mark.asyncio
    async def test_key_escaping_bucket_is_refused(self, tmp_path):
        backend = LocalObjectStore(base_path=tmp_path)

        with pytest.raises(StorageError, match="outside"):
            await backend.put("bucket", "../../escape.txt", b"x", "text/plain")

        assert not (tmp_path.parent / "escape.txt").exists()

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, tmp_path):
        backend = LocalObjectStore(base_path=tmp_path)
        await backend.put("bucket", "k.txt", b"x", "text/plain")

        await backend.delete("bucket", "k.txt")
        await backend.delete("bucket", "k.txt")

        with pytest.raises(NotFoundError):
            await backend.get("bucket", "k.txt")

    def test_get_backend_name(self):
        assert LocalObjectStore().get_backend_name() == "local"


class TestMemoryObjectStore:
    """Tests for in-memory backend."""

    @pytest.mark.asyncio
    async def test_round_trip_and_delete(self):
        backend = MemoryObjectStore(base_url="https://cdn.example.com/", default_bucket="b")

        url = await backend.put("b", "k", b"data", "text/plain")
        assert url == "https://cdn.example.com/k"
        assert (await backend.get("b", "k")).content_type == "text/plain"

        await backend.delete("b", "k")
        with pytest.raises(NotFoundError):
            await backend.get("b", "k")

    @pytest.mark.asyncio
    async def test_same_key_in_two_buckets_gets_two_urls(self):
        backend = MemoryObjectStore(base_url="https://cdn.example.com", default_bucket="main")

        main_url = await backend.put("main", "same.txt", b"main", "text/plain")
        archive_url = await backend.put("archive", "same.txt", b"archive", "text/plain")

        assert main_url == "https://cdn.example.com/same.txt"
        assert archive_url == "https://cdn.example.com/same.txt?bucket=archive"


class TestS3ObjectStore:
    """Tests for S3 backend."""

    @pytest.fixture
    def s3_client(self):
        with patch("repo_analyzer.storage.s3.boto3") as mock_boto3:
            client = MagicMock()
            mock_boto3.session.Session.return_value.client.return_value = client
            yield client

    @pytest.mark.asyncio
    async def test_put(self, s3_client):
        backend = S3ObjectStore(region="eu-central-1", acl="public-read")

        url = await backend.put("my-bucket", "reports/a.json", b"{}", "application/json")

        s3_client.put_object.assert_called_once_with(
            Bucket="my-bucket",
            Key="reports/a.json",
            Body=b"{}",
            ContentType="application/json",
            ACL="public-read",
        )
        assert url == "https://my-bucket.s3.eu-central-1.amazonaws.com/reports/a.json"

    @pytest.mark.asyncio
    async def test_put_without_acl_and_region_override(self, s3_client):
        backend = S3ObjectStore(region="eu-central-1")

        url = await backend.put("b", "k.txt", b"x", "text/plain", region="us-east-1")

        assert "ACL" not in s3_client.put_object.call_args.kwargs
        assert url == "https://b.s3.us-east-1.amazonaws.com/k.txt"

    def test_public_base_url(self, s3_client):
        backend = S3ObjectStore(
            region="auto", public_base_url="https://files.example.com/", public_bucket="b"
        )

        assert backend.public_url("b", "reports/x.json") == "https://files.example.com/reports/x.json"

    def test_public_base_url_only_fronts_its_bucket(self, s3_client):
        backend = S3ObjectStore(
            region="eu-central-1", public_base_url="https://files.example.com", public_bucket="b"
        )

        assert (
            backend.public_url("archive", "x.json")
            == "https://archive.s3.eu-central-1.amazonaws.com/x.json"
        )

    def test_endpoint_url_gives_path_style_urls(self, s3_client):
        backend = S3ObjectStore(region="auto", endpoint_url="http://minio:9000/")

        assert backend.public_url("archive", "x.json") == "http://minio:9000/archive/x.json"

    @pytest.mark.asyncio
    async def test_put_failure(self, s3_client):
        s3_client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "PutObject"
        )
        backend = S3ObjectStore(region="eu-central-1")

        with pytest.raises(StorageError, match="Access Denied"):
            await backend.put("b", "k", b"x", "text/plain")

    @pytest.mark.asyncio
    async def test_get(self, s3_client):
        body = MagicMock()
        body.read.return_value = b"content"
        s3_client.get_object.return_value = {
            "Body": body,
            "ContentType": "text/plain",
            "ETag": '"abc123"',
        }
        backend = S3ObjectStore(region="eu-central-1")

        stored = await backend.get("b", "k")

        assert stored.data == b"content"
        assert stored.content_type == "text/plain"
        assert stored.etag == "abc123"
        body.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_get_missing(self, s3_client):
        s3_client.get_object.side_effect = ClientError(
            {"Error": {"Code": "NoSuchKey", "Message": "Not Found"}}, "GetObject"
        )
        backend = S3ObjectStore(region="eu-central-1")

        with pytest.raises(NotFoundError):
            await backend.get("b", "missing")

    @pytest.mark.asyncio
    async def test_get_unreachable_endpoint(self, s3_client):
        s3_client.get_object.side_effect = EndpointConnectionError(endpoint_url="https://s3.invalid")
        backend = S3ObjectStore(region="eu-central-1")

        with pytest.raises(StorageError):
            await backend.get("b", "k")

        assert s3_client.get_object.call_count == 3

    @pytest.mark.asyncio
    async def test_delete(self, s3_client):
        backend = S3ObjectStore(region="eu-central-1")

        await backend.delete("b", "k")

        s3_client.delete_object.assert_called_once_with(Bucket="b", Key="k")


class TestGCSObjectStore:
    """Tests for GCS backend."""

    @pytest.fixture
    def gcs_bucket(self):
        with patch("repo_analyzer.storage.gcs.storage.Client") as mock_client_class:
            bucket = MagicMock()
            mock_client_class.return_value.bucket.return_value = bucket
            yield bucket

    @pytest.mark.asyncio
    async def test_put(self, gcs_bucket):
        backend = GCSObjectStore(project_id="test-project")

        url = await backend.put("test-bucket", "reports/a.csv", b"a,b", "text/csv")

        gcs_bucket.blob.assert_called_once_with("reports/a.csv")
        gcs_bucket.blob.return_value.upload_from_string.assert_called_once_with(
            b"a,b", content_type="text/csv"
        )
        assert url == "https://storage.googleapis.com/test-bucket/reports/a.csv"

    @pytest.mark.asyncio
    async def test_put_forbidden(self, gcs_bucket):
        gcs_bucket.blob.return_value.upload_from_string.side_effect = Forbidden("denied")
        backend = GCSObjectStore()

        with pytest.raises(StorageError, match="Access denied"):
            await backend.put("test-bucket", "k", b"x", "text/plain")

    @pytest.mark.asyncio
    async def test_get(self, gcs_bucket):
        blob = MagicMock()
        blob.download_as_bytes.return_value = b"payload"
        blob.content_type = "application/json"
        blob.etag = "CJ2c"
        blob.updated = None
        gcs_bucket.get_blob.return_value = blob
        backend = GCSObjectStore()

        stored = await backend.get("test-bucket", "k.json")

        assert stored.data == b"payload"
        assert stored.content_type == "application/json"
        assert stored.etag == "CJ2c"

    @pytest.mark.asyncio
    async def test_get_missing(self, gcs_bucket):
        gcs_bucket.get_blob.return_value = None
        backend = GCSObjectStore()

        with pytest.raises(NotFoundError):
            await backend.get("test-bucket", "missing")

    def test_public_base_url_only_fronts_its_bucket(self):
        backend = GCSObjectStore(public_base_url="https://cdn.example.com", public_bucket="main")

        assert backend.public_url("main", "a.csv") == "https://cdn.example.com/a.csv"
        assert backend.public_url("archive", "a.csv") == "https://storage.googleapis.com/archive/a.csv"

    def test_get_backend_name(self):
        assert GCSObjectStore().get_backend_name() == "gcs"


class TestFactory:
    """Tests for backend selection."""

    def test_memory_backend(self):
        store = get_object_store(Settings(_env_file=None, STORAGE_BACKEND="memory"))
        assert isinstance(store, MemoryObjectStore)

    def test_local_backend(self, tmp_path):
        store = get_object_store(
            Settings(_env_file=None, STORAGE_BACKEND="local", LOCAL_STORAGE_PATH=str(tmp_path))
        )
        assert isinstance(store, LocalObjectStore)
        assert store.base_path == tmp_path

    def test_s3_backend(self):
        with patch("repo_analyzer.storage.s3.boto3"):
            store = get_object_store(Settings(_env_file=None, STORAGE_BACKEND="S3"))
        assert isinstance(store, S3ObjectStore)

    def test_gcs_backend(self):
        store = get_object_store(Settings(_env_file=None, STORAGE_BACKEND="gcs"))
        assert isinstance(store, GCSObjectStore)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown STORAGE_BACKEND"):
            get_object_store(Settings(_env_file=None, STORAGE_BACKEND="ftp"))
