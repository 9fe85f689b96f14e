"""S3 and S3-compatible (R2, MinIO) storage backend."""

import asyncio
import logging
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, ConnectionError as BotoConnectionError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from repo_analyzer.core.exceptions import NotFoundError, StorageError
from repo_analyzer.storage.base import ObjectStore, StoredObject

logger = logging.getLogger(__name__)

_MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


class S3ObjectStore(ObjectStore):
    """S3 storage backend.

    ``public_base_url`` replaces the bucket URL for ``public_bucket`` only,
    which is how an R2 bucket behind a custom domain is addressed. Other
    buckets get a path-style URL on ``endpoint_url`` or the virtual-hosted
    AWS URL.
    """

    def __init__(
        self,
        region: str,
        access_key_id: str = "",
        secret_access_key: str = "",
        endpoint_url: str = "",
        public_base_url: str = "",
        public_bucket: str = "",
        acl: str = "",
        timeout_seconds: float = 30.0,
    ):
        self.region = region
        self.public_base_url = public_base_url.rstrip("/")
        self.public_bucket = public_bucket
        self.endpoint_url = endpoint_url.rstrip("/")
        self.acl = acl
        session_kwargs: dict[str, Any] = {"region_name": region}
        if access_key_id and secret_access_key:
            session_kwargs["aws_access_key_id"] = access_key_id
            session_kwargs["aws_secret_access_key"] = secret_access_key
        session = boto3.session.Session(**session_kwargs)
        self.client = session.client(
            "s3",
            endpoint_url=endpoint_url or None,
            config=Config(
                connect_timeout=timeout_seconds,
                read_timeout=timeout_seconds,
                retries={"max_attempts": 1, "mode": "standard"},
            ),
        )

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        region: Optional[str] = None,
    ) -> str:
        params: dict[str, Any] = {
            "Bucket": bucket,
            "Key": key,
            "Body": data,
            "ContentType": content_type,
        }
        if self.acl:
            params["ACL"] = self.acl

        try:
            await asyncio.to_thread(self.client.put_object, **params)
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "Failed to upload object to S3",
                extra={"bucket": bucket, "key": key, "error": str(e)},
            )
            raise StorageError(f"Failed to upload file: {e}") from e

        return self.public_url(bucket, key, region)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception_type(BotoConnectionError),
        reraise=True,
    )
    def _download(self, bucket: str, key: str) -> StoredObject:
        response = self.client.get_object(Bucket=bucket, Key=key)
        body = response["Body"]
        try:
            data = body.read()
        finally:
            body.close()
        return StoredObject(
            key=key,
            data=data,
            content_type=response.get("ContentType") or "application/octet-stream",
            etag=(response.get("ETag") or "").strip('"') or None,
            last_modified=response.get("LastModified"),
        )

    async def get(self, bucket: str, key: str) -> StoredObject:
        try:
            return await asyncio.to_thread(self._download, bucket, key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING_KEY_CODES:
                raise NotFoundError(f"Object not found: s3://{bucket}/{key}") from e
            logger.error(
                "Failed to download object from S3",
                extra={"bucket": bucket, "key": key, "error": str(e)},
            )
            raise StorageError(f"Failed to download object: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to download object: {e}") from e

    async def delete(self, bucket: str, key: str) -> None:
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to delete object: {e}") from e

    def public_url(self, bucket: str, key: str, region: Optional[str] = None) -> str:
        if self.public_base_url and bucket == self.public_bucket:
            return f"{self.public_base_url}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url}/{bucket}/{key}"
        return f"https://{bucket}.s3.{region or self.region}.amazonaws.com/{key}"

    def get_backend_name(self) -> str:
        return "s3"

    def close(self) -> None:
        self.client.close()
