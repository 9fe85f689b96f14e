"""Google Cloud Storage backend."""

import asyncio
import logging
from typing import Optional

from google.api_core.exceptions import Forbidden, GoogleAPIError, NotFound, ServerError, TooManyRequests
from google.cloud import storage
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from repo_analyzer.core.exceptions import NotFoundError, StorageError
from repo_analyzer.storage.base import ObjectStore, StoredObject

logger = logging.getLogger(__name__)


class GCSObjectStore(ObjectStore):
    """Google Cloud Storage backend.

    ``public_base_url`` fronts ``public_bucket`` only; other buckets use the
    storage.googleapis.com URL.
    """

    def __init__(self, project_id: str = "", public_base_url: str = "", public_bucket: str = ""):
        self.project_id = project_id
        self.public_base_url = public_base_url.rstrip("/")
        self.public_bucket = public_bucket
        self._client: Optional[storage.Client] = None

    def _get_client(self) -> storage.Client:
        """Lazy-load and cache the GCS client."""
        if self._client is None:
            self._client = storage.Client(project=self.project_id or None)
        return self._client

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        region: Optional[str] = None,
    ) -> str:
        blob = self._get_client().bucket(bucket).blob(key)
        try:
            await asyncio.to_thread(blob.upload_from_string, data, content_type=content_type)
        except Forbidden as e:
            logger.error("Access forbidden to GCS bucket", extra={"bucket": bucket, "key": key})
            raise StorageError(f"Access denied: gs://{bucket}/{key}") from e
        except GoogleAPIError as e:
            logger.error(
                "Failed to upload object to GCS",
                extra={"bucket": bucket, "key": key, "error": str(e)},
            )
            raise StorageError(f"Failed to upload object: {e}") from e

        return self.public_url(bucket, key, region)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception_type((ServerError, TooManyRequests)),
        reraise=True,
    )
    def _download(self, bucket: str, key: str) -> StoredObject:
        blob = self._get_client().bucket(bucket).get_blob(key)
        if blob is None:
            raise NotFound(f"gs://{bucket}/{key}")
        data = blob.download_as_bytes()
        return StoredObject(
            key=key,
            data=data,
            content_type=blob.content_type or "application/octet-stream",
            etag=blob.etag,
            last_modified=blob.updated,
        )

    async def get(self, bucket: str, key: str) -> StoredObject:
        try:
            return await asyncio.to_thread(self._download, bucket, key)
        except NotFound as e:
            raise NotFoundError(f"Object not found: gs://{bucket}/{key}") from e
        except GoogleAPIError as e:
            logger.error(
                "Failed to download object from GCS",
                extra={"bucket": bucket, "key": key, "error": str(e)},
            )
            raise StorageError(f"Failed to download object: {e}") from e

    async def delete(self, bucket: str, key: str) -> None:
        blob = self._get_client().bucket(bucket).blob(key)
        try:
            await asyncio.to_thread(blob.delete)
        except NotFound:
            # Already gone
            return
        except GoogleAPIError as e:
            raise StorageError(f"Failed to delete object: {e}") from e

    def public_url(self, bucket: str, key: str, region: Optional[str] = None) -> str:
        if self.public_base_url and bucket == self.public_bucket:
            return f"{self.public_base_url}/{key}"
        return f"https://storage.googleapis.com/{bucket}/{key}"

    def get_backend_name(self) -> str:
        return "gcs"

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
