"""Local filesystem storage backend."""

import hashlib
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from repo_analyzer.core.exceptions import NotFoundError, StorageError
from repo_analyzer.storage.base import ObjectStore, StoredObject, gateway_url

logger = logging.getLogger(__name__)


class LocalObjectStore(ObjectStore):
    """Local filesystem storage backend.

    Layout: ``{base_path}/{bucket}/objects/{key}`` for content and
    ``{base_path}/{bucket}/meta/{key}.json`` for content type and etag.
    """

    gateway_hosted = True

    def __init__(
        self,
        base_path: str | Path = "data/objects",
        base_url: str = "http://localhost:3000",
        default_bucket: str = "",
    ):
        self.base_path = Path(base_path)
        self.base_url = base_url.rstrip("/")
        self.default_bucket = default_bucket

    def _paths(self, bucket: str, key: str) -> tuple[Path, Path]:
        """Resolve content and metadata paths, refusing keys that escape the bucket."""
        bucket_root = (self.base_path / bucket).resolve()
        objects_root = bucket_root / "objects"
        object_path = (objects_root / key).resolve()
        if not object_path.is_relative_to(objects_root):
            raise StorageError(f"Key resolves outside bucket: {key}")
        meta_path = bucket_root / "meta" / f"{object_path.relative_to(objects_root)}.json"
        return object_path, meta_path

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        region: Optional[str] = None,
    ) -> str:
        object_path, meta_path = self._paths(bucket, key)
        etag = hashlib.md5(data).hexdigest()
        try:
            object_path.parent.mkdir(parents=True, exist_ok=True)
            meta_path.parent.mkdir(parents=True, exist_ok=True)
            object_path.write_bytes(data)
            meta_path.write_text(
                json.dumps({"content_type": content_type, "etag": etag}),
                encoding="utf-8",
            )
        except OSError as e:
            logger.error(
                "Failed to write object to local storage",
                extra={"bucket": bucket, "key": key, "error": str(e)},
            )
            raise StorageError(f"Failed to write object: {e}") from e

        return self.public_url(bucket, key, region)

    async def get(self, bucket: str, key: str) -> StoredObject:
        object_path, meta_path = self._paths(bucket, key)
        if not object_path.is_file():
            raise NotFoundError(f"Object not found: {bucket}/{key}")

        try:
            data = object_path.read_bytes()
            metadata = {}
            if meta_path.is_file():
                metadata = json.loads(meta_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to read object: {e}") from e

        return StoredObject(
            key=key,
            data=data,
            content_type=metadata.get("content_type", "application/octet-stream"),
            etag=metadata.get("etag") or hashlib.md5(data).hexdigest(),
            last_modified=datetime.fromtimestamp(object_path.stat().st_mtime, tz=timezone.utc),
        )

    async def delete(self, bucket: str, key: str) -> None:
        object_path, meta_path = self._paths(bucket, key)
        try:
            object_path.unlink(missing_ok=True)
            meta_path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete object: {e}") from e

    def public_url(self, bucket: str, key: str, region: Optional[str] = None) -> str:
        return gateway_url(self.base_url, bucket, key, self.default_bucket)

    def get_backend_name(self) -> str:
        return "local"
