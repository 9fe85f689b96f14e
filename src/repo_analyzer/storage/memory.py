"""In-memory storage backend."""

import hashlib
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from repo_analyzer.core.exceptions import NotFoundError
from repo_analyzer.storage.base import ObjectStore, StoredObject, gateway_url


class MemoryObjectStore(ObjectStore):
    """Dict-backed object store for tests and ephemeral runs."""

    gateway_hosted = True

    def __init__(self, base_url: str = "http://localhost:3000", default_bucket: str = ""):
        self.base_url = base_url.rstrip("/")
        self.default_bucket = default_bucket
        self._objects: Dict[Tuple[str, str], StoredObject] = {}

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        region: Optional[str] = None,
    ) -> str:
        self._objects[(bucket, key)] = StoredObject(
            key=key,
            data=bytes(data),
            content_type=content_type,
            etag=hashlib.md5(data).hexdigest(),
            last_modified=datetime.now(timezone.utc),
        )
        return self.public_url(bucket, key, region)

    async def get(self, bucket: str, key: str) -> StoredObject:
        try:
            return self._objects[(bucket, key)]
        except KeyError:
            raise NotFoundError(f"Object not found: {bucket}/{key}") from None

    async def delete(self, bucket: str, key: str) -> None:
        self._objects.pop((bucket, key), None)

    def public_url(self, bucket: str, key: str, region: Optional[str] = None) -> str:
        return gateway_url(self.base_url, bucket, key, self.default_bucket)

    def get_backend_name(self) -> str:
        return "memory"

    def __len__(self) -> int:
        return len(self._objects)
