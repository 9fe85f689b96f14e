"""Abstract object-store interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from urllib.parse import quote, urlencode


@dataclass(frozen=True)
class StoredObject:
    """An object read back from a storage backend."""

    key: str
    data: bytes
    content_type: str
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class ObjectStore(ABC):
    """Abstract base class for object-storage backends.

    Backends provide read-after-write consistency per key. Writing to an
    existing key overwrites it.
    """

    # True when public URLs point back at this gateway's GET route
    gateway_hosted: bool = False

    @abstractmethod
    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        region: Optional[str] = None,
    ) -> str:
        """Write bytes under a key.

        Args:
            bucket: Bucket or namespace to write into
            key: Object key
            data: Object content
            content_type: MIME type stored with the object
            region: Region used when building the location URL

        Returns:
            Dereferenceable location URL of the object

        Raises:
            StorageError: If the backend is unavailable or refuses the write
        """
        pass

    @abstractmethod
    async def get(self, bucket: str, key: str) -> StoredObject:
        """Read an object and its metadata.

        Raises:
            NotFoundError: If the key does not exist
            StorageError: If the backend fails
        """
        pass

    @abstractmethod
    async def delete(self, bucket: str, key: str) -> None:
        """Delete an object. Missing keys are not an error."""
        pass

    @abstractmethod
    def public_url(self, bucket: str, key: str, region: Optional[str] = None) -> str:
        """Build the location URL for a key."""
        pass

    @abstractmethod
    def get_backend_name(self) -> str:
        """Return backend identifier."""
        pass

    def close(self) -> None:
        """Release backend clients. No-op by default."""


def gateway_url(base_url: str, bucket: str, key: str, default_bucket: str) -> str:
    """URL of an object served by the gateway's own GET route.

    Objects outside the default bucket carry their bucket as a query
    parameter, so the same key in two buckets never shares a URL.
    """
    url = f"{base_url}/{quote(key, safe='/')}"
    if bucket != default_bucket:
        url += f"?{urlencode({'bucket': bucket})}"
    return url
