"""Upload orchestration: validate, derive key, write once, release."""

import asyncio
import logging
import mimetypes
from contextlib import contextmanager
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Optional, Set, Union

from repo_analyzer.core.exceptions import NotFoundError, PayloadError, StorageError, UploadError
from repo_analyzer.core.logging import object_key_context
from repo_analyzer.services.keys import KeyGenerator, validate_bucket, validate_key
from repo_analyzer.storage.base import ObjectStore, StoredObject

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class UploadRequest:
    """A single upload, alive only for the duration of one request.

    ``payload`` is either raw bytes or a binary file object such as the
    spooled temporary file behind a multipart upload. File objects are
    closed by :meth:`UploadService.upload` whatever the outcome.
    """

    payload: Union[BinaryIO, bytes, None]
    original_name: Optional[str] = None
    content_type: Optional[str] = None
    bucket: Optional[str] = None
    key: Optional[str] = None
    region: Optional[str] = None


@dataclass(frozen=True)
class UploadResult:
    """Outcome of a successful upload."""

    key: str
    url: str
    bucket: str
    region: str
    content_type: str
    size_bytes: int


@contextmanager
def staged(payload: Union[BinaryIO, bytes, None]) -> Iterator[Union[BinaryIO, bytes, None]]:
    """Scope a staged payload; file objects are closed on exit."""
    try:
        yield payload
    finally:
        if payload is not None and not isinstance(payload, (bytes, bytearray)):
            payload.close()


def resolve_content_type(declared: Optional[str], original_name: Optional[str]) -> str:
    """Declared type, else a guess from the filename, else octet-stream."""
    if declared and declared.strip():
        return declared.strip()
    if original_name:
        guessed, _ = mimetypes.guess_type(original_name)
        if guessed:
            return guessed
    return DEFAULT_CONTENT_TYPE


class UploadService:
    """Writes uploaded payloads to an object store.

    Each call makes at most one write attempt and no retries; callers may
    retry the whole request.

    A write that outlives ``storage_timeout`` is reported as failed, but the
    backend call cannot be interrupted once it is running in a worker
    thread. It is left to finish and the object is then deleted, so a
    timed-out upload does not surface later under its key.
    """

    def __init__(
        self,
        store: ObjectStore,
        default_bucket: str,
        default_region: str,
        max_upload_bytes: int = 10 * 1024 * 1024,
        storage_timeout: float = 30.0,
        key_generator: Optional[KeyGenerator] = None,
    ):
        self.store = store
        self.default_bucket = default_bucket
        self.default_region = default_region
        self.max_upload_bytes = max_upload_bytes
        self.storage_timeout = storage_timeout
        self.key_generator = key_generator if key_generator is not None else KeyGenerator()
        self._late_writes: Set[asyncio.Task] = set()

    def _read_payload(self, payload: Union[BinaryIO, bytes, None]) -> bytes:
        if payload is None:
            raise PayloadError("No file uploaded")

        if isinstance(payload, (bytes, bytearray)):
            data = bytes(payload)
        else:
            try:
                payload.seek(0)
            except (AttributeError, OSError):
                # Non-seekable stream, read from where it stands
                pass
            # One byte past the ceiling is enough to detect oversize input
            data = payload.read(self.max_upload_bytes + 1)

        if len(data) > self.max_upload_bytes:
            raise PayloadError(
                f"File size exceeds maximum allowed size of "
                f"{self.max_upload_bytes // (1024 * 1024)}MB"
            )
        return data

    async def upload(self, request: UploadRequest) -> UploadResult:
        """Store the payload and return its location.

        Raises:
            PayloadError: Missing or oversized payload, or an invalid explicit key
            UploadError: The backend write failed or timed out
        """
        with staged(request.payload) as payload:
            data = self._read_payload(payload)

            bucket = validate_bucket(request.bucket) if request.bucket else self.default_bucket
            region = request.region or self.default_region
            if request.key:
                key = validate_key(request.key)
            else:
                key = self.key_generator.generate(request.original_name)
            content_type = resolve_content_type(request.content_type, request.original_name)

            object_key_context.set(key)
            logger.info(
                f"Uploading file to {self.store.get_backend_name()}: {bucket}/{key}",
                extra={"bucket": bucket, "key": key, "size_bytes": len(data)},
            )

            write = asyncio.ensure_future(self.store.put(bucket, key, data, content_type, region))
            try:
                url = await asyncio.wait_for(asyncio.shield(write), timeout=self.storage_timeout)
            except asyncio.TimeoutError:
                logger.error(
                    "Storage write timed out",
                    extra={"bucket": bucket, "key": key, "timeout": self.storage_timeout},
                )
                self._discard_when_done(write, bucket, key)
                raise UploadError(
                    f"Storage write timed out after {self.storage_timeout}s"
                ) from StorageError("timeout")
            except StorageError as e:
                logger.error(
                    f"Error uploading file: {e.message}",
                    extra={"bucket": bucket, "key": key},
                )
                raise UploadError(e.message) from e

        logger.info(f"File uploaded successfully: {url}", extra={"bucket": bucket, "key": key})
        return UploadResult(
            key=key,
            url=url,
            bucket=bucket,
            region=region,
            content_type=content_type,
            size_bytes=len(data),
        )

    def _discard_when_done(self, write: asyncio.Future, bucket: str, key: str) -> None:
        """Delete the object once a timed-out write finally completes."""

        async def discard() -> None:
            try:
                await write
            except Exception as e:
                # The write failed after all; nothing to clean up
                logger.debug(f"Timed-out write failed: {e}", extra={"bucket": bucket, "key": key})
                return
            try:
                await self.store.delete(bucket, key)
            except StorageError as e:
                logger.error(
                    f"Could not remove late write: {e.message}",
                    extra={"bucket": bucket, "key": key},
                )
                return
            logger.warning("Removed object written after timeout", extra={"bucket": bucket, "key": key})

        task = asyncio.ensure_future(discard())
        self._late_writes.add(task)
        task.add_done_callback(self._late_writes.discard)

    async def drain(self) -> None:
        """Wait for pending clean-up of timed-out writes."""
        if self._late_writes:
            await asyncio.gather(*self._late_writes, return_exceptions=True)

    async def fetch(self, key: str, bucket: Optional[str] = None) -> StoredObject:
        """Read a stored object back.

        Buckets other than the default are only readable when the store's
        public URLs point at this gateway.

        Raises:
            NotFoundError: The key or bucket is unknown or invalid
            StorageError: The backend read failed
        """
        bucket = bucket or self.default_bucket
        try:
            key = validate_key(key)
            validate_bucket(bucket)
        except PayloadError:
            raise NotFoundError(f"Object not found: {key}") from None
        if bucket != self.default_bucket and not self.store.gateway_hosted:
            raise NotFoundError(f"Object not found: {key}")
        return await self.store.get(bucket, key)
