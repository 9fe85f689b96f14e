"""Storage key generation."""

import re
from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import uuid4

from repo_analyzer.core.exceptions import PayloadError

DEFAULT_PREFIX = "reports"
SUFFIX_LENGTH = 8
BUCKET_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,62}$")


def format_timestamp(now: datetime) -> str:
    """ISO-8601 UTC timestamp with ':' and '.' replaced so it is path safe.

    ``2024-05-01T10:11:12.123Z`` becomes ``2024-05-01T10-11-12-123Z``; the
    result still sorts chronologically as a string.
    """
    now = now.astimezone(timezone.utc)
    iso = now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
    return re.sub(r"[:.]", "-", iso)


def sanitize_filename(filename: str) -> str:
    """Remove path traversal and dangerous characters."""
    safe = filename.replace("../", "").replace("..\\", "")
    safe = safe.replace("/", "_").replace("\\", "_")
    safe = re.sub(r"[^a-zA-Z0-9._-]", "_", safe)
    safe = re.sub(r"\.{2,}", ".", safe)
    safe = safe.lstrip(".")
    return safe[:255]


def generate_key(
    original_name: Optional[str],
    prefix: str = DEFAULT_PREFIX,
    now: Optional[datetime] = None,
) -> str:
    """Derive a unique, chronologically sortable storage key.

    Format: ``{prefix}/{timestamp}-{8 hex chars}-{sanitized name}``. When the
    original name is missing or sanitizes to nothing, ``report-{timestamp}``
    is used instead.
    """
    timestamp = format_timestamp(now or datetime.now(timezone.utc))
    prefix = prefix.strip("/") or DEFAULT_PREFIX
    filename = sanitize_filename(original_name or "") or f"report-{timestamp}"
    suffix = uuid4().hex[:SUFFIX_LENGTH]
    return f"{prefix}/{timestamp}-{suffix}-{filename}"


def validate_key(key: str) -> str:
    """Check a caller-supplied key and return it unchanged.

    Raises:
        PayloadError: If the key is empty or could escape its namespace
    """
    if not key or not key.strip():
        raise PayloadError("key must not be empty")
    if key.startswith("/") or "\\" in key:
        raise PayloadError(f"Invalid key: {key}")
    if any(segment in ("", ".", "..") for segment in key.split("/")):
        raise PayloadError(f"Invalid key: {key}")
    return key


def validate_bucket(bucket: str) -> str:
    """Check a caller-supplied bucket name and return it unchanged.

    Raises:
        PayloadError: If the name is not a plain bucket name
    """
    if not BUCKET_PATTERN.match(bucket) or ".." in bucket:
        raise PayloadError(f"Invalid bucket: {bucket}")
    return bucket


class KeyGenerator:
    """Key generator bound to a default prefix and a clock."""

    def __init__(self, prefix: str = DEFAULT_PREFIX, clock: Optional[Callable[[], datetime]] = None):
        self.prefix = prefix
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def generate(self, original_name: Optional[str], prefix: Optional[str] = None) -> str:
        return generate_key(original_name, prefix or self.prefix, now=self._clock())
