"""Storage backend selection."""

import logging

from repo_analyzer.core.config import Settings
from repo_analyzer.storage.base import ObjectStore

logger = logging.getLogger(__name__)


def get_object_store(settings: Settings) -> ObjectStore:
    """Build the object store named by STORAGE_BACKEND.

    Raises:
        ValueError: If the backend name is unknown
    """
    backend = settings.STORAGE_BACKEND.lower()

    if backend == "s3":
        from repo_analyzer.storage.s3 import S3ObjectStore

        store: ObjectStore = S3ObjectStore(
            region=settings.STORAGE_REGION,
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            endpoint_url=settings.S3_ENDPOINT_URL,
            public_base_url=settings.PUBLIC_BASE_URL,
            public_bucket=settings.STORAGE_BUCKET,
            acl=settings.S3_OBJECT_ACL,
            timeout_seconds=settings.STORAGE_TIMEOUT_SECONDS,
        )
    elif backend == "gcs":
        from repo_analyzer.storage.gcs import GCSObjectStore

        store = GCSObjectStore(
            project_id=settings.GCP_PROJECT_ID,
            public_base_url=settings.PUBLIC_BASE_URL,
            public_bucket=settings.STORAGE_BUCKET,
        )
    elif backend == "local":
        from repo_analyzer.storage.local import LocalObjectStore

        store = LocalObjectStore(
            base_path=settings.LOCAL_STORAGE_PATH,
            base_url=settings.public_base_url,
            default_bucket=settings.STORAGE_BUCKET,
        )
    elif backend == "memory":
        from repo_analyzer.storage.memory import MemoryObjectStore

        store = MemoryObjectStore(
            base_url=settings.public_base_url,
            default_bucket=settings.STORAGE_BUCKET,
        )
    else:
        raise ValueError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")

    logger.info(f"Using {store.get_backend_name()} storage backend")
    return store
