"""sitedrop object storage abstraction.

Provides tenant-isolated object storage with SHA256 tracking, streaming
writes, presigned write credentials and observability hooks.

Backends:
- FilesystemObjectStore: Local filesystem (dev/test)
- S3ObjectStore: AWS S3 via boto3 (production)

Use build_object_stores() to construct the (published, staging) pair from
Settings.
"""

from __future__ import annotations

from sitedrop.config import (
    SITEDROP_BUCKET_NAME_ENV,
    SITEDROP_STORAGE_BACKEND_ENV,
    ConfigError,
    Settings,
)
from sitedrop.storage.errors import (
    ObjectNotFoundError,
    ObjectStorageError,
    PathTraversalError,
    StorageBackendError,
)
from sitedrop.storage.filesystem_store import FilesystemObjectStore
from sitedrop.storage.models import StoredObject, StoredObjectMetadata, WriteCredential
from sitedrop.storage.object_store import ObjectStore
from sitedrop.storage.s3_store import S3ObjectStore


def build_object_stores(settings: Settings) -> tuple[ObjectStore, ObjectStore]:
    """Build the published and staging stores for the configured backend.

    Returns:
        (published_store, staging_store). The staging store shares the
        published bucket unless a dedicated staging bucket is configured,
        and always writes under the staging prefix.
    """
    if settings.storage_backend == "s3":
        if not settings.bucket_name:
            raise ConfigError(
                f"{SITEDROP_BUCKET_NAME_ENV} is required when {SITEDROP_STORAGE_BACKEND_ENV}=s3"
            )
        published = S3ObjectStore(settings.bucket_name, region_name=settings.aws_region)
        staging = S3ObjectStore(
            settings.staging_bucket_name or settings.bucket_name,
            prefix=settings.staging_prefix,
            region_name=settings.aws_region,
            storage_class=None,
        )
        return published, staging

    published_fs = FilesystemObjectStore(settings.base_dir)
    staging_fs = FilesystemObjectStore(settings.base_dir, prefix=settings.staging_prefix)
    return published_fs, staging_fs


__all__ = [
    "FilesystemObjectStore",
    "ObjectNotFoundError",
    "ObjectStorageError",
    "ObjectStore",
    "PathTraversalError",
    "S3ObjectStore",
    "StorageBackendError",
    "StoredObject",
    "StoredObjectMetadata",
    "WriteCredential",
    "build_object_stores",
]
