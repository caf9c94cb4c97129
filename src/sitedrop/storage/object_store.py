"""sitedrop object storage interface definition.

Provides the ObjectStore interface that all storage backends implement.
Every operation is scoped to a tenant: an object written under tenant A
is addressed as ``{tenant_id}/{key}`` inside the backend and can never be
reached through tenant B.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import BinaryIO

from sitedrop.storage.models import StoredObject, StoredObjectMetadata, WriteCredential


class ObjectStore(ABC):
    """Abstract base class for object storage backends.

    Implementations:
    - FilesystemObjectStore: Local filesystem (dev/test)
    - S3ObjectStore: AWS S3 via boto3 (production)
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability (e.g. "filesystem", "s3")."""
        ...

    @abstractmethod
    def put(
        self,
        tenant_id: str,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
    ) -> StoredObjectMetadata:
        """Store an object held fully in memory.

        Args:
            tenant_id: UUID of the tenant.
            key: Logical key/path for the object.
            data: Object content as bytes.
            content_type: Optional MIME type of the content.

        Returns:
            Metadata for the stored object.

        Raises:
            PathTraversalError: If key contains traversal sequences.
            StorageBackendError: If the backend cannot complete the write.
        """
        ...

    @abstractmethod
    def put_stream(
        self,
        tenant_id: str,
        key: str,
        stream: BinaryIO,
        *,
        content_type: str | None = None,
    ) -> StoredObjectMetadata:
        """Store an object from a single-pass byte stream of unknown length.

        The stream is consumed in bounded chunks; implementations never
        buffer the whole object in memory.

        Raises:
            PathTraversalError: If key contains traversal sequences.
            StorageBackendError: If the backend cannot complete the write
                or reading the stream fails.
        """
        ...

    @abstractmethod
    def get(self, tenant_id: str, key: str) -> StoredObject:
        """Retrieve an object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            PathTraversalError: If key contains traversal sequences.
            StorageBackendError: If the backend cannot complete the read.
        """
        ...

    @abstractmethod
    def head(self, tenant_id: str, key: str) -> StoredObjectMetadata:
        """Get object metadata without retrieving content.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            PathTraversalError: If key contains traversal sequences.
            StorageBackendError: If the backend cannot complete the operation.
        """
        ...

    @abstractmethod
    def delete(self, tenant_id: str, key: str) -> None:
        """Delete an object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            PathTraversalError: If key contains traversal sequences.
            StorageBackendError: If the backend cannot complete the deletion.
        """
        ...

    @abstractmethod
    def list_keys(self, tenant_id: str) -> list[str]:
        """List every key stored for a tenant, sorted ascending.

        Returns:
            Logical keys (without the tenant prefix). Empty list if the
            tenant has no objects.

        Raises:
            StorageBackendError: If the backend cannot complete the listing.
        """
        ...

    @abstractmethod
    def presign_put(
        self,
        tenant_id: str,
        key: str,
        *,
        content_type: str,
        expires_in: int,
    ) -> WriteCredential:
        """Issue a write-only credential for exactly one key.

        Args:
            tenant_id: UUID of the tenant.
            key: Logical key the holder may write.
            content_type: Content-Type the upload must carry.
            expires_in: Lifetime of the credential in seconds.

        Raises:
            PathTraversalError: If key contains traversal sequences.
            StorageBackendError: If the credential cannot be issued.
        """
        ...
