"""sitedrop object storage error types.

All errors are fail-closed: operations that cannot complete safely raise.
"""

from __future__ import annotations


class ObjectStorageError(Exception):
    """Base exception for object storage operations.

    Attributes:
        message: Human-readable error message.
        tenant_id: Tenant ID associated with the operation (if applicable).
        key: Object key associated with the operation (if applicable).
    """

    def __init__(
        self,
        message: str,
        *,
        tenant_id: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.tenant_id = tenant_id
        self.key = key

    def __str__(self) -> str:
        parts = [self.message]
        if self.tenant_id:
            parts.append(f"tenant_id={self.tenant_id}")
        if self.key:
            parts.append(f"key={self.key}")
        return " ".join(parts)


class ObjectNotFoundError(ObjectStorageError):
    """Raised when an object does not exist in the tenant's namespace."""

    def __init__(
        self,
        message: str = "Object not found",
        *,
        tenant_id: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, tenant_id=tenant_id, key=key)


class PathTraversalError(ObjectStorageError):
    """Raised when an object key would escape the tenant namespace.

    Covers "../" segments, absolute paths, backslashes, drive letters and
    control characters.
    """

    def __init__(
        self,
        message: str = "Invalid key: path traversal detected",
        *,
        tenant_id: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, tenant_id=tenant_id, key=key)


class StorageBackendError(ObjectStorageError):
    """Raised when the backend itself fails (I/O error, S3 client error, ...)."""

    def __init__(
        self,
        message: str = "Storage backend error",
        *,
        tenant_id: str | None = None,
        key: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, tenant_id=tenant_id, key=key)
        self.cause = cause
