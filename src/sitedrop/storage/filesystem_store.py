"""sitedrop filesystem object storage backend.

Provides local filesystem storage for development and testing with:
- Tenant isolation via physical directory namespacing
- Path traversal protection
- SHA256 content hashing
- Atomic writes (temp file + rename)

The content tree mirrors the S3 key layout so a published site can be
browsed directly on disk:

    {base_dir}/{prefix}/{tenant_id}/{key}                 # content
    {base_dir}/_meta/{prefix}/{tenant_id}/{key}.meta.json # metadata
"""

from __future__ import annotations

import hashlib
import io
import json
import logging
import tempfile
import uuid
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import BinaryIO

from sitedrop.storage.errors import (
    ObjectNotFoundError,
    PathTraversalError,
    StorageBackendError,
)
from sitedrop.storage.keys import validate_key, validate_tenant_id
from sitedrop.storage.models import StoredObject, StoredObjectMetadata, WriteCredential
from sitedrop.storage.object_store import ObjectStore
from sitedrop.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)

_META_DIR = "_meta"
_METADATA_SUFFIX = ".meta.json"
_CHUNK_SIZE = 1024 * 1024


def _is_temp_file(path: Path) -> bool:
    """Check for an in-flight atomic write left by _stream_to_file."""
    return path.name.startswith(".") and path.name.endswith(".tmp")


class FilesystemObjectStore(ObjectStore):
    """Filesystem-based object storage implementation."""

    def __init__(self, base_dir: str | Path | None = None, *, prefix: str = "") -> None:
        """Initialize filesystem storage.

        Args:
            base_dir: Base directory for storage. If None, uses the OS temp
                directory.
            prefix: Optional sub-namespace (e.g. "staging") so several stores
                can share one base directory.
        """
        if base_dir is None:
            base_dir = Path(tempfile.gettempdir()) / "sitedrop_objects"

        self._base_dir = Path(base_dir).resolve()
        self._prefix = prefix.strip("/")
        self._content_root = self._base_dir / self._prefix if self._prefix else self._base_dir
        self._meta_root = self._base_dir / _META_DIR
        if self._prefix:
            self._meta_root = self._meta_root / self._prefix
        logger.debug(
            "FilesystemObjectStore initialized with base_dir=%s prefix=%s",
            self._base_dir,
            self._prefix,
        )

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "filesystem"

    @property
    def base_dir(self) -> Path:
        """Return the base directory path."""
        return self._base_dir

    def _paths(self, tenant_id: str, key: str) -> tuple[Path, Path]:
        """Return (content_path, metadata_path), validating inputs."""
        validate_tenant_id(tenant_id)
        validate_key(key, tenant_id)
        content_path = self._content_root / tenant_id / key
        meta_path = self._meta_root / tenant_id / f"{key}{_METADATA_SUFFIX}"
        self._ensure_resolved_within_base(content_path, tenant_id, key)
        return content_path, meta_path

    def _ensure_resolved_within_base(self, path: Path, tenant_id: str, key: str) -> None:
        """Ensure a path resolves within the tenant directory (symlinks included)."""
        tenant_dir = (self._content_root / tenant_id).resolve()
        try:
            path.resolve().relative_to(tenant_dir)
        except ValueError as e:
            raise PathTraversalError(
                message="Path resolves outside tenant directory",
                tenant_id=tenant_id,
                key=key,
            ) from e

    def _mkdirs(self, *paths: Path, tenant_id: str, key: str) -> None:
        try:
            for path in paths:
                path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to create object directory: {e}",
                tenant_id=tenant_id,
                key=key,
                cause=e,
            ) from e

    def _write_metadata(self, meta_path: Path, metadata: StoredObjectMetadata) -> None:
        """Write metadata atomically."""
        tmp_file = meta_path.with_name(f"{meta_path.name}.{uuid.uuid4().hex}.tmp")
        try:
            tmp_file.write_text(json.dumps(metadata.to_dict(), indent=2), encoding="utf-8")
            tmp_file.replace(meta_path)
        except OSError as e:
            tmp_file.unlink(missing_ok=True)
            raise StorageBackendError(
                message=f"Failed to write metadata: {e}",
                tenant_id=metadata.tenant_id,
                key=metadata.key,
                cause=e,
            ) from e

    def _read_metadata(self, meta_path: Path) -> StoredObjectMetadata | None:
        """Read metadata, returning None when absent or unreadable."""
        if not meta_path.exists():
            return None
        try:
            data = json.loads(meta_path.read_text(encoding="utf-8"))
            return StoredObjectMetadata.from_dict(data)
        except (OSError, json.JSONDecodeError, KeyError, ValueError) as e:
            logger.warning("Failed to read metadata %s: %s", meta_path.name, e)
            return None

    def _stream_to_file(
        self, stream: BinaryIO, content_path: Path, tenant_id: str, key: str
    ) -> tuple[str, int]:
        """Copy stream into content_path atomically, returning (sha256, size)."""
        digest = hashlib.sha256()
        size = 0
        tmp_file = content_path.with_name(f".{content_path.name}.{uuid.uuid4().hex}.tmp")
        try:
            with tmp_file.open("wb") as fh:
                while True:
                    chunk = stream.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    digest.update(chunk)
                    size += len(chunk)
                    fh.write(chunk)
            tmp_file.replace(content_path)
        except Exception as e:
            tmp_file.unlink(missing_ok=True)
            raise StorageBackendError(
                message=f"Failed to write content: {e}",
                tenant_id=tenant_id,
                key=key,
                cause=e,
            ) from e
        return digest.hexdigest(), size

    def _store(
        self,
        tenant_id: str,
        key: str,
        stream: BinaryIO,
        content_type: str | None,
    ) -> StoredObjectMetadata:
        content_path, meta_path = self._paths(tenant_id, key)
        self._mkdirs(content_path, meta_path, tenant_id=tenant_id, key=key)

        sha256, size = self._stream_to_file(stream, content_path, tenant_id, key)
        metadata = StoredObjectMetadata(
            tenant_id=tenant_id,
            key=key,
            sha256=sha256,
            size_bytes=size,
            content_type=content_type,
            created_at=datetime.now(UTC),
        )
        self._write_metadata(meta_path, metadata)

        logger.debug("Stored object: tenant=%s key=%s sha256=%s", tenant_id, key, sha256)
        return metadata

    @traced_storage_operation("put")
    def put(
        self,
        tenant_id: str,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
    ) -> StoredObjectMetadata:
        """Store an object."""
        return self._store(tenant_id, key, io.BytesIO(data), content_type)

    @traced_storage_operation("put_stream")
    def put_stream(
        self,
        tenant_id: str,
        key: str,
        stream: BinaryIO,
        *,
        content_type: str | None = None,
    ) -> StoredObjectMetadata:
        """Store an object from a stream, one chunk at a time."""
        return self._store(tenant_id, key, stream, content_type)

    @traced_storage_operation("head")
    def head(self, tenant_id: str, key: str) -> StoredObjectMetadata:
        """Get object metadata without retrieving content."""
        content_path, meta_path = self._paths(tenant_id, key)
        if not content_path.is_file():
            raise ObjectNotFoundError(tenant_id=tenant_id, key=key)

        metadata = self._read_metadata(meta_path)
        if metadata is None:
            # Content written without a sidecar (e.g. copied in by hand).
            stat = content_path.stat()
            metadata = StoredObjectMetadata(
                tenant_id=tenant_id,
                key=key,
                sha256=None,
                size_bytes=stat.st_size,
                content_type=None,
                created_at=datetime.fromtimestamp(stat.st_mtime, UTC),
            )
        return metadata

    @traced_storage_operation("get")
    def get(self, tenant_id: str, key: str) -> StoredObject:
        """Retrieve an object."""
        metadata = self.head(tenant_id, key)
        content_path, _ = self._paths(tenant_id, key)
        try:
            body = content_path.read_bytes()
        except FileNotFoundError as e:
            raise ObjectNotFoundError(tenant_id=tenant_id, key=key) from e
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to read content: {e}",
                tenant_id=tenant_id,
                key=key,
                cause=e,
            ) from e
        return StoredObject(metadata=metadata, body=body)

    @traced_storage_operation("delete")
    def delete(self, tenant_id: str, key: str) -> None:
        """Delete an object and its metadata."""
        content_path, meta_path = self._paths(tenant_id, key)
        if not content_path.is_file():
            raise ObjectNotFoundError(tenant_id=tenant_id, key=key)

        try:
            content_path.unlink()
            meta_path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to delete object: {e}",
                tenant_id=tenant_id,
                key=key,
                cause=e,
            ) from e

        logger.debug("Deleted object: tenant=%s key=%s", tenant_id, key)

    @traced_storage_operation("list_keys")
    def list_keys(self, tenant_id: str) -> list[str]:
        """List all keys for a tenant."""
        validate_tenant_id(tenant_id)
        tenant_dir = self._content_root / tenant_id
        if not tenant_dir.is_dir():
            return []

        try:
            keys = [
                path.relative_to(tenant_dir).as_posix()
                for path in tenant_dir.rglob("*")
                if path.is_file() and not _is_temp_file(path)
            ]
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to list objects: {e}",
                tenant_id=tenant_id,
                cause=e,
            ) from e
        return sorted(keys)

    @traced_storage_operation("presign_put")
    def presign_put(
        self,
        tenant_id: str,
        key: str,
        *,
        content_type: str,
        expires_in: int,
    ) -> WriteCredential:
        """Issue a file:// credential pointing at the target path.

        Nothing enforces expiry on a local filesystem; the credential exists
        so the upload flow can be exercised end to end during development.
        """
        content_path, _ = self._paths(tenant_id, key)
        return WriteCredential(
            url=content_path.as_uri(),
            expires_at=datetime.now(UTC) + timedelta(seconds=expires_in),
            headers={"Content-Type": content_type},
        )
