"""sitedrop S3 object storage backend.

Objects live at ``{prefix}/{tenant_id}/{key}`` in one bucket (the prefix is
empty for the published store, so keys match what the edge router emits).

Streaming writes use boto3's managed transfer: the body is split into
fixed-size parts with a small number in flight and the same number buffered,
so memory per object is bounded by ``part_size * max_in_flight_parts``
regardless of object size.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import UTC, datetime, timedelta
from typing import Any, BinaryIO

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.exceptions import BotoCoreError, ClientError

from sitedrop.storage.errors import ObjectNotFoundError, StorageBackendError
from sitedrop.storage.keys import validate_key, validate_tenant_id
from sitedrop.storage.models import StoredObject, StoredObjectMetadata, WriteCredential
from sitedrop.storage.object_store import ObjectStore
from sitedrop.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)

DEFAULT_PART_SIZE = 8 * 1024 * 1024
DEFAULT_MAX_IN_FLIGHT_PARTS = 3
DEFAULT_STORAGE_CLASS = "INTELLIGENT_TIERING"

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})
_SHA256_METADATA_KEY = "sha256"


class _HashingReader:
    """File-like wrapper that hashes and counts bytes as they are read."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self._digest = hashlib.sha256()
        self.size = 0

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        chunk = self._stream.read(size)
        self._digest.update(chunk)
        self.size += len(chunk)
        return chunk

    def hexdigest(self) -> str:
        return self._digest.hexdigest()


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3ObjectStore(ObjectStore):
    """S3-backed object storage implementation."""

    def __init__(
        self,
        bucket_name: str,
        *,
        prefix: str = "",
        client: Any | None = None,
        region_name: str | None = None,
        part_size: int = DEFAULT_PART_SIZE,
        max_in_flight_parts: int = DEFAULT_MAX_IN_FLIGHT_PARTS,
        storage_class: str | None = DEFAULT_STORAGE_CLASS,
    ) -> None:
        """Initialize S3 storage.

        Args:
            bucket_name: Target bucket.
            prefix: Optional key prefix (e.g. "staging").
            client: Pre-built boto3 S3 client; built from the default
                credential chain when omitted.
            region_name: AWS region used when building the client.
            part_size: Multipart part size in bytes.
            max_in_flight_parts: Parts uploaded concurrently per object.
            storage_class: S3 storage class for written objects.
        """
        if not bucket_name:
            raise ValueError("bucket_name is required for S3ObjectStore")

        self._bucket = bucket_name
        self._prefix = prefix.strip("/")
        self._client = client or boto3.client("s3", region_name=region_name)
        self._storage_class = storage_class
        self._transfer_config = TransferConfig(
            multipart_threshold=part_size,
            multipart_chunksize=part_size,
            max_concurrency=max_in_flight_parts,
        )
        self._transfer_config.max_in_memory_upload_chunks = max_in_flight_parts

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "s3"

    @property
    def bucket_name(self) -> str:
        """Return the bucket this store writes to."""
        return self._bucket

    def _tenant_prefix(self, tenant_id: str) -> str:
        validate_tenant_id(tenant_id)
        if self._prefix:
            return f"{self._prefix}/{tenant_id}/"
        return f"{tenant_id}/"

    def _object_key(self, tenant_id: str, key: str) -> str:
        """Map a (tenant, logical key) pair to the physical S3 key."""
        validate_key(key, tenant_id)
        return f"{self._tenant_prefix(tenant_id)}{key}"

    def _extra_args(self, content_type: str | None) -> dict[str, Any]:
        extra: dict[str, Any] = {}
        if content_type:
            extra["ContentType"] = content_type
        if self._storage_class:
            extra["StorageClass"] = self._storage_class
        return extra

    def _backend_error(
        self, action: str, tenant_id: str, key: str | None, error: Exception
    ) -> StorageBackendError:
        logger.error("S3 %s failed: tenant=%s error=%s", action, tenant_id, type(error).__name__)
        return StorageBackendError(
            message=f"S3 {action} failed",
            tenant_id=tenant_id,
            key=key,
            cause=error,
        )

    @traced_storage_operation("put")
    def put(
        self,
        tenant_id: str,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
    ) -> StoredObjectMetadata:
        """Store an object with a single PutObject call."""
        object_key = self._object_key(tenant_id, key)
        sha256 = hashlib.sha256(data).hexdigest()

        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=object_key,
                Body=data,
                Metadata={_SHA256_METADATA_KEY: sha256},
                **self._extra_args(content_type),
            )
        except (ClientError, BotoCoreError) as e:
            raise self._backend_error("put", tenant_id, key, e) from e

        return StoredObjectMetadata(
            tenant_id=tenant_id,
            key=key,
            sha256=sha256,
            size_bytes=len(data),
            content_type=content_type,
            created_at=datetime.now(UTC),
        )

    @traced_storage_operation("put_stream")
    def put_stream(
        self,
        tenant_id: str,
        key: str,
        stream: BinaryIO,
        *,
        content_type: str | None = None,
    ) -> StoredObjectMetadata:
        """Store an object through a managed multipart upload."""
        object_key = self._object_key(tenant_id, key)
        reader = _HashingReader(stream)

        try:
            self._client.upload_fileobj(
                reader,
                self._bucket,
                object_key,
                ExtraArgs=self._extra_args(content_type),
                Config=self._transfer_config,
            )
        except (ClientError, BotoCoreError, OSError, ValueError) as e:
            raise self._backend_error("multipart upload", tenant_id, key, e) from e

        return StoredObjectMetadata(
            tenant_id=tenant_id,
            key=key,
            sha256=reader.hexdigest(),
            size_bytes=reader.size,
            content_type=content_type,
            created_at=datetime.now(UTC),
        )

    def _metadata_from_response(
        self, tenant_id: str, key: str, response: dict[str, Any]
    ) -> StoredObjectMetadata:
        user_metadata = response.get("Metadata") or {}
        last_modified = response.get("LastModified")
        return StoredObjectMetadata(
            tenant_id=tenant_id,
            key=key,
            sha256=user_metadata.get(_SHA256_METADATA_KEY),
            size_bytes=int(response.get("ContentLength", 0)),
            content_type=response.get("ContentType"),
            created_at=last_modified if isinstance(last_modified, datetime) else datetime.now(UTC),
        )

    @traced_storage_operation("head")
    def head(self, tenant_id: str, key: str) -> StoredObjectMetadata:
        """Get object metadata with HeadObject."""
        object_key = self._object_key(tenant_id, key)
        try:
            response = self._client.head_object(Bucket=self._bucket, Key=object_key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(tenant_id=tenant_id, key=key) from e
            raise self._backend_error("head", tenant_id, key, e) from e
        except BotoCoreError as e:
            raise self._backend_error("head", tenant_id, key, e) from e

        return self._metadata_from_response(tenant_id, key, response)

    @traced_storage_operation("get")
    def get(self, tenant_id: str, key: str) -> StoredObject:
        """Retrieve an object with GetObject."""
        object_key = self._object_key(tenant_id, key)
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=object_key)
            body = response["Body"].read()
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(tenant_id=tenant_id, key=key) from e
            raise self._backend_error("get", tenant_id, key, e) from e
        except BotoCoreError as e:
            raise self._backend_error("get", tenant_id, key, e) from e

        return StoredObject(
            metadata=self._metadata_from_response(tenant_id, key, response),
            body=body,
        )

    @traced_storage_operation("delete")
    def delete(self, tenant_id: str, key: str) -> None:
        """Delete an object.

        DeleteObject succeeds on missing keys, so existence is checked first
        to keep not-found semantics identical to the filesystem backend.
        """
        self.head(tenant_id, key)
        object_key = self._object_key(tenant_id, key)
        try:
            self._client.delete_object(Bucket=self._bucket, Key=object_key)
        except (ClientError, BotoCoreError) as e:
            raise self._backend_error("delete", tenant_id, key, e) from e

        logger.debug("Deleted object: tenant=%s key=%s", tenant_id, key)

    @traced_storage_operation("list_keys")
    def list_keys(self, tenant_id: str) -> list[str]:
        """List every key under the tenant prefix."""
        tenant_prefix = self._tenant_prefix(tenant_id)
        keys: list[str] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket, Prefix=tenant_prefix):
                for item in page.get("Contents", []):
                    keys.append(item["Key"][len(tenant_prefix) :])
        except (ClientError, BotoCoreError) as e:
            raise self._backend_error("list", tenant_id, None, e) from e
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
        """Presign a PutObject request for exactly one key.

        Content-Type is part of the signature, so an upload with any other
        type is rejected by S3.
        """
        object_key = self._object_key(tenant_id, key)
        try:
            url = self._client.generate_presigned_url(
                "put_object",
                Params={
                    "Bucket": self._bucket,
                    "Key": object_key,
                    "ContentType": content_type,
                },
                ExpiresIn=expires_in,
                HttpMethod="PUT",
            )
        except (ClientError, BotoCoreError) as e:
            raise self._backend_error("presign", tenant_id, key, e) from e

        return WriteCredential(
            url=url,
            expires_at=datetime.now(UTC) + timedelta(seconds=expires_in),
            headers={"Content-Type": content_type},
        )
