"""sitedrop object storage data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class StoredObjectMetadata:
    """Metadata for a stored object.

    Attributes:
        tenant_id: UUID of the tenant owning this object.
        key: Logical key of the object within the tenant namespace.
        sha256: SHA256 of the content (hex), if known to the backend.
        size_bytes: Size of the object content in bytes.
        content_type: MIME type of the content.
        created_at: Timestamp when the object was written.
    """

    tenant_id: str
    key: str
    sha256: str | None
    size_bytes: int
    content_type: str | None
    created_at: datetime

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert metadata to dictionary for JSON serialization."""
        return {
            "tenant_id": self.tenant_id,
            "key": self.key,
            "sha256": self.sha256,
            "size_bytes": self.size_bytes,
            "content_type": self.content_type,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, str | int | None]) -> StoredObjectMetadata:
        """Create metadata from dictionary."""
        size_bytes_raw = data.get("size_bytes")
        sha256_raw = data.get("sha256")
        content_type_raw = data.get("content_type")

        return cls(
            tenant_id=str(data["tenant_id"]),
            key=str(data["key"]),
            sha256=str(sha256_raw) if sha256_raw else None,
            size_bytes=int(size_bytes_raw) if size_bytes_raw is not None else 0,
            content_type=str(content_type_raw) if content_type_raw else None,
            created_at=datetime.fromisoformat(str(data["created_at"])),
        )


@dataclass(frozen=True)
class StoredObject:
    """A stored object with metadata and body content."""

    metadata: StoredObjectMetadata
    body: bytes


@dataclass(frozen=True)
class WriteCredential:
    """A time-bounded authorization to write exactly one object.

    The holder performs ``method`` on ``url`` sending every header in
    ``headers``; the backend rejects uploads that deviate from them.
    No read or delete rights are conferred.
    """

    url: str
    expires_at: datetime
    method: str = "PUT"
    headers: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        """Convert credential to dictionary for JSON serialization."""
        return {
            "url": self.url,
            "method": self.method,
            "headers": dict(self.headers),
            "expires_at": self.expires_at.isoformat(),
        }
