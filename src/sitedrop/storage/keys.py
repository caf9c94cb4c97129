"""Key and tenant identifier validation shared by all storage backends."""

from __future__ import annotations

import re

from sitedrop.storage.errors import PathTraversalError, StorageBackendError

_UUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)


def is_valid_tenant_id(tenant_id: str) -> bool:
    """Check that tenant_id is in canonical UUID format."""
    return bool(_UUID_PATTERN.match(tenant_id))


def is_path_traversal(key: str) -> bool:
    """Check if a key could escape its tenant namespace.

    Detects:
    - empty keys and empty segments ("a//b")
    - ".." and "." segments
    - absolute paths (leading "/" or "~") and drive letters ("C:")
    - backslashes
    - NUL and other control characters
    """
    if not key:
        return True

    if any(ord(ch) < 32 or ord(ch) == 127 for ch in key):
        return True

    if "\\" in key:
        return True

    if key.startswith(("/", "~")):
        return True

    if len(key) >= 2 and key[1] == ":":
        return True

    segments = key.split("/")
    return any(segment in ("", ".", "..") for segment in segments)


def validate_tenant_id(tenant_id: str) -> None:
    """Raise if tenant_id is not a UUID."""
    if not is_valid_tenant_id(tenant_id):
        raise StorageBackendError(
            message=f"Invalid tenant_id format: {tenant_id}",
            tenant_id=tenant_id,
        )


def validate_key(key: str, tenant_id: str) -> None:
    """Raise PathTraversalError if key is unsafe."""
    if is_path_traversal(key):
        raise PathTraversalError(
            message="Invalid key: path traversal or unsafe characters detected",
            tenant_id=tenant_id,
            key=key,
        )
