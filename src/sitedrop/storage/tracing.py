"""sitedrop object storage OpenTelemetry tracing integration.

Security:
    - Never export absolute filesystem paths in span attributes
    - Never export raw object keys (uploaded file names are user content)
    - No secrets or credentials (presigned URLs included) in any attribute
"""

from __future__ import annotations

import functools
import hashlib
import logging
import os
from collections.abc import Callable
from typing import Any, TypeVar, cast

from opentelemetry import trace

from sitedrop.storage.models import StoredObject, StoredObjectMetadata

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SITEDROP_OTEL_ENABLED_ENV = "SITEDROP_OTEL_ENABLED"


def _is_otel_enabled() -> bool:
    """Check if OpenTelemetry tracing is enabled."""
    val = os.environ.get(SITEDROP_OTEL_ENABLED_ENV, "").strip().lower()
    return val in ("1", "true", "yes")


def traced_storage_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace storage operations with OpenTelemetry.

    The decorated method must take ``tenant_id`` as its first argument;
    when a second positional string argument is present it is treated as
    the object key and exported only as a SHA256 digest.

    Args:
        operation: Operation name (e.g., "put", "get", "list_keys").
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self: Any, tenant_id: str, *args: Any, **kwargs: Any) -> Any:
            if not _is_otel_enabled():
                return func(self, tenant_id, *args, **kwargs)

            tracer = trace.get_tracer("sitedrop.object_store")
            with tracer.start_as_current_span(f"sitedrop.object_store.{operation}") as span:
                span.set_attribute("sitedrop.tenant_id", tenant_id)
                span.set_attribute("storage.backend", getattr(self, "backend_name", "unknown"))
                if args and isinstance(args[0], str):
                    key_sha256 = hashlib.sha256(args[0].encode("utf-8")).hexdigest()
                    span.set_attribute("sitedrop.object_key_sha256", key_sha256)

                try:
                    result = func(self, tenant_id, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    raise

                if result is not None:
                    _add_result_attributes(span, result, operation)
                return result

        return cast(F, wrapper)

    return decorator


def _add_result_attributes(span: Any, result: Any, operation: str) -> None:
    """Add result-based attributes to span (sha256, size, content type only)."""
    metadata: StoredObjectMetadata | None = None

    if isinstance(result, StoredObjectMetadata):
        metadata = result
    elif isinstance(result, StoredObject):
        metadata = result.metadata

    if metadata is not None:
        if metadata.sha256:
            span.set_attribute("sitedrop.object_sha256", metadata.sha256)
        span.set_attribute("sitedrop.object_size_bytes", metadata.size_bytes)
        if metadata.content_type:
            span.set_attribute("sitedrop.object_content_type", metadata.content_type)

    if operation == "list_keys" and isinstance(result, list):
        span.set_attribute("sitedrop.object_count", len(result))
