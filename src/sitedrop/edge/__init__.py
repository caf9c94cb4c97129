"""Stateless request routing executed at the content-delivery edge."""

from sitedrop.edge.router import (
    INDEX_DOCUMENT,
    EdgeRequest,
    normalize_path,
    rewrite_uri,
    route_request,
    tenant_from_host,
)

__all__ = [
    "INDEX_DOCUMENT",
    "EdgeRequest",
    "normalize_path",
    "rewrite_uri",
    "route_request",
    "tenant_from_host",
]
