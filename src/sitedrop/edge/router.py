"""Edge tenant routing.

Maps ``{tenant}.{base-domain}`` + path to the object key ``{tenant}/{path}``.
The rewrite is a pure function of (host, uri): no I/O, no state. It runs
once per viewer request, before cache lookup, so cached and uncached
responses see the same key.

Rewriting is not idempotent; applying it to an already-rewritten request
nests the tenant twice.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

INDEX_DOCUMENT = "index.html"


@dataclass(frozen=True)
class EdgeRequest:
    """The parts of a viewer request the router reads or rewrites.

    Attributes:
        host: Value of the Host header ("" when absent).
        uri: Request path without the query string.
        querystring: Raw query string, passed through untouched.
    """

    host: str
    uri: str
    querystring: str = ""


def tenant_from_host(host: str) -> str | None:
    """Return the leftmost host label, or None if the host has no usable label."""
    hostname = host.strip().split(":", 1)[0]
    dot = hostname.find(".")
    if dot <= 0:
        return None
    return hostname[:dot]


def normalize_path(uri: str) -> str:
    """Ensure a leading slash and resolve directory paths to their index document."""
    path = uri if uri.startswith("/") else f"/{uri}"
    if path == "/":
        return f"/{INDEX_DOCUMENT}"
    if path.endswith("/"):
        return f"{path}{INDEX_DOCUMENT}"
    return path


def rewrite_uri(host: str, uri: str) -> str:
    """Return the storage path for a request, or uri unchanged if host has no tenant.

    Examples:
        >>> rewrite_uri("abc123.example.com", "/")
        '/abc123/index.html'
        >>> rewrite_uri("abc123.example.com", "/notes/")
        '/abc123/notes/index.html'
        >>> rewrite_uri("localhost", "/app.js")
        '/app.js'
    """
    tenant = tenant_from_host(host)
    if tenant is None:
        return uri
    return f"/{tenant}{normalize_path(uri)}"


def route_request(request: EdgeRequest) -> EdgeRequest:
    """Apply the tenant rewrite to a viewer request."""
    rewritten = rewrite_uri(request.host, request.uri)
    if rewritten == request.uri:
        return request
    return replace(request, uri=rewritten)
