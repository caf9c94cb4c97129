"""Local site serving.

Stands in for the CDN during development: applies the edge router to the
request's Host and path, then returns the published object. Mounted only
when SITEDROP_SERVE_SITES is enabled, and always last so API routes win.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, Response

from sitedrop.api.deps import PublishedStoreDep
from sitedrop.edge import EdgeRequest, route_request
from sitedrop.storage import ObjectNotFoundError, PathTraversalError
from sitedrop.storage.keys import is_valid_tenant_id

router = APIRouter(tags=["Sites"])


@router.get("/{path:path}", include_in_schema=False)
def serve_site_object(path: str, request: Request, store: PublishedStoreDep) -> Response:
    """Serve one published object addressed by tenant subdomain + path."""
    edge_request = EdgeRequest(
        host=request.headers.get("host", ""),
        uri=f"/{path}",
        querystring=request.url.query,
    )
    routed = route_request(edge_request)
    if routed is edge_request:
        raise HTTPException(status_code=404, detail="Not Found")

    tenant_id, _, key = routed.uri.lstrip("/").partition("/")
    if not is_valid_tenant_id(tenant_id):
        raise HTTPException(status_code=404, detail="Not Found")

    try:
        stored = store.get(tenant_id, key)
    except (ObjectNotFoundError, PathTraversalError) as e:
        raise HTTPException(status_code=404, detail="Not Found") from e

    return Response(
        content=stored.body,
        media_type=stored.metadata.content_type or "application/octet-stream",
    )
